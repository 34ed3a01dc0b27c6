"""
Reqquli - Test Configuration and Fixtures
"""
import os
import tempfile
from typing import AsyncGenerator, Awaitable, Callable, Dict, List, Optional
import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool
from faker import Faker

# Set testing environment before the app reads its settings
os.environ['ENVIRONMENT'] = 'development'
os.environ['DATABASE_URL'] = 'sqlite+aiosqlite:///./reqquli_pytest.db'
os.environ['JWT_SECRET_KEY'] = 'k7Qz1-reqquli-pytest-signing-key-9f3a8c2e41d0'
os.environ['BCRYPT_ROUNDS'] = '4'
os.environ['LOG_FILE'] = ''
os.environ['SMTP_HOST'] = ''
os.environ['EVIDENCE_UPLOAD_DIR'] = tempfile.mkdtemp(prefix='reqquli-evidence-')

from app.main import app
from app.core.database import Base, get_db
from app.core.security import get_password_hash, create_access_token
from app.models.user import User
from app import models  # noqa: F401

fake = Faker()

TEST_DATABASE_URL = os.environ['DATABASE_URL']
TEST_PASSWORD = 'TestPassword123'

test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
TestSessionLocal = async_sessionmaker(
    bind=test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


@pytest.fixture(scope='function')
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database for each test"""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session
        await session.rollback()

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database override"""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def password() -> str:
    """Plain-text password of every user created by the fixtures"""
    return TEST_PASSWORD


async def _create_user(db_session: AsyncSession, verified: bool = True, **overrides) -> User:
    user = User(
        email=overrides.get('email', fake.unique.email().lower()),
        hashed_password=get_password_hash(overrides.get('password', TEST_PASSWORD)),
        full_name=overrides.get('full_name', fake.unique.name()),
        is_active=overrides.get('is_active', True),
        is_verified=verified,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
async def test_user(db_session: AsyncSession) -> User:
    """A verified user"""
    return await _create_user(db_session)


@pytest.fixture
async def other_user(db_session: AsyncSession) -> User:
    """A second verified user"""
    return await _create_user(db_session)


@pytest.fixture
async def unverified_user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, verified=False)


@pytest.fixture
def auth_headers(test_user: User) -> dict:
    """Generate authentication headers for test user"""
    token = create_access_token(test_user.id, test_user.email)
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def other_auth_headers(other_user: User) -> dict:
    token = create_access_token(other_user.id, other_user.email)
    return {'Authorization': f'Bearer {token}'}


# ==================== Data factories ====================

@pytest.fixture
def requirement_payload() -> Callable[..., Dict]:
    def build(**overrides) -> Dict:
        payload = {
            'title': fake.unique.sentence(nb_words=5).rstrip('.'),
            'description': fake.paragraph(),
        }
        payload.update(overrides)
        return payload
    return build


@pytest.fixture
def risk_payload(requirement_payload) -> Callable[..., Dict]:
    def build(**overrides) -> Dict:
        payload = requirement_payload(
            hazard='Electrical shock from exposed terminals',
            harm='Burns to the operator',
            foreseeableSequence='Cover removed during maintenance',
            severity=3,
            probabilityP1=2,
            probabilityP2=4,
            pTotalCalculationMethod='Highest of P1 and P2',
        )
        payload.update(overrides)
        return payload
    return build


@pytest.fixture
def create_item(client: AsyncClient, auth_headers: dict, requirement_payload, risk_payload) -> Callable[..., Awaitable[Dict]]:
    """Create a user requirement, system requirement or risk through the API"""
    async def create(kind: str = 'user-requirements', **overrides) -> Dict:
        build = risk_payload if kind == 'risks' else requirement_payload
        response = await client.post(f'/api/{kind}', json=build(**overrides), headers=auth_headers)
        assert response.status_code == 201, response.text
        return response.json()['requirement']
    return create


@pytest.fixture
def create_test_case(client: AsyncClient, auth_headers: dict, password: str) -> Callable[..., Awaitable[Dict]]:
    """Create a test case through the API, optionally approving it"""
    async def create(steps: int = 2, approve: bool = False,
                     linked_requirements: Optional[List[str]] = None, **overrides) -> Dict:
        payload = {
            'title': fake.unique.sentence(nb_words=4).rstrip('.'),
            'description': fake.sentence(),
            'steps': [
                {'action': f'Perform action {n}', 'expectedResult': f'Outcome {n} observed'}
                for n in range(1, steps + 1)
            ],
            'linkedRequirements': linked_requirements or [],
        }
        payload.update(overrides)
        response = await client.post('/api/test-cases', json=payload, headers=auth_headers)
        assert response.status_code == 201, response.text
        test_case = response.json()['testCase']

        if approve:
            response = await client.put(
                f"/api/test-cases/{test_case['id']}/approve",
                json={'password': password},
                headers=auth_headers,
            )
            assert response.status_code == 200, response.text
            test_case = response.json()['testCase']
        return test_case
    return create


@pytest.fixture
def create_test_run(client: AsyncClient, auth_headers: dict) -> Callable[..., Awaitable[Dict]]:
    async def create(test_case_ids: List[str], name: str = 'Regression run') -> Dict:
        response = await client.post(
            '/api/test-runs',
            json={'name': name, 'description': 'Release candidate', 'testCaseIds': test_case_ids},
            headers=auth_headers,
        )
        assert response.status_code == 200, response.text
        return response.json()
    return create
