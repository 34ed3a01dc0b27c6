"""Human readable, per-prefix sequential ids (UR-1, SR-12, TC-3, TRES-40)."""
from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.id_sequence import IdSequence

USER_REQUIREMENT_PREFIX = "UR"
SYSTEM_REQUIREMENT_PREFIX = "SR"
RISK_PREFIX = "RISK"
TEST_CASE_PREFIX = "TC"
TEST_RUN_PREFIX = "TR"
TEST_RESULT_PREFIX = "TRES"

ALL_PREFIXES = (
    USER_REQUIREMENT_PREFIX,
    SYSTEM_REQUIREMENT_PREFIX,
    RISK_PREFIX,
    TEST_CASE_PREFIX,
    TEST_RUN_PREFIX,
    TEST_RESULT_PREFIX,
)


async def ensure_sequence(db: AsyncSession, prefix: str) -> None:
    """Insert the counter row for `prefix` unless another transaction already did"""
    insert = postgresql.insert if db.get_bind().dialect.name == "postgresql" else sqlite.insert
    await db.execute(
        insert(IdSequence)
        .values(prefix=prefix, last_value=0)
        .on_conflict_do_nothing(index_elements=[IdSequence.prefix])
    )


async def next_id(db: AsyncSession, prefix: str) -> str:
    """Reserve the next number for `prefix` inside the caller's transaction"""
    await ensure_sequence(db, prefix)
    result = await db.execute(
        select(IdSequence)
        .where(IdSequence.prefix == prefix)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    sequence = result.scalar_one()

    sequence.last_value += 1
    await db.flush()
    return f"{prefix}-{sequence.last_value}"
