from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import check_database, get_db
from app.core.logging_config import logger

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check(db: AsyncSession = Depends(get_db)):
    """Liveness plus a database round trip; never requires authentication"""
    try:
        await check_database(db)
        database = "connected"
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"[HealthCheck] Database check failed: {e}")
        database = "disconnected"

    return {"status": "ok", "message": "Reqquli API is running", "database": database}
