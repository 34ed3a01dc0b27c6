"""
Pagination Utility Module

Provides the page/limit handling and list envelope shared by every list endpoint:

    {"success": true, "data": [...], "meta": {"pagination": {...}}}
"""
import math
from typing import List, Any, Optional, Tuple
from pydantic import BaseModel
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

from app.core.config import settings


class PaginationMeta(BaseModel):
    """Pagination block of a list response"""
    total: int
    page: int
    pages: int
    limit: int


def clamp_page(page: Optional[int]) -> int:
    return max(1, page or 1)


def clamp_limit(limit: Optional[int], default: Optional[int] = None) -> int:
    """Apply the default list size and the hard cap"""
    if not limit or limit < 1:
        limit = default or settings.LIST_DEFAULT_LIMIT
    return min(limit, settings.LIST_MAX_LIMIT)


async def paginate(
    db: AsyncSession,
    query: Select,
    page: Optional[int] = 1,
    limit: Optional[int] = None,
    default_limit: Optional[int] = None,
) -> Tuple[List[Any], PaginationMeta]:
    """
    Apply pagination to a SQLAlchemy query.

    Args:
        db: Database session
        query: Filtered and ordered SQLAlchemy query
        page: Page number (1-indexed)
        limit: Items per page (capped at LIST_MAX_LIMIT)
        default_limit: Page size used when no limit is given

    Returns:
        (items, meta) where meta carries total, page, pages and limit
    """
    page = clamp_page(page)
    limit = clamp_limit(limit, default_limit)
    offset = (page - 1) * limit

    count_stmt = select(func.count()).select_from(query.order_by(None).subquery())
    total = (await db.execute(count_stmt)).scalar() or 0

    result = await db.execute(query.offset(offset).limit(limit))
    items = list(result.scalars().all())

    meta = PaginationMeta(
        total=total,
        page=page,
        pages=math.ceil(total / limit) if total else 0,
        limit=limit,
    )
    return items, meta


def list_envelope(data: List[Any], meta: PaginationMeta) -> dict:
    """Wrap a page of items in the standard list response"""
    return {
        "success": True,
        "data": data,
        "meta": {"pagination": meta.model_dump()},
    }
