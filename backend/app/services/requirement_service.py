"""
Lifecycle shared by user requirements, system requirements and risk records.

    create ──> draft ──approve (password)──> approved
                 ^                               │
                 └──── edit (password) ──────────┘

Approving bumps the revision. Editing an approved item reverts it to draft
unless the same request re-approves it. Deletion is soft.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, Type

from sqlalchemy import asc, desc, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import BadRequestError, ConflictError, ResourceNotFoundError
from app.models.requirement import ItemStatus, SystemRequirement, UserRequirement
from app.models.trace import TraceType
from app.models.user import User
from app.schemas.requirement import RequirementCreate, RequirementUpdate
from app.services import trace_service
from app.services.approval import confirm_password, require_password, verify_user_password
from app.services.audit_service import EventType, record_event
from app.services.id_generator import (
    SYSTEM_REQUIREMENT_PREFIX,
    USER_REQUIREMENT_PREFIX,
    next_id,
)
from app.utils.pagination import PaginationMeta, paginate

APPROVED = ItemStatus.APPROVED.value
DRAFT = ItemStatus.DRAFT.value


class RequirementService:
    """CRUD and approval workflow for one approvable item table"""

    label = "Requirement"
    event_type = EventType.REQUIREMENTS
    default_sort = "lastModified"
    fallback_sort = "id"
    fallback_order = "asc"
    search_description = False
    editable_fields: Tuple[str, ...] = ("title", "description")

    def __init__(self, model: Type, prefix: str, aggregate_type: str, trace_type: str):
        self.model = model
        self.prefix = prefix
        self.aggregate_type = aggregate_type
        self.trace_type = trace_type

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def sort_columns(self) -> Dict[str, Any]:
        m = self.model
        return {
            "id": m.id,
            "title": func.lower(m.title),
            "createdAt": m.created_at,
            "lastModified": func.coalesce(m.last_modified, m.created_at),
            "approvedAt": m.approved_at,
            "status": m.status,
        }

    def active(self):
        return select(self.model).where(self.model.deleted_at.is_(None))

    async def list(
        self,
        db: AsyncSession,
        status: Optional[str] = None,
        search: Optional[str] = None,
        sort: Optional[str] = None,
        order: Optional[str] = "desc",
        page: int = 1,
        limit: Optional[int] = None,
    ) -> Tuple[List[Any], PaginationMeta]:
        m = self.model
        query = self.active()

        if status and status != "all":
            query = query.where(m.status == status)
        if search:
            pattern = f"%{search.strip()}%"
            conditions = [m.id.ilike(pattern), m.title.ilike(pattern)]
            if self.search_description:
                conditions.append(m.description.ilike(pattern))
            query = query.where(or_(*conditions))

        columns = self.sort_columns()
        column = columns.get(sort or self.default_sort, columns[self.fallback_sort])
        order = (order or "").lower()
        if order not in ("asc", "desc"):
            order = self.fallback_order
        direction = desc if order == "desc" else asc
        query = query.order_by(direction(column), m.id)

        return await paginate(db, query, page, limit)

    async def get(self, db: AsyncSession, item_id: str):
        """Fetch a live item with fresh state, raising 404 if missing or deleted"""
        result = await db.execute(
            self.active()
            .where(self.model.id == item_id.upper())
            .execution_options(populate_existing=True)
        )
        item = result.scalar_one_or_none()
        if item is None:
            raise ResourceNotFoundError(f"{self.label} not found")
        return item

    async def ensure_unique_title(self, db: AsyncSession, title: str, exclude_id: Optional[str] = None) -> None:
        query = self.active().where(func.lower(self.model.title) == title.lower())
        if exclude_id:
            query = query.where(self.model.id != exclude_id)
        if (await db.execute(query.limit(1))).scalar_one_or_none() is not None:
            raise ConflictError(f"A {self.label.lower()} with this title already exists")

    async def downstream(self, db: AsyncSession, item_id: str) -> List[SystemRequirement]:
        """Live system requirements this item traces to"""
        item = await self.get(db, item_id)
        return await trace_service.traced_items(db, item.id, self.trace_type, TraceType.SYSTEM.value)

    # ------------------------------------------------------------------
    # Field mapping (overridden by risk records)
    # ------------------------------------------------------------------

    def creation_fields(self, payload: RequirementCreate) -> Dict[str, Any]:
        return {"title": payload.title, "description": payload.description}

    def provided_fields(self, payload: RequirementUpdate) -> List[str]:
        """Editable fields present in the request, changed or not"""
        return [field for field in self.editable_fields if getattr(payload, field) is not None]

    def update_fields(self, item: Any, payload: RequirementUpdate) -> Dict[str, Any]:
        """Column changes requested by an update, excluding workflow fields"""
        changes = {}
        for field in self.editable_fields:
            value = getattr(payload, field)
            if value is not None and value != getattr(item, field):
                changes[field] = value
        return changes

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def _record(self, db: AsyncSession, suffix: str, item: Any, user: User,
                      data: Optional[Dict[str, Any]] = None) -> None:
        await record_event(
            db, self.event_type, f"{self.aggregate_type}{suffix}", self.aggregate_type, item.id,
            user=user, event_data=data,
        )

    def _mark_approved(self, item: Any, user: User, notes: Optional[str], now: datetime) -> None:
        item.status = APPROVED
        item.revision = (item.revision or 0) + 1
        item.approved_at = now
        item.approved_by = user.id
        item.approval_notes = notes

    async def create(self, db: AsyncSession, user: User, payload: RequirementCreate):
        wants_approval = payload.status == APPROVED
        if wants_approval:
            confirm_password(user, payload.password, "Password is required to create in approved status")

        await self.ensure_unique_title(db, payload.title)

        now = datetime.utcnow()
        item = self.model(
            id=await next_id(db, self.prefix),
            status=DRAFT,
            revision=0,
            created_by=user.id,
            created_at=now,
            **self.creation_fields(payload),
        )
        if wants_approval:
            self._mark_approved(item, user, payload.approval_notes, now)
        db.add(item)
        await db.flush()

        await self._record(db, "Created", item, user, {"title": item.title, "status": item.status})
        if wants_approval:
            await self._record(db, "Approved", item, user, {"revision": item.revision})

        await db.commit()
        return await self.get(db, item.id)

    async def update(self, db: AsyncSession, user: User, item_id: str, payload: RequirementUpdate):
        item = await self.get(db, item_id)
        was_approved = item.is_approved
        wants_approval = payload.status == APPROVED

        if was_approved or wants_approval:
            confirm_password(user, payload.password, "Password required")

        changes = self.update_fields(item, payload)
        if "title" in changes:
            await self.ensure_unique_title(db, changes["title"], exclude_id=item.id)

        status_change = payload.status is not None and payload.status != item.status
        if not self.provided_fields(payload) and not status_change:
            raise BadRequestError("No valid fields to update")

        for field, value in changes.items():
            setattr(item, field, value)

        now = datetime.utcnow()
        reverted = False
        if wants_approval:
            self._mark_approved(item, user, payload.approval_notes, now)
        elif was_approved:
            item.status = DRAFT
            item.approved_at = None
            item.approved_by = None
            reverted = True

        item.last_modified = now
        item.modified_by = user.id
        await db.flush()

        await self._record(db, "Updated", item, user, {"changes": sorted(changes)})
        if wants_approval:
            await self._record(db, "Approved", item, user, {"revision": item.revision})
        elif reverted:
            await self._record(db, "RevertedToDraft", item, user, {"revision": item.revision})

        await db.commit()
        return await self.get(db, item.id)

    async def approve(self, db: AsyncSession, user: User, item_id: str,
                      password: Optional[str], approval_notes: Optional[str] = None):
        require_password(password)
        item = await self.get(db, item_id)
        if item.is_approved:
            raise BadRequestError(f"{self.label} is already approved")
        verify_user_password(user, password)

        now = datetime.utcnow()
        self._mark_approved(item, user, approval_notes, now)
        item.last_modified = now
        item.modified_by = user.id
        await db.flush()

        await self._record(db, "Approved", item, user, {
            "revision": item.revision,
            "approvalNotes": approval_notes,
        })
        await db.commit()
        return await self.get(db, item.id)

    async def delete(self, db: AsyncSession, user: User, item_id: str, password: Optional[str] = None) -> None:
        if password:
            verify_user_password(user, password)
        item = await self.get(db, item_id)

        now = datetime.utcnow()
        item.deleted_at = now
        item.last_modified = now
        item.modified_by = user.id
        await db.flush()

        await self._record(db, "Deleted", item, user, {"title": item.title})
        await db.commit()


user_requirement_service = RequirementService(
    UserRequirement, USER_REQUIREMENT_PREFIX, "UserRequirement", TraceType.USER.value
)
system_requirement_service = RequirementService(
    SystemRequirement, SYSTEM_REQUIREMENT_PREFIX, "SystemRequirement", TraceType.SYSTEM.value
)
