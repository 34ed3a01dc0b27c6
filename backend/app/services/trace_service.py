"""
Traceability graph.

Traces live in one table and point at items in five different tables. The
kind of item behind an id is read from its prefix (UR-, SR-, RISK-, TC-,
TRES-), and every read hides traces whose other end has been soft deleted.
"""
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import and_, desc, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import BadRequestError, ConflictError, ResourceNotFoundError, ValidationError
from app.core.logging_config import logger
from app.models.requirement import SystemRequirement, UserRequirement
from app.models.risk import RiskRecord
from app.models.testing import TestCase, TestResult
from app.models.trace import Trace, TraceType
from app.models.user import User
from app.services.audit_service import EventType, record_event

# Longest prefix first so "TRES-" is not read as a test case
PREFIX_TYPES: List[Tuple[str, str]] = [
    ("TRES-", TraceType.TESTRESULT.value),
    ("RISK-", TraceType.RISK.value),
    ("UR-", TraceType.USER.value),
    ("SR-", TraceType.SYSTEM.value),
    ("TC-", TraceType.TESTCASE.value),
]

TRACEABLE_MODELS = {
    TraceType.USER.value: UserRequirement,
    TraceType.SYSTEM.value: SystemRequirement,
    TraceType.RISK.value: RiskRecord,
    TraceType.TESTCASE.value: TestCase,
    TraceType.TESTRESULT.value: TestResult,
}

MANUAL_TRACE_TYPES = {
    TraceType.USER.value,
    TraceType.SYSTEM.value,
    TraceType.RISK.value,
    TraceType.TESTCASE.value,
}

ItemRef = Tuple[str, str]  # (type, id)


def requirement_type(item_id: str) -> str:
    """Infer the trace type of an item from its id prefix"""
    upper = (item_id or "").upper()
    for prefix, item_type in PREFIX_TYPES:
        if upper.startswith(prefix):
            return item_type
    return TraceType.SYSTEM.value


async def find_item(db: AsyncSession, item_id: str, item_type: Optional[str] = None):
    """Return the live (not deleted) item behind an id, or None"""
    item_type = item_type or requirement_type(item_id)
    model = TRACEABLE_MODELS.get(item_type)
    if model is None:
        return None

    query = select(model).where(model.id == item_id)
    if item_type != TraceType.TESTRESULT.value:
        query = query.where(model.deleted_at.is_(None))
    return (await db.execute(query)).scalar_one_or_none()


async def load_items(db: AsyncSession, refs: Iterable[ItemRef]) -> Dict[ItemRef, Any]:
    """Batch-load live items for a set of (type, id) references"""
    ids_by_type: Dict[str, set] = {}
    for item_type, item_id in refs:
        ids_by_type.setdefault(item_type, set()).add(item_id)

    items: Dict[ItemRef, Any] = {}
    for item_type, ids in ids_by_type.items():
        model = TRACEABLE_MODELS.get(item_type)
        if model is None:
            continue
        query = select(model).where(model.id.in_(ids))
        if item_type != TraceType.TESTRESULT.value:
            query = query.where(model.deleted_at.is_(None))
        for item in (await db.execute(query)).scalars().all():
            items[(item_type, item.id)] = item
    return items


def describe_item(item: Any, item_type: str) -> Dict[str, Any]:
    """Title/description/status view of any traceable item"""
    if item_type == TraceType.TESTRESULT.value:
        return {
            "id": item.id,
            "title": f"Test Result: {item.result} - {item.test_run_name}",
            "description": f"Result from test run {item.test_run_id}",
            "status": item.result,
            "type": item_type,
        }
    return {
        "id": item.id,
        "title": item.title,
        "description": item.description,
        "status": item.status,
        "type": item_type,
    }


def _recency(item: Any) -> datetime:
    if isinstance(item, TestResult):
        return item.executed_at or item.created_at
    return item.last_modified or item.created_at


async def find_trace(db: AsyncSession, from_id: str, to_id: str,
                     from_type: str, to_type: str) -> Optional[Trace]:
    result = await db.execute(
        select(Trace).where(
            Trace.from_requirement_id == from_id,
            Trace.to_requirement_id == to_id,
            Trace.from_type == from_type,
            Trace.to_type == to_type,
        )
    )
    return result.scalar_one_or_none()


async def link(
    db: AsyncSession,
    from_id: str,
    to_id: str,
    user: Optional[User],
    from_type: Optional[str] = None,
    to_type: Optional[str] = None,
    system_generated: bool = False,
) -> Optional[Trace]:
    """Insert a trace unless an identical one exists; returns the new trace or None"""
    from_type = from_type or requirement_type(from_id)
    to_type = to_type or requirement_type(to_id)
    if await find_trace(db, from_id, to_id, from_type, to_type):
        return None

    trace = Trace(
        from_requirement_id=from_id,
        to_requirement_id=to_id,
        from_type=from_type,
        to_type=to_type,
        is_system_generated=system_generated,
        created_by=user.id if user else None,
        created_at=datetime.utcnow(),
    )
    db.add(trace)
    await db.flush()
    await record_event(
        db, EventType.TRACEABILITY, "TraceCreated", "Trace", f"{from_id}->{to_id}",
        user=user,
        event_data={
            "fromId": from_id,
            "toId": to_id,
            "fromType": from_type,
            "toType": to_type,
            "isSystemGenerated": system_generated,
        },
    )
    return trace


async def list_traces(db: AsyncSession) -> List[Dict[str, Any]]:
    """All traces whose endpoints are both live, newest first"""
    traces = (await db.execute(
        select(Trace).order_by(desc(Trace.created_at), desc(Trace.id))
    )).scalars().all()

    refs = set()
    for trace in traces:
        refs.add((trace.from_type, trace.from_requirement_id))
        refs.add((trace.to_type, trace.to_requirement_id))
    items = await load_items(db, refs)

    entries = []
    for trace in traces:
        source = items.get((trace.from_type, trace.from_requirement_id))
        target = items.get((trace.to_type, trace.to_requirement_id))
        if source is None or target is None:
            continue
        source_view = describe_item(source, trace.from_type)
        target_view = describe_item(target, trace.to_type)
        entries.append({
            "id": trace.id,
            "fromId": trace.from_requirement_id,
            "toId": trace.to_requirement_id,
            "fromType": trace.from_type,
            "toType": trace.to_type,
            "createdAt": trace.created_at,
            "isSystemGenerated": trace.is_system_generated,
            "createdByName": trace.created_by_name,
            "fromTitle": source_view["title"],
            "fromStatus": source_view["status"],
            "toTitle": target_view["title"],
            "toStatus": target_view["status"],
        })
    return entries


async def requirement_traces(db: AsyncSession, item_id: str) -> Dict[str, List[Dict[str, Any]]]:
    """Upstream (tracing to) and downstream (traced from) items of one item"""
    item_id = item_id.upper()
    item_type = requirement_type(item_id)
    if await find_item(db, item_id, item_type) is None:
        raise ResourceNotFoundError("Requirement not found")

    incoming = (await db.execute(
        select(Trace).where(Trace.to_requirement_id == item_id, Trace.to_type == item_type)
    )).scalars().all()
    outgoing = (await db.execute(
        select(Trace).where(Trace.from_requirement_id == item_id, Trace.from_type == item_type)
    )).scalars().all()

    refs = {(t.from_type, t.from_requirement_id) for t in incoming}
    refs |= {(t.to_type, t.to_requirement_id) for t in outgoing}
    items = await load_items(db, refs)

    upstream = []
    for trace in incoming:
        source = items.get((trace.from_type, trace.from_requirement_id))
        if source is None:
            continue
        entry = describe_item(source, trace.from_type)
        entry["isSystemGenerated"] = trace.is_system_generated
        entry["executedAt"] = source.executed_at if isinstance(source, TestResult) else None
        entry["testRunId"] = source.test_run_id if isinstance(source, TestResult) else None
        upstream.append((source, entry))

    downstream = []
    for trace in outgoing:
        target = items.get((trace.to_type, trace.to_requirement_id))
        if target is None:
            continue
        downstream.append((target, describe_item(target, trace.to_type)))

    upstream.sort(key=lambda pair: _recency(pair[0]), reverse=True)
    downstream.sort(key=lambda pair: _recency(pair[0]), reverse=True)
    return {
        "upstreamTraces": [entry for _, entry in upstream],
        "downstreamTraces": [entry for _, entry in downstream],
    }


async def traced_items(db: AsyncSession, from_id: str, from_type: str, to_type: str) -> List[Any]:
    """Live items of `to_type` that `from_id` traces to, ordered by id"""
    model = TRACEABLE_MODELS[to_type]
    query = (
        select(model)
        .join(Trace, and_(Trace.to_requirement_id == model.id, Trace.to_type == to_type))
        .where(Trace.from_requirement_id == from_id, Trace.from_type == from_type)
        .order_by(model.id)
    )
    if to_type != TraceType.TESTRESULT.value:
        query = query.where(model.deleted_at.is_(None))
    return list((await db.execute(query)).scalars().all())


async def tracing_items(db: AsyncSession, to_id: str, to_type: str, from_types: Iterable[str]) -> List[Tuple[Trace, Any]]:
    """(trace, live source item) pairs for traces pointing at `to_id` from the given types"""
    traces = (await db.execute(
        select(Trace)
        .where(Trace.to_requirement_id == to_id, Trace.to_type == to_type)
        .where(or_(*[Trace.from_type == t for t in from_types]))
        .order_by(desc(Trace.created_at))
    )).scalars().all()
    items = await load_items(db, {(t.from_type, t.from_requirement_id) for t in traces})
    return [
        (trace, items[(trace.from_type, trace.from_requirement_id)])
        for trace in traces
        if (trace.from_type, trace.from_requirement_id) in items
    ]


async def create_trace(db: AsyncSession, user: User, from_id: Optional[str], to_id: Optional[str],
                       from_type: Optional[str], to_type: Optional[str]) -> Trace:
    """Create a user-defined trace between two live items"""
    if not (from_id and to_id and from_type and to_type):
        raise ValidationError("All trace relationship fields are required")

    from_id, to_id = from_id.upper(), to_id.upper()
    from_type, to_type = from_type.lower(), to_type.lower()

    if TraceType.TESTRESULT.value in (from_type, to_type):
        raise BadRequestError(
            "Test result traces cannot be created manually. "
            "They are generated automatically when test runs are approved."
        )
    if from_type not in MANUAL_TRACE_TYPES or to_type not in MANUAL_TRACE_TYPES:
        raise ValidationError(
            "Invalid trace type. Must be one of: user, system, testcase, risk", field="fromType"
        )

    if await find_item(db, from_id, from_type) is None:
        raise ResourceNotFoundError(f"Source item {from_id} not found")
    if await find_item(db, to_id, to_type) is None:
        raise ResourceNotFoundError(f"Target item {to_id} not found")

    trace = await link(db, from_id, to_id, user, from_type, to_type)
    if trace is None:
        raise ConflictError("Trace relationship already exists")

    await db.commit()
    logger.info(f"[Traces] {user.email} linked {from_id} -> {to_id}")
    return trace


async def delete_trace(db: AsyncSession, user: User, from_id: str, to_id: str) -> None:
    from_id, to_id = from_id.upper(), to_id.upper()
    from_type, to_type = requirement_type(from_id), requirement_type(to_id)

    trace = await find_trace(db, from_id, to_id, from_type, to_type)
    if trace is None:
        raise ResourceNotFoundError("Trace relationship not found")

    await db.delete(trace)
    await record_event(
        db, EventType.TRACEABILITY, "TraceDeleted", "Trace", f"{from_id}->{to_id}",
        user=user,
        event_data={"fromId": from_id, "toId": to_id, "fromType": from_type, "toType": to_type},
    )
    await db.commit()
