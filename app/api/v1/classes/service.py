"""Classes live inside one academic session. Created in, listed from, and frozen only within the active session."""

import logging
import math
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.sessions.service import get_active_session
from app.core.exceptions import ConflictError, InvalidStateError, NotFoundError
from app.core.guards import (
    CLASS_NOT_FOUND,
    assert_record_in_active_session,
    assert_tenant_writable,
    get_class_for_tenant,
)
from app.core.models import SchoolClass
from app.db.atomic import commit_or_conflict

from .schemas import ClassCreate, ClassPaginatedResponse, ClassResponse

logger = logging.getLogger(__name__)

NAME_EXISTS = "Class name already exists for this session in your school"


def _class_to_response(c: SchoolClass) -> ClassResponse:
    return ClassResponse(
        id=c.id,
        tenant_id=c.tenant_id,
        session_id=c.session_id,
        name=c.name,
        frozen=c.frozen,
        status=c.status,
        created_at=c.created_at,
        updated_at=c.updated_at,
    )


async def create_class(
    db: AsyncSession,
    tenant_id: UUID,
    payload: ClassCreate,
) -> ClassResponse:
    """Create class pinned to the active session."""
    await assert_tenant_writable(db, tenant_id)
    active_session = await get_active_session(db, tenant_id)
    name = payload.name.strip()

    existing = await db.execute(
        select(SchoolClass.id).where(
            SchoolClass.tenant_id == tenant_id,
            SchoolClass.session_id == active_session.id,
            SchoolClass.name == name,
        )
    )
    if existing.scalar_one_or_none():
        raise ConflictError(NAME_EXISTS)

    obj = SchoolClass(
        tenant_id=tenant_id,
        session_id=active_session.id,
        name=name,
        frozen=False,
        status="ACTIVE",
    )
    db.add(obj)
    await commit_or_conflict(db, NAME_EXISTS)
    await db.refresh(obj)
    return _class_to_response(obj)


async def list_classes(
    db: AsyncSession,
    tenant_id: UUID,
    page: int = 1,
    page_size: int = 20,
) -> ClassPaginatedResponse:
    """Active classes of the active session only."""
    active_session = await get_active_session(db, tenant_id)
    filters = (
        SchoolClass.tenant_id == tenant_id,
        SchoolClass.session_id == active_session.id,
        SchoolClass.status == "ACTIVE",
    )
    total = (await db.execute(select(func.count(SchoolClass.id)).where(*filters))).scalar_one()
    result = await db.execute(
        select(SchoolClass)
        .where(*filters)
        .order_by(SchoolClass.name)
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return ClassPaginatedResponse(
        items=[_class_to_response(c) for c in result.scalars().all()],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=math.ceil(total / page_size) if total else 0,
    )


async def get_class(
    db: AsyncSession,
    tenant_id: UUID,
    class_id: UUID,
) -> ClassResponse:
    obj = await get_class_for_tenant(db, tenant_id, class_id)
    if not obj:
        raise NotFoundError(CLASS_NOT_FOUND)
    return _class_to_response(obj)


async def _load_for_freeze_toggle(
    db: AsyncSession,
    tenant_id: UUID,
    class_id: UUID,
    verb: str,
) -> SchoolClass:
    await assert_tenant_writable(db, tenant_id)
    active_session = await get_active_session(db, tenant_id)
    obj = await get_class_for_tenant(db, tenant_id, class_id)
    if not obj:
        # Don't reveal if class exists but belongs to a different school
        raise NotFoundError(CLASS_NOT_FOUND)
    await assert_record_in_active_session(db, obj.session_id, active_session, "class", verb)
    return obj


async def freeze_class(
    db: AsyncSession,
    tenant_id: UUID,
    class_id: UUID,
) -> ClassResponse:
    """Freeze a class of the active session. Its students become read-only."""
    obj = await _load_for_freeze_toggle(db, tenant_id, class_id, "freeze")
    if obj.frozen:
        raise InvalidStateError("Class is already frozen")
    obj.frozen = True
    await db.commit()
    await db.refresh(obj)
    logger.info("Froze class %s for tenant %s", obj.id, tenant_id)
    return _class_to_response(obj)


async def unfreeze_class(
    db: AsyncSession,
    tenant_id: UUID,
    class_id: UUID,
) -> ClassResponse:
    obj = await _load_for_freeze_toggle(db, tenant_id, class_id, "unfreeze")
    if not obj.frozen:
        raise InvalidStateError("Class is already unfrozen")
    obj.frozen = False
    await db.commit()
    await db.refresh(obj)
    logger.info("Unfroze class %s for tenant %s", obj.id, tenant_id)
    return _class_to_response(obj)
