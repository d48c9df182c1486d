"""
Session lifecycle: create, activate, deactivate, archive, unarchive.

At most one session per tenant is active. The partial unique index
uq_active_session_per_tenant guarantees it at the store; the multi-row
sequences here (deactivate others, then activate one) go through
run_atomic so they commit as one unit, or in sequential mode fail with
ConflictError when the index fires.
"""

import logging
import math
from datetime import date, datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError, InvalidStateError, NotFoundError, ValidationError
from app.core.guards import assert_tenant_writable
from app.core.models import AcademicSession
from app.db.atomic import commit_or_conflict, run_atomic

from .schemas import SessionCreate, SessionPaginatedResponse, SessionResponse

logger = logging.getLogger(__name__)

SESSION_NOT_FOUND = "Session not found"
NAME_EXISTS = "Session name already exists for this school"
ACTIVE_CONFLICT = "Another session is already active for this school. Please try again."
NO_ACTIVE_SESSION = "No active session found for this school. Please activate a session first."
ACTIVE_IS_ARCHIVED = (
    "The active session is archived and cannot be used for data operations. "
    "Please activate a different session."
)


def _to_response(s: AcademicSession) -> SessionResponse:
    return SessionResponse(
        id=s.id,
        tenant_id=s.tenant_id,
        name=s.name,
        start_date=s.start_date,
        end_date=s.end_date,
        is_active=s.is_active,
        archived=s.archived,
        archived_at=s.archived_at,
        status=s.status,
        created_at=s.created_at,
        updated_at=s.updated_at,
    )


def _validate_dates(start_date: date, end_date: date) -> None:
    if start_date >= end_date:
        raise ValidationError("Start date must be before end date")


async def get_session_for_tenant(
    db: AsyncSession,
    tenant_id: UUID,
    session_id: UUID,
) -> AcademicSession:
    """Tenant-scoped load. A session of another tenant reads as not found."""
    result = await db.execute(
        select(AcademicSession).where(
            AcademicSession.id == session_id,
            AcademicSession.tenant_id == tenant_id,
        )
    )
    session = result.scalar_one_or_none()
    if not session:
        raise NotFoundError(SESSION_NOT_FOUND)
    return session


async def create_session(
    db: AsyncSession,
    tenant_id: UUID,
    payload: SessionCreate,
) -> SessionResponse:
    """Create session. With activate=true the previous active session is deactivated in the same unit."""
    await assert_tenant_writable(db, tenant_id)
    _validate_dates(payload.start_date, payload.end_date)
    name = payload.name.strip()

    existing = await db.execute(
        select(AcademicSession.id).where(
            AcademicSession.tenant_id == tenant_id,
            AcademicSession.name == name,
        )
    )
    if existing.scalar_one_or_none():
        raise ConflictError(NAME_EXISTS)

    session = AcademicSession(
        tenant_id=tenant_id,
        name=name,
        start_date=payload.start_date,
        end_date=payload.end_date,
        is_active=False,
        archived=False,
        status="ACTIVE",
    )

    if not payload.activate:
        db.add(session)
        await commit_or_conflict(db, NAME_EXISTS)
        await db.refresh(session)
        return _to_response(session)

    async def deactivate_current() -> None:
        await db.execute(
            update(AcademicSession)
            .where(
                AcademicSession.tenant_id == tenant_id,
                AcademicSession.is_active.is_(True),
            )
            .values(is_active=False)
        )

    async def insert_active() -> None:
        session.is_active = True
        db.add(session)
        await db.flush()

    await run_atomic(
        db,
        [deactivate_current, insert_active],
        "Another session is already active or the session name already exists. Please try again.",
    )
    await db.refresh(session)
    logger.info("Created session %s (%s) as active for tenant %s", session.id, session.name, tenant_id)
    return _to_response(session)


async def list_sessions(
    db: AsyncSession,
    tenant_id: UUID,
    page: int = 1,
    page_size: int = 20,
) -> SessionPaginatedResponse:
    """List sessions for tenant, latest start_date first."""
    total = (
        await db.execute(select(func.count(AcademicSession.id)).where(AcademicSession.tenant_id == tenant_id))
    ).scalar_one()
    result = await db.execute(
        select(AcademicSession)
        .where(AcademicSession.tenant_id == tenant_id)
        .order_by(AcademicSession.start_date.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return SessionPaginatedResponse(
        items=[_to_response(s) for s in result.scalars().all()],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=math.ceil(total / page_size) if total else 0,
    )


async def get_session(
    db: AsyncSession,
    tenant_id: UUID,
    session_id: UUID,
) -> SessionResponse:
    return _to_response(await get_session_for_tenant(db, tenant_id, session_id))


async def activate_session(
    db: AsyncSession,
    tenant_id: UUID,
    session_id: UUID,
) -> SessionResponse:
    """Make this the tenant's only active session: deactivate all others, then activate it, as one unit."""
    await assert_tenant_writable(db, tenant_id)
    session = await get_session_for_tenant(db, tenant_id, session_id)
    if session.archived:
        raise InvalidStateError("Cannot activate an archived session. Unarchive it first.")
    if session.status != "ACTIVE":
        raise InvalidStateError("Cannot activate a disabled session")
    if session.is_active:
        return _to_response(session)

    async def deactivate_others() -> None:
        await db.execute(
            update(AcademicSession)
            .where(
                AcademicSession.tenant_id == tenant_id,
                AcademicSession.id != session_id,
                AcademicSession.is_active.is_(True),
            )
            .values(is_active=False)
        )

    async def activate_target() -> None:
        result = await db.execute(
            update(AcademicSession)
            .where(
                AcademicSession.id == session_id,
                AcademicSession.tenant_id == tenant_id,
                AcademicSession.archived.is_(False),
            )
            .values(is_active=True)
        )
        if result.rowcount == 0:
            raise NotFoundError(SESSION_NOT_FOUND)

    await run_atomic(db, [deactivate_others, activate_target], ACTIVE_CONFLICT)
    await db.refresh(session)
    logger.info("Activated session %s (%s) for tenant %s", session.id, session.name, tenant_id)
    return _to_response(session)


async def deactivate_session(
    db: AsyncSession,
    tenant_id: UUID,
    session_id: UUID,
) -> SessionResponse:
    """Clear the active flag. Other sessions are untouched, so the tenant may be left with none active."""
    await assert_tenant_writable(db, tenant_id)
    session = await get_session_for_tenant(db, tenant_id, session_id)
    if not session.is_active:
        raise InvalidStateError("Session is already inactive")
    session.is_active = False
    await db.commit()
    await db.refresh(session)
    logger.info("Deactivated session %s for tenant %s", session.id, tenant_id)
    return _to_response(session)


async def archive_session(
    db: AsyncSession,
    tenant_id: UUID,
    session_id: UUID,
) -> SessionResponse:
    """Archive an inactive session. Archived sessions are read-only."""
    await assert_tenant_writable(db, tenant_id)
    session = await get_session_for_tenant(db, tenant_id, session_id)
    if session.is_active:
        raise InvalidStateError("Cannot archive an active session. Please deactivate it first.")
    if session.archived:
        raise InvalidStateError("Session is already archived")
    session.archived = True
    session.archived_at = datetime.utcnow()
    await db.commit()
    await db.refresh(session)
    logger.info("Archived session %s for tenant %s", session.id, tenant_id)
    return _to_response(session)


async def unarchive_session(
    db: AsyncSession,
    tenant_id: UUID,
    session_id: UUID,
) -> SessionResponse:
    """Unarchive a session. It stays inactive until explicitly activated."""
    await assert_tenant_writable(db, tenant_id)
    session = await get_session_for_tenant(db, tenant_id, session_id)
    if not session.archived:
        raise InvalidStateError("Session is not archived")
    session.archived = False
    session.archived_at = None
    await db.commit()
    await db.refresh(session)
    logger.info("Unarchived session %s for tenant %s", session.id, tenant_id)
    return _to_response(session)


async def get_active_session(
    db: AsyncSession,
    tenant_id: UUID,
) -> AcademicSession:
    """
    The tenant's active session, re-queried on every call (never cached).
    Raises InvalidStateError when there is none, or when the flagged session is archived.
    """
    session = await validate_single_active_session(db, tenant_id)
    if session is None:
        raise InvalidStateError(NO_ACTIVE_SESSION)
    if session.archived:
        raise InvalidStateError(ACTIVE_IS_ARCHIVED)
    return session


async def get_active_session_response(
    db: AsyncSession,
    tenant_id: UUID,
) -> SessionResponse:
    return _to_response(await get_active_session(db, tenant_id))


async def validate_single_active_session(
    db: AsyncSession,
    tenant_id: UUID,
) -> Optional[AcademicSession]:
    """Active session or None. More than one means the store constraint was bypassed."""
    result = await db.execute(
        select(AcademicSession).where(
            AcademicSession.tenant_id == tenant_id,
            AcademicSession.is_active.is_(True),
        )
    )
    active = result.scalars().all()
    if len(active) > 1:
        raise InvalidStateError(
            f"Multiple active sessions found for school {tenant_id}. "
            "This violates the single active session constraint."
        )
    return active[0] if active else None
