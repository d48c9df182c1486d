"""
Composable assert predicates shared by every mutating path.

Call order used by the services: tenant writable -> active session resolved ->
record's session is the active session -> class belongs to that session ->
class not frozen -> uniqueness pre-checks. Keeping the predicates here keeps
the invariant set auditable in one place.
"""

from typing import Optional, Union
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import GuardOperation
from app.core.exceptions import InvalidStateError, NotFoundError
from app.core.models import AcademicSession, SchoolClass, Tenant

CLASS_NOT_FOUND = "Class not found"

_FROZEN_MESSAGES = {
    GuardOperation.CREATE: "Cannot create student in a frozen class. Frozen classes cannot be modified.",
    GuardOperation.UPDATE: "Cannot update student in a frozen class. Frozen classes cannot be modified.",
    GuardOperation.DELETE: "Cannot delete student from a frozen class. Frozen classes cannot be modified.",
    GuardOperation.PROMOTE: "Cannot promote student from a frozen class",
    GuardOperation.ASSIGN: "Cannot assign to a frozen class",
    GuardOperation.MODIFY: "Cannot modify a frozen class. Frozen classes cannot be modified.",
}


def assert_class_not_frozen(
    school_class: Optional[SchoolClass],
    operation: Union[GuardOperation, str] = GuardOperation.MODIFY,
) -> SchoolClass:
    """Raise if the class is missing or frozen. The operation only picks the message."""
    if school_class is None:
        raise NotFoundError(CLASS_NOT_FOUND)
    if school_class.frozen:
        raise InvalidStateError(_FROZEN_MESSAGES[GuardOperation(operation)])
    return school_class


async def get_class_for_tenant(
    db: AsyncSession,
    tenant_id: UUID,
    class_id: UUID,
    active_only: bool = True,
) -> Optional[SchoolClass]:
    """Load a class strictly scoped by tenant; another tenant's class is indistinguishable from a missing one."""
    stmt = select(SchoolClass).where(
        SchoolClass.id == class_id,
        SchoolClass.tenant_id == tenant_id,
    )
    if active_only:
        stmt = stmt.where(SchoolClass.status == "ACTIVE")
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def resolve_and_assert_class_not_frozen(
    db: AsyncSession,
    tenant_id: UUID,
    class_id: UUID,
    operation: Union[GuardOperation, str] = GuardOperation.MODIFY,
) -> SchoolClass:
    school_class = await get_class_for_tenant(db, tenant_id, class_id)
    return assert_class_not_frozen(school_class, operation)


async def assert_tenant_writable(db: AsyncSession, tenant_id: UUID) -> Tenant:
    """Frozen or disabled institutions are read-only."""
    tenant = await db.get(Tenant, tenant_id)
    if not tenant:
        raise NotFoundError("Institution not found")
    if tenant.status != "ACTIVE":
        raise InvalidStateError("Institution is disabled; its data cannot be modified.")
    if tenant.frozen:
        raise InvalidStateError("Institution is frozen; its data cannot be modified.")
    return tenant


def assert_class_in_session(
    school_class: SchoolClass,
    session: AcademicSession,
    message: str = "Class does not belong to the active session",
) -> SchoolClass:
    if school_class.session_id != session.id:
        raise InvalidStateError(message)
    return school_class


async def assert_record_in_active_session(
    db: AsyncSession,
    record_session_id: Optional[UUID],
    active_session: AcademicSession,
    entity: str,
    verb: str = "modify",
) -> None:
    """
    Records are only writable while their session is the active one.
    The message says whether the record's session is archived or merely inactive.
    """
    if record_session_id == active_session.id:
        return
    record_session = await db.get(AcademicSession, record_session_id) if record_session_id else None
    if record_session is not None and record_session.archived:
        raise InvalidStateError(
            f"Cannot {verb} {entity} from an archived session. Archived sessions are read-only."
        )
    raise InvalidStateError(
        f"Cannot {verb} {entity} from an inactive session. Only records in the active session can be {_past(verb)}."
    )


def _past(verb: str) -> str:
    return {"modify": "modified", "delete": "deleted", "freeze": "frozen", "unfreeze": "unfrozen"}.get(verb, verb + "d")
