"""
Teacher-class assignment. Two invariants, both backed by partial unique indexes on teachers:

1. A class has at most one ACTIVE teacher (uq_teacher_per_class).
2. A teacher email holds at most one class per session (uq_teacher_email_per_session).

The pre-checks below only give early, readable errors. Reassignment vacates the target
class and assigns it as one unit through run_atomic; if the unit cannot complete, the
worst case is a vacated class with nobody assigned, never two teachers on one class.
"""

import logging
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import GuardOperation, TransactionMode
from app.core.exceptions import ConflictError, NotFoundError
from app.core.guards import (
    CLASS_NOT_FOUND,
    assert_class_in_session,
    assert_class_not_frozen,
    get_class_for_tenant,
)
from app.core.models import AcademicSession, SchoolClass, Teacher
from app.db.atomic import resolve_mode, run_atomic

logger = logging.getLogger(__name__)

ALREADY_ASSIGNED = "A teacher is already assigned to this class. Only one teacher per class is allowed."
ONE_CLASS_PER_SESSION = (
    "This teacher is already assigned to a class in the active session. "
    "A teacher can only be assigned to one class per session."
)
ASSIGNMENT_CONFLICT = "Teacher assignment conflicts with an existing assignment. Please try again."


async def resolve_assignable_class(
    db: AsyncSession,
    tenant_id: UUID,
    class_id: UUID,
    active_session: AcademicSession,
) -> SchoolClass:
    """Target class must belong to the tenant and the active session, and must not be frozen."""
    school_class = await get_class_for_tenant(db, tenant_id, class_id)
    if not school_class:
        raise NotFoundError(CLASS_NOT_FOUND)
    assert_class_in_session(
        school_class,
        active_session,
        "Cannot assign teacher to a class from an inactive session",
    )
    assert_class_not_frozen(school_class, GuardOperation.ASSIGN)
    return school_class


async def check_assignment(
    db: AsyncSession,
    tenant_id: UUID,
    email: str,
    school_class: SchoolClass,
    exclude_teacher_id: Optional[UUID] = None,
) -> None:
    """
    Pre-check both invariants for putting `email` on `school_class`.
    exclude_teacher_id is the record being updated, so moving it from class A to class B
    in the same session is not reported as a double booking.
    """
    occupant_stmt = select(Teacher.id).where(
        Teacher.tenant_id == tenant_id,
        Teacher.class_id == school_class.id,
        Teacher.status == "ACTIVE",
    )
    if exclude_teacher_id is not None:
        occupant_stmt = occupant_stmt.where(Teacher.id != exclude_teacher_id)
    if (await db.execute(occupant_stmt.limit(1))).scalar_one_or_none():
        raise ConflictError(ALREADY_ASSIGNED)

    session_class_ids = select(SchoolClass.id).where(
        SchoolClass.tenant_id == tenant_id,
        SchoolClass.session_id == school_class.session_id,
    )
    booked_stmt = select(Teacher.id).where(
        Teacher.tenant_id == tenant_id,
        Teacher.email == email,
        Teacher.status == "ACTIVE",
        Teacher.class_id.in_(session_class_ids),
    )
    if exclude_teacher_id is not None:
        booked_stmt = booked_stmt.where(Teacher.id != exclude_teacher_id)
    if (await db.execute(booked_stmt.limit(1))).scalar_one_or_none():
        raise ConflictError(ONE_CLASS_PER_SESSION)


async def reassign_teacher(
    db: AsyncSession,
    teacher: Teacher,
    school_class: SchoolClass,
    changes: Optional[Dict[str, Any]] = None,
) -> Teacher:
    """
    (i) clear the class on any other teacher pointing at it, (ii) assign it to `teacher`
    together with any other field changes. Committed as one unit.
    """
    changes = dict(changes or {})
    changes.pop("class_id", None)
    if resolve_mode() is TransactionMode.SEQUENTIAL:
        logger.warning("Reassigning teacher %s to class %s without a transaction", teacher.id, school_class.id)

    async def vacate_target() -> None:
        await db.execute(
            update(Teacher)
            .where(
                Teacher.tenant_id == teacher.tenant_id,
                Teacher.class_id == school_class.id,
                Teacher.status == "ACTIVE",
                Teacher.id != teacher.id,
            )
            .values(class_id=None, session_id=None)
        )

    async def assign_target() -> None:
        for field, value in changes.items():
            setattr(teacher, field, value)
        teacher.class_id = school_class.id
        teacher.session_id = school_class.session_id
        await db.flush()

    await run_atomic(db, [vacate_target, assign_target], ASSIGNMENT_CONFLICT)
    await db.refresh(teacher)
    logger.info("Assigned teacher %s to class %s", teacher.id, school_class.id)
    return teacher


def release_assignment(teacher: Teacher) -> None:
    """Drop the class link; class_id and session_id always move together."""
    teacher.class_id = None
    teacher.session_id = None
