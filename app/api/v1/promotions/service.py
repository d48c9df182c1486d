"""
Promotion: copy students from a historical session into the active session.

The source row is never touched; each promoted student is a new row in the target
session. Students are processed one by one inside a single transaction, each in its
own SAVEPOINT, so one bad record is reported in `errors` without undoing the others.
In sequential mode (no multi-statement transactions) every student is committed on
its own and the batch is best effort; failures are still reported per student.
Only batch setup problems (bad sessions, bad target class, nothing to promote) raise.
"""

import logging
import math
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.sessions.service import get_session_for_tenant
from app.api.v1.students.schemas import StudentResponse
from app.api.v1.students.service import admission_no_taken, student_to_response
from app.core.enums import GuardOperation, TransactionMode
from app.core.exceptions import ConflictError, InvalidStateError, NotFoundError, ServiceError, ValidationError
from app.core.guards import assert_class_not_frozen, assert_tenant_writable
from app.core.models import SchoolClass, Student
from app.db.atomic import commit_or_conflict, resolve_mode, savepoint

from .schemas import (
    PromotionError,
    PromotionRequest,
    PromotionResult,
    SessionStudentsResponse,
    SessionSummary,
)

logger = logging.getLogger(__name__)

# Copied verbatim to the promoted record. Identity, scoping and class are resolved separately.
PROMOTED_FIELDS = (
    "name",
    "dob",
    "father_name",
    "mother_name",
    "mobile",
    "address",
    "aadhaar",
    "photo_url",
)

SUFFIX_LENGTH = 4


@dataclass(frozen=True)
class _SourceStudent:
    """Plain snapshot of a source row, so per-student rollbacks never touch expired ORM state."""

    id: UUID
    admission_no: str
    class_name: str
    class_frozen: bool
    name: str
    dob: Optional[date]
    father_name: Optional[str]
    mother_name: Optional[str]
    mobile: Optional[str]
    address: Optional[str]
    aadhaar: Optional[str]
    photo_url: Optional[str]

    def copied_fields(self) -> Dict[str, object]:
        return {field: getattr(self, field) for field in PROMOTED_FIELDS}


@dataclass(frozen=True)
class _TargetClass:
    id: UUID
    name: str
    frozen: bool


async def _select_students(
    db: AsyncSession,
    tenant_id: UUID,
    source_session_id: UUID,
    student_ids: Optional[List[UUID]],
) -> List[_SourceStudent]:
    stmt = (
        select(Student, SchoolClass)
        .join(SchoolClass, Student.class_id == SchoolClass.id)
        .where(
            Student.tenant_id == tenant_id,
            Student.session_id == source_session_id,
            Student.status == "ACTIVE",
        )
        .order_by(Student.admission_no)
    )
    requested = list(dict.fromkeys(student_ids)) if student_ids else []
    if requested:
        stmt = stmt.where(Student.id.in_(requested))

    rows = (await db.execute(stmt)).all()
    if requested:
        found = {student.id for student, _ in rows}
        missing = [str(sid) for sid in requested if sid not in found]
        if missing:
            raise ValidationError(f"Students not found in source session: {', '.join(missing)}")

    return [
        _SourceStudent(
            id=student.id,
            admission_no=student.admission_no,
            class_name=school_class.name,
            class_frozen=school_class.frozen,
            **{field: getattr(student, field) for field in PROMOTED_FIELDS},
        )
        for student, school_class in rows
    ]


async def _classes_by_name(
    db: AsyncSession,
    tenant_id: UUID,
    target_session_id: UUID,
) -> Dict[str, _TargetClass]:
    """Active classes of the target session keyed by name. On duplicate names the oldest class wins."""
    result = await db.execute(
        select(SchoolClass)
        .where(
            SchoolClass.tenant_id == tenant_id,
            SchoolClass.session_id == target_session_id,
            SchoolClass.status == "ACTIVE",
        )
        .order_by(SchoolClass.created_at, SchoolClass.id)
    )
    by_name: Dict[str, _TargetClass] = {}
    for c in result.scalars().all():
        by_name.setdefault(c.name, _TargetClass(id=c.id, name=c.name, frozen=c.frozen))
    return by_name


async def _resolve_admission_no(
    db: AsyncSession,
    tenant_id: UUID,
    target_session_id: UUID,
    admission_no: str,
    preserve: bool,
    suffix: str,
) -> str:
    if not await admission_no_taken(db, tenant_id, target_session_id, admission_no):
        return admission_no
    if preserve:
        raise ConflictError(f"Admission number {admission_no} already exists in target session")
    candidate = f"{admission_no}-{suffix}"
    if await admission_no_taken(db, tenant_id, target_session_id, candidate):
        raise ConflictError(f"Admission number {candidate} already exists in target session")
    return candidate


async def promote_students(
    db: AsyncSession,
    tenant_id: UUID,
    payload: PromotionRequest,
) -> PromotionResult:
    await assert_tenant_writable(db, tenant_id)
    source = await get_session_for_tenant(db, tenant_id, payload.source_session_id)
    target = await get_session_for_tenant(db, tenant_id, payload.target_session_id)

    if source.is_active:
        raise InvalidStateError(
            "Cannot promote students from an active session. Please deactivate the source session first."
        )
    if source.archived:
        raise InvalidStateError("Cannot promote students from an archived session")
    if not target.is_active:
        raise InvalidStateError("Target session must be active to promote students")
    if target.archived:
        raise InvalidStateError("Target session is archived and read-only")

    source_session_id = source.id
    target_session_id = target.id
    target_session_name = target.name
    suffix = target_session_name[:SUFFIX_LENGTH]

    sources = await _select_students(db, tenant_id, source_session_id, payload.student_ids)
    if not sources:
        raise InvalidStateError("No students found to promote")

    fixed_target: Optional[_TargetClass] = None
    classes_by_name: Dict[str, _TargetClass] = {}
    if payload.target_class_id is not None:
        result = await db.execute(
            select(SchoolClass).where(
                SchoolClass.id == payload.target_class_id,
                SchoolClass.tenant_id == tenant_id,
                SchoolClass.session_id == target_session_id,
            )
        )
        target_class = result.scalar_one_or_none()
        if not target_class:
            raise NotFoundError("Target class not found")
        if not payload.skip_frozen_check:
            assert_class_not_frozen(target_class, GuardOperation.ASSIGN)
        fixed_target = _TargetClass(id=target_class.id, name=target_class.name, frozen=target_class.frozen)
    else:
        classes_by_name = await _classes_by_name(db, tenant_id, target_session_id)

    mode = resolve_mode()
    if mode is TransactionMode.SEQUENTIAL:
        logger.warning(
            "Promoting %d students to session %s without a transaction; results are best effort",
            len(sources),
            target_session_id,
        )

    promoted: List[StudentResponse] = []
    errors: List[PromotionError] = []

    def fail(src: _SourceStudent, message: str) -> None:
        errors.append(PromotionError(student_id=src.id, student_name=src.name, error=message))

    for src in sources:
        if not payload.skip_frozen_check and src.class_frozen:
            fail(src, "Cannot promote student from a frozen class")
            continue

        destination = fixed_target or classes_by_name.get(src.class_name)
        if destination is None:
            fail(src, f"No equivalent class found in target session for {src.class_name}")
            continue
        if fixed_target is None and not payload.skip_frozen_check and destination.frozen:
            fail(src, f"Target class {destination.name} is frozen")
            continue

        new_student: Optional[Student] = None
        try:
            async with savepoint(
                db,
                f"Admission number {src.admission_no} already exists in target session",
                mode,
            ):
                admission_no = await _resolve_admission_no(
                    db,
                    tenant_id,
                    target_session_id,
                    src.admission_no,
                    payload.preserve_admission_numbers,
                    suffix,
                )
                new_student = Student(
                    **src.copied_fields(),
                    tenant_id=tenant_id,
                    session_id=target_session_id,
                    class_id=destination.id,
                    admission_no=admission_no,
                    status="ACTIVE",
                )
                db.add(new_student)
                await db.flush()
        except ServiceError as e:
            fail(src, e.message)
            continue
        except SQLAlchemyError:
            logger.warning("Database error promoting student %s", src.id, exc_info=True)
            fail(src, "Unknown error during promotion")
            continue
        promoted.append(student_to_response(new_student))

    if mode is TransactionMode.ATOMIC:
        await commit_or_conflict(db, "Promotion conflicted with a concurrent change. Please try again.")

    logger.info(
        "Promoted %d of %d students from session %s to %s (%d errors)",
        len(promoted),
        len(sources),
        source_session_id,
        target_session_id,
        len(errors),
    )
    return PromotionResult(
        promoted_count=len(promoted),
        total_count=len(sources),
        promoted_students=promoted,
        errors=errors,
    )


async def list_students_by_session(
    db: AsyncSession,
    tenant_id: UUID,
    session_id: UUID,
    class_id: Optional[UUID] = None,
    page: int = 1,
    page_size: int = 20,
) -> SessionStudentsResponse:
    """Historical view: students of any session of the tenant, including archived ones."""
    session = await get_session_for_tenant(db, tenant_id, session_id)
    filters = [
        Student.tenant_id == tenant_id,
        Student.session_id == session.id,
    ]
    if class_id is not None:
        result = await db.execute(
            select(SchoolClass.id).where(
                SchoolClass.id == class_id,
                SchoolClass.tenant_id == tenant_id,
                SchoolClass.session_id == session.id,
            )
        )
        if not result.scalar_one_or_none():
            raise NotFoundError("Class does not belong to your school or the specified session")
        filters.append(Student.class_id == class_id)

    total = (await db.execute(select(func.count(Student.id)).where(*filters))).scalar_one()
    result = await db.execute(
        select(Student)
        .where(*filters)
        .order_by(Student.admission_no)
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return SessionStudentsResponse(
        session=SessionSummary(
            id=session.id,
            name=session.name,
            is_active=session.is_active,
            archived=session.archived,
        ),
        items=[student_to_response(s) for s in result.scalars().all()],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=math.ceil(total / page_size) if total else 0,
    )
