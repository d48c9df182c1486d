"""
Student records, always pinned to the tenant's active session.

Every write re-resolves the active session and runs the guards in a fixed order:
tenant writable, record in active session, class in active session, class not frozen,
admission_no unique within the session. The unique constraint
uq_student_admission_no_per_session is the final word when two requests race.
"""

import math
from typing import Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.sessions.service import get_active_session
from app.core.enums import GuardOperation
from app.core.exceptions import ConflictError, InvalidStateError, NotFoundError
from app.core.guards import (
    CLASS_NOT_FOUND,
    assert_class_in_session,
    assert_class_not_frozen,
    assert_record_in_active_session,
    assert_tenant_writable,
    get_class_for_tenant,
)
from app.core.models import AcademicSession, Student
from app.db.atomic import commit_or_conflict

from .schemas import StudentCreate, StudentPaginatedResponse, StudentResponse, StudentUpdate

STUDENT_NOT_FOUND = "Student not found"
ADMISSION_NO_EXISTS = "Admission number already exists for this school in the active session"


def student_to_response(s: Student) -> StudentResponse:
    return StudentResponse(
        id=s.id,
        tenant_id=s.tenant_id,
        session_id=s.session_id,
        class_id=s.class_id,
        admission_no=s.admission_no,
        name=s.name,
        dob=s.dob,
        father_name=s.father_name,
        mother_name=s.mother_name,
        mobile=s.mobile,
        address=s.address,
        aadhaar=s.aadhaar,
        photo_url=s.photo_url,
        status=s.status,
        created_at=s.created_at,
        updated_at=s.updated_at,
    )


async def admission_no_taken(
    db: AsyncSession,
    tenant_id: UUID,
    session_id: UUID,
    admission_no: str,
    exclude_student_id: Optional[UUID] = None,
) -> bool:
    stmt = select(Student.id).where(
        Student.tenant_id == tenant_id,
        Student.session_id == session_id,
        Student.admission_no == admission_no,
    )
    if exclude_student_id is not None:
        stmt = stmt.where(Student.id != exclude_student_id)
    result = await db.execute(stmt.limit(1))
    return result.scalar_one_or_none() is not None


async def create_student(
    db: AsyncSession,
    tenant_id: UUID,
    payload: StudentCreate,
) -> StudentResponse:
    await assert_tenant_writable(db, tenant_id)
    active_session = await get_active_session(db, tenant_id)

    school_class = await get_class_for_tenant(db, tenant_id, payload.class_id)
    if not school_class:
        raise NotFoundError(CLASS_NOT_FOUND)
    assert_class_in_session(school_class, active_session)
    assert_class_not_frozen(school_class, GuardOperation.CREATE)

    admission_no = payload.admission_no.strip()
    if await admission_no_taken(db, tenant_id, active_session.id, admission_no):
        raise ConflictError(ADMISSION_NO_EXISTS)

    data = payload.model_dump(exclude={"admission_no", "class_id"})
    student = Student(
        **data,
        tenant_id=tenant_id,
        session_id=active_session.id,
        class_id=school_class.id,
        admission_no=admission_no,
        status="ACTIVE",
    )
    db.add(student)
    await commit_or_conflict(db, ADMISSION_NO_EXISTS)
    await db.refresh(student)
    return student_to_response(student)


async def _load_for_mutation(
    db: AsyncSession,
    tenant_id: UUID,
    student_id: UUID,
    operation: GuardOperation,
) -> Tuple[Student, AcademicSession]:
    """Scoped load plus the session and freeze guards shared by update and delete."""
    await assert_tenant_writable(db, tenant_id)
    active_session = await get_active_session(db, tenant_id)

    result = await db.execute(
        select(Student).where(
            Student.id == student_id,
            Student.tenant_id == tenant_id,
            Student.status == "ACTIVE",
        )
    )
    student = result.scalar_one_or_none()
    if not student:
        # Same message whether the id is unknown or owned by another school
        raise NotFoundError(STUDENT_NOT_FOUND)

    verb = "delete" if operation is GuardOperation.DELETE else "modify"
    await assert_record_in_active_session(db, student.session_id, active_session, "student", verb)

    school_class = await get_class_for_tenant(db, tenant_id, student.class_id, active_only=False)
    if not school_class:
        raise NotFoundError(CLASS_NOT_FOUND)
    assert_class_in_session(school_class, active_session)
    assert_class_not_frozen(school_class, operation)
    return student, active_session


async def update_student(
    db: AsyncSession,
    tenant_id: UUID,
    student_id: UUID,
    payload: StudentUpdate,
) -> StudentResponse:
    student, active_session = await _load_for_mutation(db, tenant_id, student_id, GuardOperation.UPDATE)
    changes = payload.model_dump(exclude_unset=True)
    # Session assignment is immutable; promotion creates a new record instead
    changes.pop("session_id", None)

    new_class_id = changes.get("class_id")
    if new_class_id is not None and new_class_id != student.class_id:
        new_class = await get_class_for_tenant(db, tenant_id, new_class_id)
        if not new_class:
            raise NotFoundError(CLASS_NOT_FOUND)
        assert_class_in_session(
            new_class,
            active_session,
            "Cannot assign student to a class from an inactive session",
        )
        assert_class_not_frozen(new_class, GuardOperation.ASSIGN)
    elif "class_id" in changes and new_class_id is None:
        changes.pop("class_id")

    if changes.get("admission_no") is not None:
        changes["admission_no"] = changes["admission_no"].strip()
        if changes["admission_no"] != student.admission_no and await admission_no_taken(
            db, tenant_id, active_session.id, changes["admission_no"], exclude_student_id=student.id
        ):
            raise ConflictError(ADMISSION_NO_EXISTS)

    for field, value in changes.items():
        if value is None and field in ("admission_no", "name"):
            continue
        setattr(student, field, value)

    await commit_or_conflict(db, ADMISSION_NO_EXISTS)
    await db.refresh(student)
    return student_to_response(student)


async def delete_student(
    db: AsyncSession,
    tenant_id: UUID,
    student_id: UUID,
) -> None:
    """Hard delete, only for students of the active session in an unfrozen class."""
    student, _ = await _load_for_mutation(db, tenant_id, student_id, GuardOperation.DELETE)
    await db.delete(student)
    await db.commit()


async def get_student(
    db: AsyncSession,
    tenant_id: UUID,
    student_id: UUID,
) -> StudentResponse:
    """Read one student of any session (historical records are readable)."""
    result = await db.execute(
        select(Student).where(
            Student.id == student_id,
            Student.tenant_id == tenant_id,
        )
    )
    student = result.scalar_one_or_none()
    if not student:
        raise NotFoundError(STUDENT_NOT_FOUND)
    return student_to_response(student)


async def list_students(
    db: AsyncSession,
    tenant_id: UUID,
    class_id: Optional[UUID] = None,
    page: int = 1,
    page_size: int = 20,
) -> StudentPaginatedResponse:
    """Students of the active session, optionally narrowed to one of its classes."""
    active_session = await get_active_session(db, tenant_id)
    filters = [
        Student.tenant_id == tenant_id,
        Student.session_id == active_session.id,
        Student.status == "ACTIVE",
    ]
    if class_id is not None:
        school_class = await get_class_for_tenant(db, tenant_id, class_id, active_only=False)
        if not school_class:
            raise NotFoundError("Class does not belong to your school")
        if school_class.session_id != active_session.id:
            raise InvalidStateError("Class does not belong to the active session")
        filters.append(Student.class_id == class_id)

    total = (await db.execute(select(func.count(Student.id)).where(*filters))).scalar_one()
    result = await db.execute(
        select(Student)
        .where(*filters)
        .order_by(Student.admission_no)
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return StudentPaginatedResponse(
        items=[student_to_response(s) for s in result.scalars().all()],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=math.ceil(total / page_size) if total else 0,
    )
