"""Teacher records. Class assignment changes are delegated to the assignment engine."""

import math
from typing import Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.sessions.service import get_active_session
from app.core.enums import GuardOperation, TeacherStatus
from app.core.exceptions import ConflictError, InvalidStateError, NotFoundError
from app.core.guards import (
    CLASS_NOT_FOUND,
    assert_class_not_frozen,
    assert_record_in_active_session,
    assert_tenant_writable,
    get_class_for_tenant,
)
from app.core.models import AcademicSession, SchoolClass, Teacher
from app.db.atomic import commit_or_conflict

from . import assignment
from .schemas import TeacherCreate, TeacherPaginatedResponse, TeacherResponse, TeacherUpdate

TEACHER_NOT_FOUND = "Teacher not found"


def _to_response(t: Teacher) -> TeacherResponse:
    return TeacherResponse(
        id=t.id,
        tenant_id=t.tenant_id,
        user_id=t.user_id,
        name=t.name,
        email=t.email,
        mobile=t.mobile,
        photo_url=t.photo_url,
        class_id=t.class_id,
        session_id=t.session_id,
        status=t.status,
        created_at=t.created_at,
        updated_at=t.updated_at,
    )


async def create_teacher(
    db: AsyncSession,
    tenant_id: UUID,
    payload: TeacherCreate,
) -> TeacherResponse:
    await assert_tenant_writable(db, tenant_id)
    active_session = await get_active_session(db, tenant_id)
    email = payload.email.lower()

    school_class: Optional[SchoolClass] = None
    if payload.class_id is not None:
        school_class = await assignment.resolve_assignable_class(db, tenant_id, payload.class_id, active_session)
        await assignment.check_assignment(db, tenant_id, email, school_class)

    if payload.user_id is not None:
        linked = await db.execute(select(Teacher.id).where(Teacher.user_id == payload.user_id))
        if linked.scalar_one_or_none():
            raise ConflictError("This account is already linked to another teacher")

    teacher = Teacher(
        tenant_id=tenant_id,
        user_id=payload.user_id,
        name=payload.name.strip(),
        email=email,
        mobile=payload.mobile,
        photo_url=payload.photo_url,
        class_id=school_class.id if school_class else None,
        session_id=school_class.session_id if school_class else None,
        status="ACTIVE",
    )
    db.add(teacher)
    await commit_or_conflict(db, assignment.ASSIGNMENT_CONFLICT)
    await db.refresh(teacher)
    return _to_response(teacher)


async def _load_for_mutation(
    db: AsyncSession,
    tenant_id: UUID,
    teacher_id: UUID,
    verb: str,
) -> Tuple[Teacher, AcademicSession, Optional[SchoolClass]]:
    """Scoped load; a teacher assigned to a class outside the active session is read-only."""
    await assert_tenant_writable(db, tenant_id)
    active_session = await get_active_session(db, tenant_id)

    result = await db.execute(
        select(Teacher).where(
            Teacher.id == teacher_id,
            Teacher.tenant_id == tenant_id,
            Teacher.status == "ACTIVE",
        )
    )
    teacher = result.scalar_one_or_none()
    if not teacher:
        raise NotFoundError(TEACHER_NOT_FOUND)

    current_class: Optional[SchoolClass] = None
    if teacher.class_id is not None:
        current_class = await get_class_for_tenant(db, tenant_id, teacher.class_id, active_only=False)
        if not current_class:
            raise NotFoundError(CLASS_NOT_FOUND)
        await assert_record_in_active_session(
            db, current_class.session_id, active_session, "teacher assigned to a class", verb
        )
    return teacher, active_session, current_class


async def update_teacher(
    db: AsyncSession,
    tenant_id: UUID,
    teacher_id: UUID,
    payload: TeacherUpdate,
) -> TeacherResponse:
    teacher, active_session, current_class = await _load_for_mutation(db, tenant_id, teacher_id, "modify")
    changes = payload.model_dump(exclude_unset=True)
    for field in ("name", "email"):
        if field in changes and changes[field] is None:
            changes.pop(field)
    if "email" in changes:
        changes["email"] = changes["email"].lower()
    if "name" in changes:
        changes["name"] = changes["name"].strip()
    email = changes.get("email", teacher.email)

    class_changing = "class_id" in changes and changes["class_id"] != teacher.class_id
    if class_changing and current_class is not None:
        # Moving a teacher out of a frozen class is a reassignment of that class
        assert_class_not_frozen(current_class, GuardOperation.ASSIGN)

    if class_changing and changes["class_id"] is not None:
        target = await assignment.resolve_assignable_class(db, tenant_id, changes["class_id"], active_session)
        await assignment.check_assignment(db, tenant_id, email, target, exclude_teacher_id=teacher.id)
        teacher = await assignment.reassign_teacher(db, teacher, target, changes)
        return _to_response(teacher)

    if class_changing:
        assignment.release_assignment(teacher)
        changes.pop("class_id")
    else:
        changes.pop("class_id", None)
        if email != teacher.email and current_class is not None:
            await assignment.check_assignment(
                db, tenant_id, email, current_class, exclude_teacher_id=teacher.id
            )

    for field, value in changes.items():
        setattr(teacher, field, value)
    await commit_or_conflict(db, assignment.ASSIGNMENT_CONFLICT)
    await db.refresh(teacher)
    return _to_response(teacher)


async def delete_teacher(
    db: AsyncSession,
    tenant_id: UUID,
    teacher_id: UUID,
) -> None:
    """Soft delete: status=INACTIVE and the class is released. A frozen class keeps its teacher."""
    teacher, _, current_class = await _load_for_mutation(db, tenant_id, teacher_id, "delete")
    if current_class is not None:
        assert_class_not_frozen(current_class, GuardOperation.ASSIGN)
    teacher.status = TeacherStatus.INACTIVE.value
    assignment.release_assignment(teacher)
    await db.commit()


async def get_teacher(
    db: AsyncSession,
    tenant_id: UUID,
    teacher_id: UUID,
) -> TeacherResponse:
    result = await db.execute(
        select(Teacher).where(
            Teacher.id == teacher_id,
            Teacher.tenant_id == tenant_id,
        )
    )
    teacher = result.scalar_one_or_none()
    if not teacher:
        raise NotFoundError(TEACHER_NOT_FOUND)
    return _to_response(teacher)


async def list_teachers(
    db: AsyncSession,
    tenant_id: UUID,
    class_id: Optional[UUID] = None,
    page: int = 1,
    page_size: int = 20,
) -> TeacherPaginatedResponse:
    """Active teachers assigned to classes of the active session."""
    active_session = await get_active_session(db, tenant_id)
    filters = [
        Teacher.tenant_id == tenant_id,
        Teacher.status == "ACTIVE",
    ]
    if class_id is not None:
        school_class = await get_class_for_tenant(db, tenant_id, class_id, active_only=False)
        if not school_class:
            raise NotFoundError("Class does not belong to your school")
        if school_class.session_id != active_session.id:
            raise InvalidStateError("Class does not belong to the active session")
        filters.append(Teacher.class_id == class_id)
    else:
        filters.append(
            Teacher.class_id.in_(
                select(SchoolClass.id).where(
                    SchoolClass.tenant_id == tenant_id,
                    SchoolClass.session_id == active_session.id,
                    SchoolClass.status == "ACTIVE",
                )
            )
        )

    total = (await db.execute(select(func.count(Teacher.id)).where(*filters))).scalar_one()
    result = await db.execute(
        select(Teacher)
        .where(*filters)
        .order_by(Teacher.name)
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return TeacherPaginatedResponse(
        items=[_to_response(t) for t in result.scalars().all()],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=math.ceil(total / page_size) if total else 0,
    )
