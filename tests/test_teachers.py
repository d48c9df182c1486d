import random
from collections import Counter
from uuid import uuid4

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from app.api.v1.classes import service as class_service
from app.api.v1.teachers import assignment, service
from app.api.v1.teachers.schemas import TeacherCreate, TeacherUpdate
from app.core.config import settings
from app.core.exceptions import ConflictError, InvalidStateError, ServiceError
from app.core.models import Teacher


def _teacher(name: str, email: str, class_id=None) -> TeacherCreate:
    return TeacherCreate(name=name, email=email, class_id=class_id)


@pytest.mark.asyncio
async def test_reassign_moves_teacher_and_vacates_old_class(
    db_session, tenant_id, make_session, make_class
) -> None:
    await make_session("2024", activate=True)
    class_a = await make_class("10-A")
    class_b = await make_class("10-B")
    x = await service.create_teacher(db_session, tenant_id, _teacher("Meera", "meera@example.com", class_a.id))

    with pytest.raises(ConflictError) as exc:
        await service.create_teacher(db_session, tenant_id, _teacher("Meera", "Meera@example.com", class_b.id))
    assert exc.value.message == assignment.ONE_CLASS_PER_SESSION

    moved = await service.update_teacher(db_session, tenant_id, x.id, TeacherUpdate(class_id=class_b.id))
    assert moved.class_id == class_b.id

    on_a = await service.list_teachers(db_session, tenant_id, class_id=class_a.id)
    assert on_a.total == 0
    on_b = await service.list_teachers(db_session, tenant_id, class_id=class_b.id)
    assert [t.id for t in on_b.items] == [x.id]


@pytest.mark.asyncio
async def test_one_teacher_per_class(db_session, tenant_id, make_session, make_class) -> None:
    await make_session("2024", activate=True)
    class_a = await make_class("10-A")
    await service.create_teacher(db_session, tenant_id, _teacher("Meera", "meera@example.com", class_a.id))

    with pytest.raises(ConflictError) as exc:
        await service.create_teacher(db_session, tenant_id, _teacher("Arjun", "arjun@example.com", class_a.id))
    assert exc.value.message == assignment.ALREADY_ASSIGNED

    arjun = await service.create_teacher(db_session, tenant_id, _teacher("Arjun", "arjun@example.com"))
    with pytest.raises(ConflictError):
        await service.update_teacher(db_session, tenant_id, arjun.id, TeacherUpdate(class_id=class_a.id))


@pytest.mark.asyncio
async def test_release_and_soft_delete_free_the_class(db_session, tenant_id, make_session, make_class) -> None:
    await make_session("2024", activate=True)
    class_a = await make_class("10-A")
    class_b = await make_class("10-B")
    meera = await service.create_teacher(db_session, tenant_id, _teacher("Meera", "meera@example.com", class_a.id))
    arjun = await service.create_teacher(db_session, tenant_id, _teacher("Arjun", "arjun@example.com", class_b.id))

    released = await service.update_teacher(db_session, tenant_id, meera.id, TeacherUpdate(class_id=None))
    assert released.class_id is None
    assert released.session_id is None

    await service.delete_teacher(db_session, tenant_id, arjun.id)
    gone = await service.get_teacher(db_session, tenant_id, arjun.id)
    assert gone.status == "INACTIVE"
    assert gone.class_id is None

    ravi = await service.create_teacher(db_session, tenant_id, _teacher("Ravi", "ravi@example.com", class_b.id))
    assert ravi.class_id == class_b.id
    moved = await service.update_teacher(db_session, tenant_id, meera.id, TeacherUpdate(class_id=class_a.id))
    assert moved.class_id == class_a.id


@pytest.mark.asyncio
async def test_frozen_class_blocks_reassignment(db_session, tenant_id, make_session, make_class) -> None:
    await make_session("2024", activate=True)
    class_a = await make_class("10-A")
    class_b = await make_class("10-B")
    meera = await service.create_teacher(db_session, tenant_id, _teacher("Meera", "meera@example.com", class_a.id))
    arjun = await service.create_teacher(db_session, tenant_id, _teacher("Arjun", "arjun@example.com"))

    await class_service.freeze_class(db_session, tenant_id, class_b.id)
    with pytest.raises(InvalidStateError):
        await service.update_teacher(db_session, tenant_id, arjun.id, TeacherUpdate(class_id=class_b.id))

    await class_service.freeze_class(db_session, tenant_id, class_a.id)
    with pytest.raises(InvalidStateError):
        await service.update_teacher(db_session, tenant_id, meera.id, TeacherUpdate(class_id=None))
    with pytest.raises(InvalidStateError):
        await service.delete_teacher(db_session, tenant_id, meera.id)
    assert (await service.get_teacher(db_session, tenant_id, meera.id)).class_id == class_a.id

    # Non-assignment fields stay editable
    renamed = await service.update_teacher(db_session, tenant_id, meera.id, TeacherUpdate(name="Meera S"))
    assert renamed.name == "Meera S"


@pytest.mark.asyncio
async def test_email_change_cannot_double_book(db_session, tenant_id, make_session, make_class) -> None:
    await make_session("2024", activate=True)
    class_a = await make_class("10-A")
    class_b = await make_class("10-B")
    await service.create_teacher(db_session, tenant_id, _teacher("Meera", "meera@example.com", class_a.id))
    arjun = await service.create_teacher(db_session, tenant_id, _teacher("Arjun", "arjun@example.com", class_b.id))

    with pytest.raises(ConflictError):
        await service.update_teacher(
            db_session, tenant_id, arjun.id, TeacherUpdate(email="meera@example.com")
        )


@pytest.mark.asyncio
async def test_same_email_allowed_in_another_session(db_session, tenant_id, make_session, make_class) -> None:
    await make_session("2024", activate=True)
    old_class = await make_class("10-A")
    await service.create_teacher(db_session, tenant_id, _teacher("Meera", "meera@example.com", old_class.id))

    await make_session("2025", activate=True)
    new_class = await make_class("10-A")
    again = await service.create_teacher(
        db_session, tenant_id, _teacher("Meera", "meera@example.com", new_class.id)
    )
    assert again.session_id != old_class.session_id

    listed = await service.list_teachers(db_session, tenant_id)
    assert [t.id for t in listed.items] == [again.id]


@pytest.mark.asyncio
async def test_linked_account_is_one_to_one(db_session, tenant_id, make_session) -> None:
    await make_session("2024", activate=True)
    user_id = uuid4()
    await service.create_teacher(
        db_session, tenant_id, TeacherCreate(name="Arjun", email="arjun@example.com", user_id=user_id)
    )
    with pytest.raises(ConflictError):
        await service.create_teacher(
            db_session, tenant_id, TeacherCreate(name="Ravi", email="ravi@example.com", user_id=user_id)
        )


@pytest.mark.asyncio
async def test_store_rejects_two_teachers_on_one_class(db_session, tenant_id, make_session, make_class) -> None:
    session = await make_session("2024", activate=True)
    class_a = await make_class("10-A")
    for email in ("meera@example.com", "arjun@example.com"):
        db_session.add(
            Teacher(
                tenant_id=tenant_id,
                name=email.split("@")[0],
                email=email,
                class_id=class_a.id,
                session_id=session.id,
                status="ACTIVE",
            )
        )
    with pytest.raises(IntegrityError):
        await db_session.commit()
    await db_session.rollback()


@pytest.mark.asyncio
async def test_assignment_invariants_hold_under_interleaving(
    db_session, tenant_id, make_session, make_class
) -> None:
    session = await make_session("2024", activate=True)
    classes = [await make_class(name) for name in ("10-A", "10-B", "10-C")]
    emails = ["meera@example.com", "arjun@example.com", "meera@example.com", "ravi@example.com"]
    teachers = []
    for i, email in enumerate(emails):
        teachers.append(await service.create_teacher(db_session, tenant_id, _teacher(f"T{i}", email)))

    rng = random.Random(7)
    for _ in range(60):
        teacher = rng.choice(teachers)
        target = rng.choice(classes + [None])
        try:
            await service.update_teacher(
                db_session,
                tenant_id,
                teacher.id,
                TeacherUpdate(class_id=target.id if target else None),
            )
        except ServiceError as e:
            assert e.status_code == 409

        result = await db_session.execute(
            select(Teacher.class_id, Teacher.email).where(
                Teacher.tenant_id == tenant_id,
                Teacher.status == "ACTIVE",
                Teacher.session_id == session.id,
                Teacher.class_id.is_not(None),
            )
        )
        rows = result.all()
        assert max(Counter(r.class_id for r in rows).values(), default=0) <= 1
        assert max(Counter(r.email for r in rows).values(), default=0) <= 1


@pytest.mark.asyncio
async def test_sequential_mode_reassign_keeps_one_teacher_per_class(
    db_session, tenant_id, make_session, make_class, monkeypatch
) -> None:
    await make_session("2024", activate=True)
    class_a = await make_class("10-A")
    class_b = await make_class("10-B")
    meera = await service.create_teacher(db_session, tenant_id, _teacher("Meera", "meera@example.com", class_a.id))
    monkeypatch.setattr(settings, "transaction_mode", "sequential")

    moved = await service.update_teacher(db_session, tenant_id, meera.id, TeacherUpdate(class_id=class_b.id))
    assert moved.class_id == class_b.id

    result = await db_session.execute(
        select(Teacher.class_id).where(Teacher.tenant_id == tenant_id, Teacher.status == "ACTIVE")
    )
    assert result.scalars().all() == [class_b.id]

    with pytest.raises(ConflictError):
        await service.create_teacher(db_session, tenant_id, _teacher("Arjun", "arjun@example.com", class_b.id))
