from uuid import uuid4

import pytest

from app.api.v1.classes import service as class_service
from app.api.v1.promotions import service
from app.api.v1.promotions.schemas import PromotionRequest
from app.api.v1.sessions import service as session_service
from app.api.v1.students import service as student_service
from app.core.config import settings
from app.core.exceptions import InvalidStateError, NotFoundError, ValidationError


@pytest.fixture()
def build_years(db_session, tenant_id, make_session, make_class, make_student):
    """2024 with the given classes and students, then 2025 activated with its own classes."""

    async def _build(source_classes, students, target_classes, frozen=()):
        source = await make_session("2024", activate=True)
        by_name = {name: await make_class(name) for name in source_classes}
        created = {}
        for admission_no, class_name in students:
            created[admission_no] = await make_student(by_name[class_name].id, admission_no)
        for name in frozen:
            await class_service.freeze_class(db_session, tenant_id, by_name[name].id)

        target = await make_session("2025", activate=True)
        target_by_name = {name: await make_class(name) for name in target_classes}
        return source, target, created, target_by_name

    return _build


def _request(source, target, **kwargs) -> PromotionRequest:
    return PromotionRequest(source_session_id=source.id, target_session_id=target.id, **kwargs)


@pytest.mark.asyncio
async def test_promotion_copies_student_into_same_named_class(db_session, tenant_id, build_years) -> None:
    source, target, created, target_classes = await build_years(["9-A"], [("S100", "9-A")], ["9-A"])

    result = await service.promote_students(db_session, tenant_id, _request(source, target))

    assert result.promoted_count == 1
    assert result.total_count == 1
    assert result.errors == []
    promoted = result.promoted_students[0]
    assert promoted.admission_no == "S100"
    assert promoted.session_id == target.id
    assert promoted.class_id == target_classes["9-A"].id
    assert promoted.id != created["S100"].id

    original = await student_service.get_student(db_session, tenant_id, created["S100"].id)
    assert original.session_id == source.id
    assert original.admission_no == "S100"


@pytest.mark.asyncio
async def test_frozen_source_class_fails_only_its_students(db_session, tenant_id, build_years) -> None:
    source, target, created, _ = await build_years(
        ["9-A", "9-B"],
        [("S1", "9-A"), ("S2", "9-B")],
        ["9-A", "9-B"],
        frozen=["9-A"],
    )
    ids = [created["S1"].id, created["S2"].id]

    result = await service.promote_students(db_session, tenant_id, _request(source, target, student_ids=ids))

    assert result.promoted_count == 1
    assert result.total_count == 2
    assert [s.admission_no for s in result.promoted_students] == ["S2"]
    assert len(result.errors) == 1
    assert result.errors[0].student_id == created["S1"].id
    assert result.errors[0].error == "Cannot promote student from a frozen class"


@pytest.mark.asyncio
async def test_skip_frozen_check_promotes_everyone(db_session, tenant_id, build_years) -> None:
    source, target, _, _ = await build_years(["9-A"], [("S1", "9-A"), ("S2", "9-A")], ["9-A"], frozen=["9-A"])

    result = await service.promote_students(db_session, tenant_id, _request(source, target, skip_frozen_check=True))

    assert result.promoted_count == 2
    assert result.errors == []


@pytest.mark.asyncio
async def test_colliding_admission_no_gets_session_suffix(
    db_session, tenant_id, build_years, make_student
) -> None:
    source, target, _, target_classes = await build_years(["9-A"], [("S100", "9-A")], ["9-A"])
    await make_student(target_classes["9-A"].id, "S100", name="New Admission")

    result = await service.promote_students(db_session, tenant_id, _request(source, target))

    assert result.errors == []
    assert result.promoted_students[0].admission_no == "S100-2025"


@pytest.mark.asyncio
async def test_preserve_admission_numbers_reports_collision(
    db_session, tenant_id, build_years, make_student
) -> None:
    source, target, created, target_classes = await build_years(
        ["9-A"], [("S100", "9-A"), ("S101", "9-A")], ["9-A"]
    )
    await make_student(target_classes["9-A"].id, "S100", name="New Admission")

    result = await service.promote_students(
        db_session, tenant_id, _request(source, target, preserve_admission_numbers=True)
    )

    assert [s.admission_no for s in result.promoted_students] == ["S101"]
    assert len(result.errors) == 1
    assert result.errors[0].student_id == created["S100"].id
    assert "S100" in result.errors[0].error

    listed = await student_service.list_students(db_session, tenant_id)
    assert sorted(s.admission_no for s in listed.items) == ["S100", "S101"]


@pytest.mark.asyncio
async def test_missing_or_frozen_equivalent_class(db_session, tenant_id, build_years) -> None:
    source, target, _, target_classes = await build_years(
        ["9-A", "9-B"], [("S1", "9-A"), ("S2", "9-B")], ["9-A"]
    )
    await class_service.freeze_class(db_session, tenant_id, target_classes["9-A"].id)

    result = await service.promote_students(db_session, tenant_id, _request(source, target))

    assert result.promoted_count == 0
    assert sorted(e.error for e in result.errors) == [
        "No equivalent class found in target session for 9-B",
        "Target class 9-A is frozen",
    ]


@pytest.mark.asyncio
async def test_explicit_target_class(db_session, tenant_id, build_years) -> None:
    source, target, _, target_classes = await build_years(
        ["9-A", "9-B"], [("S1", "9-A"), ("S2", "9-B")], ["10-A"]
    )
    ten_a = target_classes["10-A"]

    result = await service.promote_students(db_session, tenant_id, _request(source, target, target_class_id=ten_a.id))
    assert result.promoted_count == 2
    assert {s.class_id for s in result.promoted_students} == {ten_a.id}


@pytest.mark.asyncio
async def test_frozen_explicit_target_class_fails_batch(db_session, tenant_id, build_years) -> None:
    source, target, _, target_classes = await build_years(["9-A"], [("S1", "9-A")], ["10-A"])
    await class_service.freeze_class(db_session, tenant_id, target_classes["10-A"].id)

    with pytest.raises(InvalidStateError):
        await service.promote_students(
            db_session, tenant_id, _request(source, target, target_class_id=target_classes["10-A"].id)
        )
    with pytest.raises(NotFoundError):
        await service.promote_students(db_session, tenant_id, _request(source, target, target_class_id=uuid4()))


@pytest.mark.asyncio
async def test_session_preconditions(db_session, tenant_id, build_years, make_session) -> None:
    source, target, _, _ = await build_years(["9-A"], [("S1", "9-A")], ["9-A"])

    with pytest.raises(InvalidStateError) as exc:
        await service.promote_students(db_session, tenant_id, _request(target, source))
    assert exc.value.message.startswith("Cannot promote students from an active session")

    other = await make_session("2026")
    with pytest.raises(InvalidStateError) as exc:
        await service.promote_students(db_session, tenant_id, _request(source, other))
    assert exc.value.message == "Target session must be active to promote students"

    await session_service.archive_session(db_session, tenant_id, source.id)
    with pytest.raises(InvalidStateError) as exc:
        await service.promote_students(db_session, tenant_id, _request(source, target))
    assert exc.value.message == "Cannot promote students from an archived session"


@pytest.mark.asyncio
async def test_selection_errors(db_session, tenant_id, build_years, make_session) -> None:
    source, target, created, _ = await build_years(["9-A"], [("S1", "9-A")], ["9-A"])

    with pytest.raises(ValidationError):
        await service.promote_students(
            db_session, tenant_id, _request(source, target, student_ids=[created["S1"].id, uuid4()])
        )

    empty = await make_session("2023")
    with pytest.raises(InvalidStateError) as exc:
        await service.promote_students(db_session, tenant_id, _request(empty, target))
    assert exc.value.message == "No students found to promote"


@pytest.mark.asyncio
async def test_sequential_mode_reports_per_student_errors(
    db_session, tenant_id, build_years, make_student, monkeypatch
) -> None:
    source, target, created, target_classes = await build_years(
        ["9-A"], [("S1", "9-A"), ("S2", "9-A")], ["9-A"]
    )
    await make_student(target_classes["9-A"].id, "S1", name="New Admission")
    monkeypatch.setattr(settings, "transaction_mode", "sequential")

    result = await service.promote_students(
        db_session, tenant_id, _request(source, target, preserve_admission_numbers=True)
    )

    assert result.promoted_count == 1
    assert result.errors[0].student_id == created["S1"].id
    listed = await student_service.list_students(db_session, tenant_id)
    assert sorted(s.admission_no for s in listed.items) == ["S1", "S2"]


@pytest.mark.asyncio
async def test_history_view_reads_archived_sessions(db_session, tenant_id, build_years) -> None:
    source, target, _, _ = await build_years(["9-A", "9-B"], [("S1", "9-A"), ("S2", "9-B")], ["9-A", "9-B"])
    await service.promote_students(db_session, tenant_id, _request(source, target))
    await session_service.archive_session(db_session, tenant_id, source.id)

    history = await service.list_students_by_session(db_session, tenant_id, source.id)
    assert history.session.archived is True
    assert [s.admission_no for s in history.items] == ["S1", "S2"]

    current = await service.list_students_by_session(db_session, tenant_id, target.id)
    assert current.total == 2

    with pytest.raises(NotFoundError):
        await service.list_students_by_session(db_session, tenant_id, source.id, class_id=uuid4())
