from datetime import date, datetime
import uuid

import pytest
from sqlalchemy import func, select

from academic_ops.core.config import settings
from academic_ops.core.exceptions import (
    AccessDeniedError,
    ConflictError,
    NotFoundError,
    TransactionError,
    ValidationError,
)
from academic_ops.models import AttendanceRecord, Student
from academic_ops.services.attendance_service import AttendanceService, parse_attendance_date

MAY_DAY = "2025-05-01"


async def _records(db, student_id=None):
    stmt = select(AttendanceRecord).execution_options(populate_existing=True)
    if student_id:
        stmt = stmt.where(AttendanceRecord.student_id == student_id)
    result = await db.execute(stmt)
    return result.scalars().all()


async def test_second_mark_updates_in_place(db, seed, teacher_a):
    service = AttendanceService(db)
    first = await service.mark_attendance(
        teacher_a, seed.class_a, MAY_DAY, [{"student_id": seed.student_1, "status": "Present"}]
    )
    assert (first.created, first.updated, first.total_processed) == (1, 0, 1)

    second = await service.mark_attendance(
        teacher_a, seed.class_a, MAY_DAY,
        [{"student_id": seed.student_1, "status": "Absent", "remarks": "Left early"}],
        subject="Mathematics",
    )
    assert (second.created, second.updated) == (0, 1)

    records = await _records(db, seed.student_1)
    assert len(records) == 1
    assert records[0].status == "Absent"
    assert records[0].remarks == "Left early"
    assert records[0].subject == "Mathematics"
    assert records[0].attendance_date == date(2025, 5, 1)
    assert records[0].academic_year == "2024-25"
    assert records[0].teacher_id == seed.teacher_a


async def test_mixed_batch_counts_created_and_updated(db, seed, admin):
    service = AttendanceService(db)
    await service.mark_attendance(admin, seed.class_a, MAY_DAY, [{"student_id": seed.student_1, "status": "Present"}])

    result = await service.mark_attendance(admin, seed.class_a, MAY_DAY, [
        {"student_id": seed.student_1, "status": "Late"},
        {"student_id": seed.student_2, "status": "Present"},
    ])
    assert (result.created, result.updated, result.total_processed) == (1, 1, 2)
    assert len(await _records(db)) == 2


async def test_repeated_student_in_one_batch_last_wins(db, seed, admin):
    result = await AttendanceService(db).mark_attendance(admin, seed.class_a, MAY_DAY, [
        {"student_id": seed.student_1, "status": "Present"},
        {"student_id": seed.student_1, "status": "Late"},
    ])
    assert (result.created, result.updated) == (1, 1)

    records = await _records(db, seed.student_1)
    assert [r.status for r in records] == ["Late"]


@pytest.mark.parametrize(
    "bad_entry",
    [
        {"student_id": None, "status": "Present"},
        {"student_id": "student-1", "status": "Present"},
        {"student_id": "STUDENT", "status": "Excused"},
        {"student_id": "UNKNOWN", "status": "Present"},
        {"student_id": "FOREIGN", "status": "Present"},
    ],
)
async def test_one_invalid_entry_rejects_the_whole_batch(db, seed, admin, bad_entry):
    substitutes = {"STUDENT": seed.student_2, "UNKNOWN": uuid.uuid4(), "FOREIGN": seed.student_y}
    entry = {**bad_entry, "student_id": substitutes.get(bad_entry["student_id"], bad_entry["student_id"])}

    with pytest.raises(ValidationError):
        await AttendanceService(db).mark_attendance(admin, seed.class_a, MAY_DAY, [
            {"student_id": seed.student_1, "status": "Present"},
            entry,
        ])
    assert await _records(db) == []


async def test_empty_batch_is_rejected(db, seed, admin):
    with pytest.raises(ValidationError, match="Students array is required"):
        await AttendanceService(db).mark_attendance(admin, seed.class_a, MAY_DAY, [])


@pytest.mark.parametrize("bad_date", ["01-05-2025", "2025-13-01", "2025-05-01T09:00:00", "", None])
async def test_date_must_be_a_calendar_date(db, seed, admin, bad_date):
    with pytest.raises(ValidationError):
        await AttendanceService(db).mark_attendance(
            admin, seed.class_a, bad_date, [{"student_id": seed.student_1, "status": "Present"}]
        )


def test_datetime_values_are_rejected():
    with pytest.raises(ValidationError, match="time"):
        parse_attendance_date(datetime(2025, 5, 1, 9, 0))
    assert parse_attendance_date(date(2025, 5, 1)) == date(2025, 5, 1)


async def test_teacher_can_only_mark_own_class(db, seed, teacher_b):
    with pytest.raises(AccessDeniedError, match="not the class teacher"):
        await AttendanceService(db).mark_attendance(
            teacher_b, seed.class_a, MAY_DAY, [{"student_id": seed.student_1, "status": "Present"}]
        )
    assert await _records(db) == []


async def test_class_of_another_branch_is_not_found(db, seed, admin):
    with pytest.raises(NotFoundError):
        await AttendanceService(db).mark_attendance(
            admin, seed.class_y, MAY_DAY, [{"student_id": seed.student_y, "status": "Present"}]
        )


def _insert_concurrently_before_first_flush(db, session_factory, seed, monkeypatch):
    """Commit the same (student, date) from another session right before our insert is flushed."""
    original_flush = db.flush
    raced = []

    async def flush_after_concurrent_insert(*args, **kwargs):
        if not raced:
            raced.append(True)
            async with session_factory() as other:
                other.add(AttendanceRecord(
                    branch_id=seed.branch_x,
                    student_id=seed.student_1,
                    class_id=seed.class_a,
                    teacher_id=seed.teacher_a,
                    attendance_date=date(2025, 5, 1),
                    status="Present",
                    academic_year="2024-25",
                ))
                await other.commit()
        return await original_flush(*args, **kwargs)

    monkeypatch.setattr(db, "flush", flush_after_concurrent_insert)
    return raced


async def test_lost_insert_race_is_replayed_as_update(db, session_factory, seed, admin, monkeypatch):
    raced = _insert_concurrently_before_first_flush(db, session_factory, seed, monkeypatch)

    result = await AttendanceService(db).mark_attendance(
        admin, seed.class_a, MAY_DAY, [{"student_id": seed.student_1, "status": "Absent"}]
    )

    assert raced == [True]
    assert (result.created, result.updated) == (0, 1)
    records = await _records(db, seed.student_1)
    assert [r.status for r in records] == ["Absent"]


async def test_lost_race_without_replays_is_a_transaction_error(db, session_factory, seed, admin, monkeypatch):
    _insert_concurrently_before_first_flush(db, session_factory, seed, monkeypatch)
    monkeypatch.setattr(settings, "attendance_retry_attempts", 0)

    with pytest.raises(TransactionError):
        await AttendanceService(db).mark_attendance(
            admin, seed.class_a, MAY_DAY, [{"student_id": seed.student_1, "status": "Absent"}]
        )

    # Only the concurrent insert survives
    records = await _records(db, seed.student_1)
    assert [r.status for r in records] == ["Present"]


async def test_teacher_cannot_mark_a_student_of_another_class(db, seed, teacher_a, teacher_b, admin):
    service = AttendanceService(db)
    await service.mark_attendance(teacher_a, seed.class_a, MAY_DAY, [{"student_id": seed.student_1, "status": "Present"}])

    with pytest.raises(ValidationError, match="not enrolled in class 10-B"):
        await service.mark_attendance(
            teacher_b, seed.class_b, MAY_DAY, [{"student_id": seed.student_1, "status": "Absent"}]
        )
    with pytest.raises(ValidationError):
        await service.mark_attendance(
            admin, seed.class_b, MAY_DAY, [{"student_id": seed.student_1, "status": "Absent"}]
        )

    records = await _records(db, seed.student_1)
    assert [(r.class_id, r.status) for r in records] == [(seed.class_a, "Present")]


async def test_record_of_another_class_is_not_overwritten(db, seed, admin):
    service = AttendanceService(db)
    await service.mark_attendance(admin, seed.class_b, MAY_DAY, [{"student_id": seed.student_3, "status": "Present"}])

    # Student moves to 10-A later the same day
    student = await db.get(Student, seed.student_3)
    student.class_id = seed.class_a
    await db.commit()

    with pytest.raises(ConflictError, match="another class"):
        await service.mark_attendance(admin, seed.class_a, MAY_DAY, [{"student_id": seed.student_3, "status": "Absent"}])

    records = await _records(db, seed.student_3)
    assert [(r.class_id, r.status) for r in records] == [(seed.class_b, "Present")]



async def test_update_single_record(db, seed, teacher_a, teacher_b):
    service = AttendanceService(db)
    await service.mark_attendance(teacher_a, seed.class_a, MAY_DAY, [{"student_id": seed.student_1, "status": "Present"}])
    record_id = (await _records(db, seed.student_1))[0].id

    updated = await service.update_single_record(teacher_a, record_id, "Late", remarks="Bus delay")
    assert (updated.status, updated.remarks) == ("Late", "Bus delay")

    with pytest.raises(ValidationError):
        await service.update_single_record(teacher_a, record_id, "Missing")
    with pytest.raises(AccessDeniedError):
        await service.update_single_record(teacher_b, record_id, "Absent")

    records = await _records(db, seed.student_1)
    assert records[0].status == "Late"


async def test_update_single_record_unknown_id(db, seed, admin):
    with pytest.raises(NotFoundError):
        await AttendanceService(db).update_single_record(admin, uuid.uuid4(), "Present")


async def test_listing_by_class_and_by_date(db, seed, admin):
    service = AttendanceService(db)
    await service.mark_attendance(admin, seed.class_a, MAY_DAY, [
        {"student_id": seed.student_1, "status": "Present"},
        {"student_id": seed.student_2, "status": "Absent"},
    ])
    await service.mark_attendance(admin, seed.class_a, "2025-05-02", [{"student_id": seed.student_1, "status": "Late"}])
    await service.mark_attendance(admin, seed.class_b, MAY_DAY, [{"student_id": seed.student_3, "status": "Present"}])

    listing = await service.list_class_attendance(admin, seed.class_a, limit=2)
    assert listing["total"] == 3
    assert listing["has_more"] is True
    assert [row["record"].attendance_date for row in listing["records"]] == [date(2025, 5, 2), date(2025, 5, 1)]

    absent = await service.list_class_attendance(admin, seed.class_a, status="Absent")
    assert [row["student_name"] for row in absent["records"]] == ["Hari Das"]

    ranged = await service.list_class_attendance(admin, seed.class_a, start_date=MAY_DAY, end_date=MAY_DAY)
    assert ranged["total"] == 2

    day = await service.attendance_for_date(admin, MAY_DAY)
    assert day["total"] == 3
    assert [row["class_name"] for row in day["records"]] == ["10-A", "10-A", "10-B"]

    only_b = await service.attendance_for_date(admin, MAY_DAY, class_id=seed.class_b)
    assert [row["student_name"] for row in only_b["records"]] == ["Ira Bose"]


async def test_teacher_cannot_list_another_class(db, seed, teacher_b):
    with pytest.raises(AccessDeniedError):
        await AttendanceService(db).list_class_attendance(teacher_b, seed.class_a)


async def test_records_are_unique_per_student_and_date(db, seed, admin):
    service = AttendanceService(db)
    for status in ["Present", "Absent", "Late", "Present"]:
        await service.mark_attendance(admin, seed.class_a, MAY_DAY, [{"student_id": seed.student_1, "status": status}])

    count = await db.scalar(select(func.count()).select_from(AttendanceRecord))
    assert count == 1
