from datetime import date

import pytest
from sqlalchemy import func, select

from academic_ops.core.exceptions import (
    AccessDeniedError,
    ConflictError,
    ExclusivityError,
    NotFoundError,
    ValidationError,
)
from academic_ops.models import AttendanceRecord, ClassModel, Student
from academic_ops.services.attendance_service import AttendanceService
from academic_ops.services.class_service import ClassService
from academic_ops.services.teacher_service import TeacherService
from academic_ops.services.timetable_service import TimetableService


def _class_data(**overrides):
    data = {"class_name": "11-A", "standard": "11", "academic_year": "2024-25"}
    data.update(overrides)
    return data


async def test_create_class_applies_defaults(db, seed, admin):
    class_obj = await ClassService(db).create_class(admin, _class_data(teacher_id=seed.teacher_free))

    assert class_obj.branch_id == seed.branch_x
    assert class_obj.capacity == 30
    assert class_obj.semester == "First Semester"
    assert class_obj.status == "Active"
    assert class_obj.teacher_id == seed.teacher_free


async def test_teacher_is_class_teacher_of_one_class_per_year(db, seed, admin):
    service = ClassService(db)
    with pytest.raises(ExclusivityError) as exc_info:
        await service.create_class(admin, _class_data(teacher_id=seed.teacher_a))
    assert exc_info.value.conflict == "ExclusivityViolation"

    # Another academic year is fine
    other_year = await service.create_class(admin, _class_data(teacher_id=seed.teacher_a, academic_year="2025-26"))
    assert other_year.teacher_id == seed.teacher_a


async def test_update_rechecks_exclusivity_only_when_teacher_changes(db, seed, admin):
    service = ClassService(db)
    renamed = await service.update_class(admin, seed.class_a, {"room_number": "202"})
    assert renamed.teacher_id == seed.teacher_a
    assert renamed.room_number == "202"

    with pytest.raises(ExclusivityError):
        await service.update_class(admin, seed.class_c, {"teacher_id": seed.teacher_b})

    stored = await db.get(ClassModel, seed.class_c, populate_existing=True)
    assert stored.teacher_id is None


@pytest.mark.parametrize("teacher", ["teacher_inactive", "teacher_y", "admin"])
async def test_class_teacher_must_be_an_active_teacher(db, seed, admin, teacher):
    with pytest.raises(ValidationError, match="Invalid teacher assignment"):
        await ClassService(db).create_class(admin, _class_data(teacher_id=getattr(seed, teacher)))


async def test_duplicate_class_name_in_year(db, seed, admin):
    service = ClassService(db)
    with pytest.raises(ConflictError) as exc_info:
        await service.create_class(admin, _class_data(class_name="10-A"))
    assert exc_info.value.conflict == "DuplicateName"

    with pytest.raises(ConflictError):
        await service.update_class(admin, seed.class_c, {"class_name": "10-B"})


@pytest.mark.parametrize(
    "overrides",
    [
        {"class_name": "  "},
        {"standard": None},
        {"academic_year": ""},
        {"capacity": 0},
        {"capacity": 101},
        {"status": "Archived"},
        {"teacher_id": "not-a-uuid"},
    ],
)
async def test_create_class_validation(db, seed, admin, overrides):
    with pytest.raises(ValidationError):
        await ClassService(db).create_class(admin, _class_data(**overrides))


async def test_class_management_requires_admin(db, seed, teacher_a):
    with pytest.raises(AccessDeniedError):
        await ClassService(db).create_class(teacher_a, _class_data())


async def test_list_classes_defaults_to_active_year(db, seed, admin, admin_y):
    service = ClassService(db)
    await service.create_class(admin, _class_data(academic_year="2025-26"))

    current = await service.list_classes(admin)
    assert current["academic_year"] == "2024-25"
    assert current["total"] == 4
    assert [c.class_name for c in current["items"]] == ["10-A", "10-B", "8-Z", "9-A"]

    upcoming = await service.list_classes(admin, "2025-26")
    assert [c.class_name for c in upcoming["items"]] == ["11-A"]

    # Branch without an active year lists nothing by default
    assert (await service.list_classes(admin_y))["items"] == []


async def test_get_class_from_another_branch_is_not_found(db, seed, admin):
    with pytest.raises(NotFoundError):
        await ClassService(db).get_class(admin, seed.class_y)


async def test_delete_class_with_active_students_conflicts(db, seed, admin):
    with pytest.raises(ConflictError, match="enrolled students"):
        await ClassService(db).delete_class(admin, seed.class_a)
    assert await db.get(ClassModel, seed.class_a, populate_existing=True) is not None


async def test_delete_class_with_slots_conflicts(db, seed, admin):
    await TimetableService(db).allocate_slot(admin, seed.class_c, "Art", seed.teacher_free, 1, "09:00", "10:00")
    with pytest.raises(ConflictError, match="timetable entries"):
        await ClassService(db).delete_class(admin, seed.class_c)


async def test_delete_class_removes_its_attendance(db, seed, admin):
    await AttendanceService(db).mark_attendance(
        admin, seed.class_b, date(2025, 5, 1), [{"student_id": seed.student_3, "status": "Present"}]
    )
    student = await db.get(Student, seed.student_3)
    student.status = "Inactive"
    await db.commit()

    await ClassService(db).delete_class(admin, seed.class_b)

    assert await db.scalar(select(func.count()).select_from(ClassModel).where(ClassModel.id == seed.class_b)) == 0
    assert await db.scalar(select(func.count()).select_from(AttendanceRecord)) == 0


async def test_available_teachers_excludes_assigned(db, seed):
    teachers = TeacherService(db)
    available = await teachers.available_teachers(seed.branch_x, "2024-25")
    assert [t.name for t in available] == ["Dev Nair"]

    everyone = await teachers.all_teachers(seed.branch_x)
    assert [t.name for t in everyone] == ["Bela Rao", "Chen Li", "Dev Nair"]


async def test_classes_for_teacher(db, seed, admin):
    classes = await ClassService(db).get_classes_for_teacher(admin, seed.teacher_a)
    assert [c.id for c in classes] == [seed.class_a]


async def test_year_change_refused_while_class_has_slots(db, seed, admin):
    service = ClassService(db)
    await TimetableService(db).allocate_slot(admin, seed.class_c, "Art", seed.teacher_free, 1, "09:00", "10:00")

    with pytest.raises(ConflictError, match="another academic year"):
        await service.update_class(admin, seed.class_c, {"academic_year": "2025-26"})

    stored = await db.get(ClassModel, seed.class_c, populate_existing=True)
    assert stored.academic_year == "2024-25"

    # Without slots the class may move
    moved = await service.update_class(admin, seed.class_b, {"academic_year": "2025-26"})
    assert moved.academic_year == "2025-26"


async def test_class_students_are_active_and_ordered_by_roll(db, seed, admin, admin_y):
    student = await db.get(Student, seed.student_2)
    student.roll_number = "00"
    db.add(Student(
        branch_id=seed.branch_x, class_id=seed.class_a, name="Left Early",
        roll_number="03", status="Inactive", academic_year="2024-25"
    ))
    await db.commit()

    service = ClassService(db)
    roster = await service.get_class_students(admin, seed.class_a)
    assert roster["class"].id == seed.class_a
    assert [s.name for s in roster["students"]] == ["Hari Das", "Gita Sen"]

    with pytest.raises(NotFoundError):
        await service.get_class_students(admin_y, seed.class_a)


async def test_teacher_roster_for_the_active_year(db, seed, admin, teacher_a, admin_y):
    service = ClassService(db)

    mine = await service.get_my_roster(teacher_a)
    assert mine["class"].id == seed.class_a
    assert mine["student_count"] == 2

    theirs = await service.get_teacher_roster(admin, seed.teacher_b)
    assert [s.name for s in theirs["students"]] == ["Ira Bose"]

    with pytest.raises(NotFoundError, match="Class assigned to teacher"):
        await service.get_teacher_roster(admin, seed.teacher_free)
    with pytest.raises(NotFoundError):
        await service.get_teacher_roster(admin, seed.teacher_a, academic_year="2025-26")
    # Rosters are branch-scoped
    with pytest.raises(NotFoundError):
        await service.get_teacher_roster(admin_y, seed.teacher_a)


async def test_my_roster_is_for_teachers_only(db, seed, admin):
    with pytest.raises(AccessDeniedError):
        await ClassService(db).get_my_roster(admin)
