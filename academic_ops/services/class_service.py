# academic_ops/services/class_service.py
from typing import Any, Dict, List, Optional
from uuid import UUID
import logging

from sqlalchemy import select, func, delete
from sqlalchemy.ext.asyncio import AsyncSession

from .base_service import BaseService, coerce_uuid
from .academic_year_service import AcademicYearService
from .consistency_gate import check_duplicate_name, check_teacher_exclusivity, enforce
from .teacher_service import TeacherService
from ..core.config import settings
from ..core.exceptions import ConflictError, NotFoundError, ValidationError
from ..core.security import ADMIN_ROLES, CallerIdentity, ensure_role
from ..models.attendance import AttendanceRecord
from ..models.branch import Student
from ..models.class_model import ClassModel
from ..models.enums import ClassStatus, StudentStatus, UserRole
from ..models.timetable import TimetableSlot

logger = logging.getLogger(__name__)

CLASS_FIELDS = (
    "class_name", "grade", "standard", "teacher_id", "semester",
    "capacity", "room_number", "schedule", "academic_year", "status",
)


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class ClassService(BaseService[ClassModel]):
    def __init__(self, db: AsyncSession):
        super().__init__(ClassModel, db)
        self.teachers = TeacherService(db)
        self.years = AcademicYearService(db)

    async def get_class(self, caller: CallerIdentity, class_id: UUID, for_update: bool = False) -> ClassModel:
        class_obj = await self.get_in_branch(class_id, caller.branch_id, for_update=for_update)
        if not class_obj:
            raise NotFoundError("Class", class_id)
        return class_obj

    async def list_classes(
        self,
        caller: CallerIdentity,
        academic_year: Optional[str] = None,
        limit: int = 50,
        offset: int = 0
    ) -> Dict[str, Any]:
        """Classes of the caller's branch; defaults to the branch's active year."""
        year_name = await self.years.resolve_year_name(caller.branch_id, academic_year)
        if year_name is None:
            return {"items": [], "total": 0, "academic_year": None, "limit": limit, "offset": offset}

        filters = {"branch_id": caller.branch_id, "academic_year": year_name}
        stmt = (
            select(self.model)
            .where(self.model.branch_id == caller.branch_id, self.model.academic_year == year_name)
            .order_by(self.model.class_name)
            .offset(offset)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return {
            "items": result.scalars().all(),
            "total": await self.count(**filters),
            "academic_year": year_name,
            "limit": limit,
            "offset": offset,
        }

    def _validate_class_data(self, data: Dict[str, Any]) -> Dict[str, Any]:
        if _blank(data.get("class_name")):
            raise ValidationError("Class name is required", field="class_name")
        if _blank(data.get("standard")):
            raise ValidationError("Standard is required", field="standard")
        if _blank(data.get("academic_year")):
            raise ValidationError("Academic year is required", field="academic_year")

        capacity = data.get("capacity")
        if capacity is None:
            capacity = settings.default_class_capacity
        if not isinstance(capacity, int) or capacity < 1 or capacity > 100:
            raise ValidationError("Capacity must be between 1 and 100", field="capacity")

        status = data.get("status") or ClassStatus.ACTIVE.value
        try:
            status = ClassStatus(status).value
        except ValueError:
            raise ValidationError("Status must be Active or Inactive", field="status")

        teacher_id = data.get("teacher_id")
        return {
            **data,
            "class_name": data["class_name"].strip(),
            "standard": data["standard"].strip(),
            "academic_year": data["academic_year"].strip(),
            "capacity": capacity,
            "status": status,
            "semester": data.get("semester") or settings.default_semester,
            "teacher_id": coerce_uuid(teacher_id, "teacher_id") if teacher_id else None,
        }

    async def _check_name_free(self, branch_id: UUID, data: Dict[str, Any], exclude_id: Optional[UUID] = None):
        result = await self.db.execute(
            select(self.model).where(
                self.model.branch_id == branch_id,
                self.model.class_name == data["class_name"],
                self.model.academic_year == data["academic_year"]
            )
        )
        enforce(check_duplicate_name(
            data["class_name"], result.scalars().all(), exclude_id,
            label=f"Class in academic year {data['academic_year']}"
        ))

    async def _check_teacher(self, branch_id: UUID, data: Dict[str, Any], exclude_id: Optional[UUID] = None):
        await self.teachers.require_teacher(branch_id, data["teacher_id"])
        result = await self.db.execute(
            select(self.model).where(
                self.model.branch_id == branch_id,
                self.model.teacher_id == data["teacher_id"],
                self.model.academic_year == data["academic_year"]
            ).with_for_update()
        )
        enforce(check_teacher_exclusivity(data["teacher_id"], result.scalars().all(), exclude_id))

    async def _slot_count(self, class_id: UUID) -> int:
        return await self.db.scalar(
            select(func.count()).select_from(TimetableSlot).where(TimetableSlot.class_id == class_id)
        )

    async def create_class(self, caller: CallerIdentity, obj_in: Dict[str, Any]) -> ClassModel:
        """Create new class with name and teacher exclusivity validation"""
        ensure_role(caller, *ADMIN_ROLES)
        data = self._validate_class_data(obj_in)

        async with self.atomic("Create class"):
            await self._check_name_free(caller.branch_id, data)
            if data["teacher_id"]:
                await self._check_teacher(caller.branch_id, data)

            class_obj = self.model(
                branch_id=caller.branch_id,
                **{key: data.get(key) for key in CLASS_FIELDS}
            )
            self.db.add(class_obj)
            await self.db.flush()

        logger.info(f"Created class {class_obj.class_name} ({class_obj.academic_year}) in branch {caller.branch_id}")
        return class_obj

    async def update_class(self, caller: CallerIdentity, class_id: UUID, obj_in: Dict[str, Any]) -> ClassModel:
        ensure_role(caller, *ADMIN_ROLES)

        async with self.atomic("Update class"):
            class_obj = await self.get_class(caller, class_id, for_update=True)
            current = {key: getattr(class_obj, key) for key in CLASS_FIELDS}
            data = self._validate_class_data({**current, **obj_in})

            if (data["class_name"], data["academic_year"]) != (class_obj.class_name, class_obj.academic_year):
                await self._check_name_free(caller.branch_id, data, exclude_id=class_obj.id)

            teacher_changed = data["teacher_id"] != class_obj.teacher_id
            year_changed = data["academic_year"] != class_obj.academic_year
            if year_changed and await self._slot_count(class_obj.id):
                raise ConflictError(
                    "Cannot move class with timetable entries to another academic year. "
                    "Please delete timetable entries first."
                )
            if data["teacher_id"] and (teacher_changed or year_changed):
                await self._check_teacher(caller.branch_id, data, exclude_id=class_obj.id)

            for key in CLASS_FIELDS:
                setattr(class_obj, key, data.get(key))
            await self.db.flush()

        logger.info(f"Updated class {class_obj.id}")
        return class_obj

    async def delete_class(self, caller: CallerIdentity, class_id: UUID) -> None:
        """Delete a class that has no active students and no timetable slots."""
        ensure_role(caller, *ADMIN_ROLES)

        async with self.atomic("Delete class"):
            class_obj = await self.get_class(caller, class_id, for_update=True)

            active_students = await self.db.scalar(
                select(func.count()).select_from(Student).where(
                    Student.class_id == class_obj.id,
                    Student.status == StudentStatus.ACTIVE.value
                )
            )
            if active_students:
                raise ConflictError(
                    "Cannot delete class with enrolled students. Please move students to another class first."
                )

            if await self._slot_count(class_obj.id):
                raise ConflictError(
                    "Cannot delete class with timetable entries. Please delete timetable entries first."
                )

            await self.db.execute(delete(AttendanceRecord).where(AttendanceRecord.class_id == class_obj.id))
            await self.db.delete(class_obj)

        logger.info(f"Deleted class {class_obj.class_name} ({class_id})")

    async def get_classes_for_teacher(self, caller: CallerIdentity, teacher_id: UUID) -> List[ClassModel]:
        result = await self.db.execute(
            select(self.model).where(
                self.model.branch_id == caller.branch_id,
                self.model.teacher_id == teacher_id
            ).order_by(self.model.academic_year.desc(), self.model.class_name)
        )
        return result.scalars().all()

    async def _active_students(self, class_id: UUID) -> List[Student]:
        result = await self.db.execute(
            select(Student).where(
                Student.class_id == class_id,
                Student.status == StudentStatus.ACTIVE.value
            ).order_by(Student.roll_number, Student.name)
        )
        return result.scalars().all()

    async def get_class_students(self, caller: CallerIdentity, class_id: UUID) -> Dict[str, Any]:
        """Active students of a class, by roll number."""
        class_obj = await self.get_class(caller, class_id)
        return {"class": class_obj, "students": await self._active_students(class_obj.id)}

    async def get_teacher_roster(
        self,
        caller: CallerIdentity,
        teacher_id: UUID,
        academic_year: Optional[str] = None
    ) -> Dict[str, Any]:
        """The Active class a teacher is class teacher of in the year, with its students.

        The year defaults to the branch's active year.
        """
        year_name = await self.years.resolve_year_name(caller.branch_id, academic_year)
        if year_name is None:
            raise NotFoundError(f"Active academic year for branch {caller.branch_id}")

        result = await self.db.execute(
            select(self.model).where(
                self.model.branch_id == caller.branch_id,
                self.model.teacher_id == teacher_id,
                self.model.academic_year == year_name,
                self.model.status == ClassStatus.ACTIVE.value
            )
        )
        class_obj = result.scalars().first()
        if not class_obj:
            raise NotFoundError(f"Class assigned to teacher {teacher_id} in academic year {year_name}")

        students = await self._active_students(class_obj.id)
        return {"class": class_obj, "students": students, "student_count": len(students)}

    async def get_my_roster(self, caller: CallerIdentity, academic_year: Optional[str] = None) -> Dict[str, Any]:
        ensure_role(caller, UserRole.TEACHER)
        return await self.get_teacher_roster(caller, caller.user_id, academic_year)
