# academic_ops/services/timetable_service.py
"""Timetable Allocator.

Allocates, moves and removes weekly slots of a class. The only cross-row rule
is that slots of the same class and day never overlap (half-open intervals).
A teacher may teach two different classes at the same time; only per-class
overlap is checked.
"""
from datetime import time, datetime
from typing import List, Optional, Union
from uuid import UUID
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .base_service import BaseService, coerce_uuid
from .class_service import ClassService
from .consistency_gate import check_overlap, enforce
from .teacher_service import TeacherService
from ..core.exceptions import NotFoundError, ValidationError
from ..core.security import ADMIN_ROLES, CallerIdentity, ensure_role
from ..models.class_model import ClassModel
from ..models.timetable import TimetableSlot

logger = logging.getLogger(__name__)

TimeLike = Union[time, str]


def parse_time(value: Optional[TimeLike], field: str) -> time:
    """Wall-clock time from a ``time`` or ``HH:MM[:SS]`` string; no timezone handling."""
    if value is None or value == "":
        raise ValidationError("Start time and end time are required", field=field)
    if isinstance(value, time):
        return value.replace(tzinfo=None)
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(value, fmt).time()
        except (TypeError, ValueError):
            continue
    raise ValidationError(f"Invalid time format for {field}. Use HH:MM", field=field)


def validate_slot_fields(subject: Optional[str], day_of_week, start_time: TimeLike, end_time: TimeLike):
    if not subject or not subject.strip():
        raise ValidationError("Subject is required", field="subject")
    if isinstance(day_of_week, bool) or not isinstance(day_of_week, int) or not 1 <= day_of_week <= 7:
        raise ValidationError("Valid day of week (1-7) is required", field="day_of_week")
    start = parse_time(start_time, "start_time")
    end = parse_time(end_time, "end_time")
    if start >= end:
        raise ValidationError("End time must be after start time", field="end_time")
    return subject.strip(), start, end


class TimetableService(BaseService[TimetableSlot]):
    def __init__(self, db: AsyncSession):
        super().__init__(TimetableSlot, db)
        self.classes = ClassService(db)
        self.teachers = TeacherService(db)

    async def _siblings(self, class_id: UUID, day_of_week: int) -> List[TimetableSlot]:
        result = await self.db.execute(
            select(self.model).where(
                self.model.class_id == class_id,
                self.model.day_of_week == day_of_week
            )
        )
        return result.scalars().all()

    async def get_slot(self, caller: CallerIdentity, slot_id: UUID, for_update: bool = False) -> TimetableSlot:
        slot = await self.get_in_branch(slot_id, caller.branch_id, for_update=for_update)
        if not slot:
            raise NotFoundError("Timetable slot", slot_id)
        return slot

    async def allocate_slot(
        self,
        caller: CallerIdentity,
        class_id: UUID,
        subject: str,
        teacher_id: UUID,
        day_of_week: int,
        start_time: TimeLike,
        end_time: TimeLike,
        room_number: Optional[str] = None,
    ) -> TimetableSlot:
        ensure_role(caller, *ADMIN_ROLES)

        async with self.atomic("Allocate timetable slot"):
            # Row lock on the class serialises allocations for the same class
            class_obj = await self.classes.get_class(caller, class_id, for_update=True)
            subject, start, end = validate_slot_fields(subject, day_of_week, start_time, end_time)
            teacher = await self.teachers.require_teacher(caller.branch_id, coerce_uuid(teacher_id, "teacher_id") if teacher_id else None)

            overlap = check_overlap(start, end, await self._siblings(class_obj.id, day_of_week))
            if not overlap.ok:
                logger.warning(f"Slot rejected for class {class_obj.id} day {day_of_week}: {overlap.message}")
            enforce(overlap)

            slot = self.model(
                branch_id=caller.branch_id,
                class_id=class_obj.id,
                teacher_id=teacher.id,
                subject=subject,
                day_of_week=day_of_week,
                start_time=start,
                end_time=end,
                room_number=room_number or None,
                academic_year=class_obj.academic_year,
                semester=class_obj.semester,
            )
            self.db.add(slot)
            await self.db.flush()

        logger.info(
            f"Allocated slot {slot.id}: class {class_obj.class_name} {slot.day_name} "
            f"{start.strftime('%H:%M')}-{end.strftime('%H:%M')} {subject}"
        )
        return slot

    async def update_slot(
        self,
        caller: CallerIdentity,
        slot_id: UUID,
        subject: str,
        teacher_id: UUID,
        day_of_week: int,
        start_time: TimeLike,
        end_time: TimeLike,
        room_number: Optional[str] = None,
    ) -> TimetableSlot:
        ensure_role(caller, *ADMIN_ROLES)

        async with self.atomic("Update timetable slot"):
            slot = await self.get_slot(caller, slot_id)
            await self.classes.get_class(caller, slot.class_id, for_update=True)
            subject, start, end = validate_slot_fields(subject, day_of_week, start_time, end_time)
            teacher = await self.teachers.require_teacher(caller.branch_id, coerce_uuid(teacher_id, "teacher_id") if teacher_id else None)

            overlap = check_overlap(start, end, await self._siblings(slot.class_id, day_of_week), exclude_id=slot.id)
            if not overlap.ok:
                logger.warning(f"Slot update rejected for {slot.id}: {overlap.message}")
            enforce(overlap)

            slot.subject = subject
            slot.teacher_id = teacher.id
            slot.day_of_week = day_of_week
            slot.start_time = start
            slot.end_time = end
            slot.room_number = room_number or None
            await self.db.flush()

        logger.info(f"Updated slot {slot.id}")
        return slot

    async def delete_slot(self, caller: CallerIdentity, slot_id: UUID) -> None:
        # Nothing references a slot, so ownership is the only check
        ensure_role(caller, *ADMIN_ROLES)

        async with self.atomic("Delete timetable slot"):
            slot = await self.get_slot(caller, slot_id, for_update=True)
            await self.db.delete(slot)

        logger.info(f"Deleted slot {slot_id} ({slot.subject})")

    async def get_class_timetable(self, caller: CallerIdentity, class_id: UUID) -> List[TimetableSlot]:
        await self.classes.get_class(caller, class_id)
        result = await self.db.execute(
            select(self.model)
            .where(self.model.class_id == class_id)
            .order_by(self.model.day_of_week, self.model.start_time)
        )
        return result.scalars().all()

    async def get_teacher_timetable(
        self,
        caller: CallerIdentity,
        teacher_id: UUID,
        academic_year: Optional[str] = None
    ) -> List[dict]:
        """Every slot the teacher teaches in the branch, with the class name."""
        stmt = (
            select(self.model, ClassModel.class_name)
            .join(ClassModel, ClassModel.id == self.model.class_id)
            .where(self.model.branch_id == caller.branch_id, self.model.teacher_id == teacher_id)
        )
        if academic_year:
            stmt = stmt.where(self.model.academic_year == academic_year)
        stmt = stmt.order_by(self.model.day_of_week, self.model.start_time, ClassModel.class_name)

        result = await self.db.execute(stmt)
        return [{"slot": slot, "class_name": class_name} for slot, class_name in result.all()]
