# academic_ops/services/attendance_service.py
"""Attendance Recorder.

A student has at most one attendance record per date. Marking a class is one
transaction: every entry is validated first, then each entry updates the
existing (student, date) record or inserts a new one. If a concurrent caller
inserts the same (student, date) first, the unique constraint rejects our
insert; the batch is rolled back and replayed, and the replay finds the row
and updates it.
"""
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Union
from uuid import UUID
import logging
import re

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .base_service import BaseService, coerce_uuid
from .class_service import ClassService
from ..core.config import settings
from ..core.exceptions import AccessDeniedError, ConflictError, NotFoundError, TransactionError, ValidationError
from ..core.security import ATTENDANCE_ROLES, CallerIdentity, ensure_role
from ..models.attendance import AttendanceRecord
from ..models.branch import Student
from ..models.class_model import ClassModel
from ..models.enums import AttendanceStatus, UserRole

logger = logging.getLogger(__name__)

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class ConcurrentMarkError(ConflictError):
    """Our insert lost a race with another insert of the same (student, date)."""


@dataclass
class MarkResult:
    class_id: UUID
    class_name: str
    attendance_date: date
    subject: Optional[str]
    created: int
    updated: int
    total_processed: int

    def to_dict(self) -> dict:
        return {
            "classId": str(self.class_id),
            "className": self.class_name,
            "attendance_date": self.attendance_date.isoformat(),
            "subject": self.subject,
            "created": self.created,
            "updated": self.updated,
            "total_processed": self.total_processed,
        }


def parse_attendance_date(value: Union[date, str, None]) -> date:
    """A calendar date with no time component."""
    if value is None or value == "":
        raise ValidationError("Attendance date is required", field="attendance_date")
    if isinstance(value, datetime):
        raise ValidationError("Attendance date must not include a time", field="attendance_date")
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not DATE_PATTERN.match(value):
        raise ValidationError("Invalid date format. Use YYYY-MM-DD", field="attendance_date")
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationError("Invalid date format. Use YYYY-MM-DD", field="attendance_date")


def parse_attendance_status(value: Any) -> AttendanceStatus:
    try:
        return AttendanceStatus(value)
    except ValueError:
        raise ValidationError("Valid status (Present, Absent, Late) is required", field="status")


def _entry_field(entry: Any, name: str):
    if isinstance(entry, dict):
        return entry.get(name)
    return getattr(entry, name, None)


class AttendanceService(BaseService[AttendanceRecord]):
    def __init__(self, db: AsyncSession):
        super().__init__(AttendanceRecord, db)
        self.classes = ClassService(db)

    def _ensure_class_teacher(self, caller: CallerIdentity, class_obj: ClassModel) -> None:
        if caller.role is UserRole.TEACHER and class_obj.teacher_id != caller.user_id:
            logger.warning(f"Teacher {caller.user_id} is not the class teacher of {class_obj.id}")
            raise AccessDeniedError("Access denied. You are not the class teacher.")

    def _normalise_entries(self, entries: Iterable[Any]) -> List[Dict[str, Any]]:
        normalised = []
        for entry in entries or []:
            student_id = _entry_field(entry, "student_id")
            try:
                status = AttendanceStatus(_entry_field(entry, "status"))
            except ValueError:
                status = None
            if not student_id or status is None:
                raise ValidationError(f"Invalid student data or status for student {student_id}", field="students")
            normalised.append({
                "student_id": coerce_uuid(student_id, "student_id"),
                "status": status.value,
                "remarks": _entry_field(entry, "remarks") or None,
            })
        if not normalised:
            raise ValidationError("Students array is required", field="students")
        return normalised

    async def _require_enrolled_students(self, class_obj: ClassModel, student_ids: List[UUID]) -> None:
        """Every student must be enrolled in the class being marked."""
        wanted = set(student_ids)
        result = await self.db.execute(
            select(Student.id).where(
                Student.id.in_(wanted),
                Student.branch_id == class_obj.branch_id,
                Student.class_id == class_obj.id
            )
        )
        missing = wanted - set(result.scalars().all())
        if missing:
            raise ValidationError(
                f"Students not enrolled in class {class_obj.class_name}: "
                f"{', '.join(sorted(str(m) for m in missing))}",
                field="students"
            )

    async def mark_attendance(
        self,
        caller: CallerIdentity,
        class_id: UUID,
        attendance_date: Union[date, str],
        entries: Iterable[Any],
        subject: Optional[str] = None,
    ) -> MarkResult:
        ensure_role(caller, *ATTENDANCE_ROLES)
        entries = list(entries or [])

        attempts = max(settings.attendance_retry_attempts, 0) + 1
        for attempt in range(1, attempts + 1):
            try:
                return await self._mark_once(caller, class_id, attendance_date, entries, subject)
            except ConcurrentMarkError as e:
                logger.warning(f"Attendance batch for class {class_id} raced ({e.message}); attempt {attempt}/{attempts}")
        raise TransactionError("Attendance could not be recorded due to concurrent updates; safe to retry")

    async def _mark_once(
        self,
        caller: CallerIdentity,
        class_id: UUID,
        attendance_date: Union[date, str],
        entries: List[Any],
        subject: Optional[str],
    ) -> MarkResult:
        created = updated = 0

        async with self.atomic("Mark attendance"):
            class_obj = await self.classes.get_class(caller, class_id)
            self._ensure_class_teacher(caller, class_obj)
            day = parse_attendance_date(attendance_date)

            # All-or-nothing validation before any mutation
            rows = self._normalise_entries(entries)
            await self._require_enrolled_students(class_obj, [row["student_id"] for row in rows])

            subject = subject.strip() if subject and subject.strip() else None
            for row in rows:
                result = await self.db.execute(
                    select(self.model).where(
                        self.model.student_id == row["student_id"],
                        self.model.attendance_date == day
                    ).with_for_update()
                )
                existing = result.scalar_one_or_none()

                if existing and existing.class_id != class_obj.id:
                    # Recorded by another class before the student moved
                    raise ConflictError(
                        f"Attendance for student {row['student_id']} on {day} "
                        f"was already recorded by another class"
                    )
                if existing:
                    existing.status = row["status"]
                    existing.subject = subject
                    existing.remarks = row["remarks"]
                    existing.marked_at = datetime.now(timezone.utc)
                    await self.db.flush()
                    updated += 1
                    continue

                self.db.add(self.model(
                    branch_id=caller.branch_id,
                    student_id=row["student_id"],
                    class_id=class_obj.id,
                    teacher_id=caller.user_id,
                    attendance_date=day,
                    status=row["status"],
                    subject=subject,
                    remarks=row["remarks"],
                    academic_year=class_obj.academic_year,
                ))
                try:
                    await self.db.flush()
                except IntegrityError as e:
                    raise ConcurrentMarkError(f"student {row['student_id']} on {day} inserted concurrently") from e
                created += 1

        logger.info(
            f"Marked attendance for class {class_obj.class_name} on {day}: "
            f"{created} created, {updated} updated"
        )
        return MarkResult(
            class_id=class_obj.id,
            class_name=class_obj.class_name,
            attendance_date=day,
            subject=subject,
            created=created,
            updated=updated,
            total_processed=len(rows),
        )

    async def update_single_record(
        self,
        caller: CallerIdentity,
        record_id: UUID,
        status: Any,
        remarks: Optional[str] = None,
        subject: Optional[str] = None,
    ) -> AttendanceRecord:
        """Correct one record after the fact; only the status is re-validated."""
        ensure_role(caller, *ATTENDANCE_ROLES)

        async with self.atomic("Update attendance record"):
            record = await self.get_in_branch(record_id, caller.branch_id, for_update=True)
            if not record:
                raise NotFoundError("Attendance record", record_id)
            if caller.role is UserRole.TEACHER:
                class_obj = await self.classes.get_class(caller, record.class_id)
                self._ensure_class_teacher(caller, class_obj)

            record.status = parse_attendance_status(status).value
            record.remarks = remarks or None
            record.subject = subject or None
            await self.db.flush()

        logger.info(f"Updated attendance record {record_id} to {record.status}")
        return record

    def _listing(self, stmt, start_date=None, end_date=None, status=None):
        if start_date:
            stmt = stmt.where(self.model.attendance_date >= parse_attendance_date(start_date))
        if end_date:
            stmt = stmt.where(self.model.attendance_date <= parse_attendance_date(end_date))
        if status:
            stmt = stmt.where(self.model.status == parse_attendance_status(status).value)
        return stmt

    async def list_class_attendance(
        self,
        caller: CallerIdentity,
        class_id: UUID,
        start_date: Optional[Union[date, str]] = None,
        end_date: Optional[Union[date, str]] = None,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Dict[str, Any]:
        class_obj = await self.classes.get_class(caller, class_id)
        self._ensure_class_teacher(caller, class_obj)

        stmt = self._listing(
            select(self.model, Student.name, Student.roll_number)
            .join(Student, Student.id == self.model.student_id)
            .where(self.model.class_id == class_id),
            start_date, end_date, status,
        )
        count_stmt = self._listing(
            select(func.count()).select_from(self.model).where(self.model.class_id == class_id),
            start_date, end_date, status,
        )

        result = await self.db.execute(
            stmt.order_by(self.model.attendance_date.desc(), Student.roll_number).offset(offset).limit(limit)
        )
        total = await self.db.scalar(count_stmt)
        return {
            "class": class_obj,
            "records": [
                {"record": record, "student_name": name, "roll_number": roll}
                for record, name, roll in result.all()
            ],
            "total": total,
            "limit": limit,
            "offset": offset,
            "has_more": total > offset + limit,
        }

    async def attendance_for_date(
        self,
        caller: CallerIdentity,
        attendance_date: Union[date, str],
        class_id: Optional[UUID] = None,
        status: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> Dict[str, Any]:
        """Attendance across all classes of the branch for one date."""
        day = parse_attendance_date(attendance_date)
        conditions = [self.model.attendance_date == day, self.model.branch_id == caller.branch_id]
        if class_id:
            conditions.append(self.model.class_id == class_id)

        stmt = self._listing(
            select(self.model, Student.name, Student.roll_number, ClassModel.class_name)
            .join(Student, Student.id == self.model.student_id)
            .join(ClassModel, ClassModel.id == self.model.class_id)
            .where(*conditions),
            status=status,
        )
        count_stmt = self._listing(
            select(func.count()).select_from(self.model).where(*conditions),
            status=status,
        )

        result = await self.db.execute(
            stmt.order_by(ClassModel.class_name, Student.roll_number).offset(offset).limit(limit)
        )
        total = await self.db.scalar(count_stmt)
        return {
            "attendance_date": day,
            "records": [
                {"record": record, "student_name": name, "roll_number": roll, "class_name": class_name}
                for record, name, roll, class_name in result.all()
            ],
            "total": total,
            "limit": limit,
            "offset": offset,
            "has_more": total > offset + limit,
        }
