# academic_ops/schemas/attendance_schemas.py
from typing import List, Optional
from datetime import date, datetime
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field


class AttendanceEntry(BaseModel):
    student_id: UUID
    status: str
    remarks: Optional[str] = None


class AttendanceMark(BaseModel):
    # Kept as text so the recorder can reject anything but YYYY-MM-DD
    attendance_date: str
    subject: Optional[str] = Field(default=None, max_length=100)
    students: List[AttendanceEntry] = Field(default_factory=list)


class AttendanceUpdate(BaseModel):
    status: str
    remarks: Optional[str] = None
    subject: Optional[str] = Field(default=None, max_length=100)


class AttendanceRecordOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    student_id: UUID
    class_id: UUID
    teacher_id: UUID
    attendance_date: date
    status: str
    subject: Optional[str] = None
    remarks: Optional[str] = None
    academic_year: str
    marked_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
