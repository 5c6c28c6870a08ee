# academic_ops/schemas/timetable_schemas.py
from typing import Optional
from datetime import time
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field


class SlotWrite(BaseModel):
    subject: str = Field(..., max_length=100)
    teacher_id: UUID
    day_of_week: int
    start_time: time
    end_time: time
    room_number: Optional[str] = Field(default=None, max_length=20)


class SlotOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    class_id: UUID
    branch_id: UUID
    teacher_id: UUID
    subject: str
    day_of_week: int
    day_name: str
    start_time: time
    end_time: time
    room_number: Optional[str] = None
    academic_year: str
    semester: Optional[str] = None
