# academic_ops/schemas/class_schemas.py
from typing import Optional
from datetime import datetime
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field


class ClassBase(BaseModel):
    class_name: str = Field(..., max_length=50)
    standard: str = Field(..., max_length=50)
    academic_year: str = Field(..., max_length=20)
    grade: Optional[str] = Field(default=None, max_length=100)
    teacher_id: Optional[UUID] = None
    semester: Optional[str] = Field(default=None, max_length=50)
    capacity: Optional[int] = None
    room_number: Optional[str] = Field(default=None, max_length=20)
    schedule: Optional[str] = None


class ClassCreate(ClassBase):
    status: Optional[str] = None


class ClassUpdate(BaseModel):
    class_name: Optional[str] = Field(default=None, max_length=50)
    standard: Optional[str] = Field(default=None, max_length=50)
    academic_year: Optional[str] = Field(default=None, max_length=20)
    grade: Optional[str] = None
    teacher_id: Optional[UUID] = None
    semester: Optional[str] = None
    capacity: Optional[int] = None
    room_number: Optional[str] = None
    schedule: Optional[str] = None
    status: Optional[str] = None


class ClassOut(ClassBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    # Nullable in storage; only required on input
    standard: Optional[str] = None
    branch_id: UUID
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class RolloverRequest(BaseModel):
    new_academic_year: str = Field(..., max_length=20)


class TeacherOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: str


class StudentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    class_id: Optional[UUID] = None
    name: str
    roll_number: Optional[str] = None
    status: str
    academic_year: str
