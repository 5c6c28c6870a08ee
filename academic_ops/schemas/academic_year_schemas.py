# academic_ops/schemas/academic_year_schemas.py
from typing import Optional
from datetime import date, datetime
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field


class AcademicYearCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=20)
    start_date: date
    end_date: date
    # Validated against the status enum by the registry
    status: str = Field(default="upcoming")


class AcademicYear(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    branch_id: Optional[UUID] = None
    name: str
    start_date: date
    end_date: date
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
