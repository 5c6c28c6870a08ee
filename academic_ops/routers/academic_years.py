# academic_ops/routers/academic_years.py
from uuid import UUID
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.security import CallerIdentity, get_caller_identity
from ..schemas.academic_year_schemas import AcademicYear, AcademicYearCreate
from ..services.academic_year_service import AcademicYearService

router = APIRouter(prefix="/api/v1/academic-years", tags=["Academic Years"])


def _year(year) -> dict:
    return AcademicYear.model_validate(year).model_dump(mode="json")


@router.get("/")
async def list_academic_years(
    caller: CallerIdentity = Depends(get_caller_identity),
    db: AsyncSession = Depends(get_db)
):
    """Academic years of the caller's branch, active year first"""
    years = await AcademicYearService(db).list_years(caller.branch_id)
    return {"success": True, "data": [_year(y) for y in years]}


@router.get("/current")
async def get_current_academic_year(
    caller: CallerIdentity = Depends(get_caller_identity),
    db: AsyncSession = Depends(get_db)
):
    year = await AcademicYearService(db).resolve_current_active(caller.branch_id)
    return {"success": True, "data": _year(year)}


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_academic_year(
    payload: AcademicYearCreate,
    caller: CallerIdentity = Depends(get_caller_identity),
    db: AsyncSession = Depends(get_db)
):
    year = await AcademicYearService(db).create(
        caller, payload.name, payload.start_date, payload.end_date, payload.status
    )
    return {"success": True, "data": _year(year), "message": "Academic year created successfully"}


@router.post("/{year_id}/activate")
async def activate_academic_year(
    year_id: UUID,
    caller: CallerIdentity = Depends(get_caller_identity),
    db: AsyncSession = Depends(get_db)
):
    year = await AcademicYearService(db).activate(caller, year_id)
    return {"success": True, "data": _year(year), "message": f"Academic year {year.name} is now active"}


@router.delete("/{year_id}")
async def delete_academic_year(
    year_id: UUID,
    caller: CallerIdentity = Depends(get_caller_identity),
    db: AsyncSession = Depends(get_db)
):
    await AcademicYearService(db).delete(caller, year_id)
    return {"success": True, "message": "Academic year deleted successfully"}
