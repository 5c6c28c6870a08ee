# academic_ops/routers/classes.py
from typing import Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.security import CallerIdentity, get_caller_identity
from ..schemas.class_schemas import ClassCreate, ClassOut, ClassUpdate, RolloverRequest, StudentOut, TeacherOut
from ..services.academic_year_service import AcademicYearService
from ..services.class_service import ClassService
from ..services.rollover_service import RolloverService
from ..services.teacher_service import TeacherService

router = APIRouter(prefix="/api/v1/classes", tags=["Classes"])


def _class(class_obj) -> dict:
    return ClassOut.model_validate(class_obj).model_dump(mode="json")


def _roster(roster: dict) -> dict:
    students = [StudentOut.model_validate(s).model_dump(mode="json") for s in roster["students"]]
    return {"class": _class(roster["class"]), "students": students, "student_count": len(students)}


@router.get("/")
async def list_classes(
    academic_year: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    caller: CallerIdentity = Depends(get_caller_identity),
    db: AsyncSession = Depends(get_db)
):
    """List classes of the branch; defaults to the active academic year"""
    result = await ClassService(db).list_classes(caller, academic_year, limit=limit, offset=offset)
    return {
        "success": True,
        "data": [_class(c) for c in result["items"]],
        "total": result["total"],
        "academic_year": result["academic_year"],
        "limit": limit,
        "offset": offset,
    }


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_class(
    payload: ClassCreate,
    caller: CallerIdentity = Depends(get_caller_identity),
    db: AsyncSession = Depends(get_db)
):
    class_obj = await ClassService(db).create_class(caller, payload.model_dump())
    return {"success": True, "data": _class(class_obj), "message": "Class created successfully"}


@router.post("/rollover", status_code=status.HTTP_201_CREATED)
async def rollover_classes(
    payload: RolloverRequest,
    caller: CallerIdentity = Depends(get_caller_identity),
    db: AsyncSession = Depends(get_db)
):
    """Duplicate the active year's classes into a new academic year"""
    result = await RolloverService(db).rollover(caller, payload.new_academic_year)
    return {
        "success": True,
        "message": f"Successfully created {result.created_count} classes for {result.target_year}",
        "data": result.to_dict(),
    }


@router.get("/teachers/available")
async def get_available_teachers(
    academic_year: Optional[str] = Query(None),
    caller: CallerIdentity = Depends(get_caller_identity),
    db: AsyncSession = Depends(get_db)
):
    """Active teachers not yet assigned as class teacher in the year"""
    year_name = await AcademicYearService(db).resolve_year_name(caller.branch_id, academic_year)
    teachers = await TeacherService(db).available_teachers(caller.branch_id, year_name) if year_name else []
    return {
        "success": True,
        "data": [TeacherOut.model_validate(t).model_dump(mode="json") for t in teachers],
        "academicYear": year_name,
    }


@router.get("/teachers/all")
async def get_all_teachers(
    caller: CallerIdentity = Depends(get_caller_identity),
    db: AsyncSession = Depends(get_db)
):
    teachers = await TeacherService(db).all_teachers(caller.branch_id)
    return {
        "success": True,
        "data": [TeacherOut.model_validate(t).model_dump(mode="json") for t in teachers],
        "branchId": str(caller.branch_id),
    }


@router.get("/teachers/my-class")
async def get_my_class(
    academic_year: Optional[str] = Query(None),
    caller: CallerIdentity = Depends(get_caller_identity),
    db: AsyncSession = Depends(get_db)
):
    """Class the calling teacher is class teacher of"""
    roster = await ClassService(db).get_my_roster(caller, academic_year)
    return {
        "success": True,
        "data": {"class": _class(roster["class"]), "student_count": roster["student_count"]},
    }


@router.get("/teachers/my-students")
async def get_my_students(
    academic_year: Optional[str] = Query(None),
    caller: CallerIdentity = Depends(get_caller_identity),
    db: AsyncSession = Depends(get_db)
):
    roster = await ClassService(db).get_my_roster(caller, academic_year)
    return {"success": True, "data": _roster(roster)}


@router.get("/teachers/{teacher_id}/students")
async def get_teacher_students(
    teacher_id: UUID,
    academic_year: Optional[str] = Query(None),
    caller: CallerIdentity = Depends(get_caller_identity),
    db: AsyncSession = Depends(get_db)
):
    roster = await ClassService(db).get_teacher_roster(caller, teacher_id, academic_year)
    return {"success": True, "data": _roster(roster)}


@router.get("/teachers/{teacher_id}/class")
async def get_teacher_classes(
    teacher_id: UUID,
    caller: CallerIdentity = Depends(get_caller_identity),
    db: AsyncSession = Depends(get_db)
):
    classes = await ClassService(db).get_classes_for_teacher(caller, teacher_id)
    return {"success": True, "data": [_class(c) for c in classes]}


@router.get("/{class_id}")
async def get_class(
    class_id: UUID,
    caller: CallerIdentity = Depends(get_caller_identity),
    db: AsyncSession = Depends(get_db)
):
    class_obj = await ClassService(db).get_class(caller, class_id)
    return {"success": True, "data": _class(class_obj)}


@router.put("/{class_id}")
async def update_class(
    class_id: UUID,
    payload: ClassUpdate,
    caller: CallerIdentity = Depends(get_caller_identity),
    db: AsyncSession = Depends(get_db)
):
    class_obj = await ClassService(db).update_class(caller, class_id, payload.model_dump(exclude_unset=True))
    return {"success": True, "data": _class(class_obj), "message": "Class updated successfully"}


@router.delete("/{class_id}")
async def delete_class(
    class_id: UUID,
    caller: CallerIdentity = Depends(get_caller_identity),
    db: AsyncSession = Depends(get_db)
):
    await ClassService(db).delete_class(caller, class_id)
    return {"success": True, "message": "Class deleted successfully"}


@router.get("/{class_id}/students")
async def get_class_students(
    class_id: UUID,
    caller: CallerIdentity = Depends(get_caller_identity),
    db: AsyncSession = Depends(get_db)
):
    """Active students of a class, by roll number"""
    roster = await ClassService(db).get_class_students(caller, class_id)
    return {"success": True, "data": _roster(roster)}
