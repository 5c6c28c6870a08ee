# academic_ops/routers/timetable.py
from typing import Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.security import CallerIdentity, get_caller_identity
from ..schemas.timetable_schemas import SlotOut, SlotWrite
from ..services.timetable_service import TimetableService

router = APIRouter(prefix="/api/v1", tags=["Timetable"])


def _slot(slot) -> dict:
    return SlotOut.model_validate(slot).model_dump(mode="json")


@router.get("/classes/{class_id}/timetable")
async def get_class_timetable(
    class_id: UUID,
    caller: CallerIdentity = Depends(get_caller_identity),
    db: AsyncSession = Depends(get_db)
):
    slots = await TimetableService(db).get_class_timetable(caller, class_id)
    return {"success": True, "data": [_slot(s) for s in slots]}


@router.post("/classes/{class_id}/timetable", status_code=status.HTTP_201_CREATED)
async def add_timetable_slot(
    class_id: UUID,
    payload: SlotWrite,
    caller: CallerIdentity = Depends(get_caller_identity),
    db: AsyncSession = Depends(get_db)
):
    slot = await TimetableService(db).allocate_slot(caller, class_id, **payload.model_dump())
    return {"success": True, "data": _slot(slot), "message": "Timetable slot added successfully"}


@router.put("/timetable/{slot_id}")
async def update_timetable_slot(
    slot_id: UUID,
    payload: SlotWrite,
    caller: CallerIdentity = Depends(get_caller_identity),
    db: AsyncSession = Depends(get_db)
):
    slot = await TimetableService(db).update_slot(caller, slot_id, **payload.model_dump())
    return {"success": True, "data": _slot(slot), "message": "Timetable slot updated successfully"}


@router.delete("/timetable/{slot_id}")
async def delete_timetable_slot(
    slot_id: UUID,
    caller: CallerIdentity = Depends(get_caller_identity),
    db: AsyncSession = Depends(get_db)
):
    await TimetableService(db).delete_slot(caller, slot_id)
    return {"success": True, "message": "Timetable slot deleted successfully"}


@router.get("/timetable/teachers/{teacher_id}")
async def get_teacher_timetable(
    teacher_id: UUID,
    academic_year: Optional[str] = Query(None),
    caller: CallerIdentity = Depends(get_caller_identity),
    db: AsyncSession = Depends(get_db)
):
    """Weekly timetable of a teacher across the branch's classes"""
    rows = await TimetableService(db).get_teacher_timetable(caller, teacher_id, academic_year)
    return {
        "success": True,
        "data": [{**_slot(row["slot"]), "class_name": row["class_name"]} for row in rows],
    }
