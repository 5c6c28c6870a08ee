# academic_ops/routers/attendance.py
from typing import Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.security import CallerIdentity, get_caller_identity
from ..schemas.attendance_schemas import AttendanceMark, AttendanceRecordOut, AttendanceUpdate
from ..services.attendance_service import AttendanceService

router = APIRouter(prefix="/api/v1", tags=["Attendance"])


def _record(record) -> dict:
    return AttendanceRecordOut.model_validate(record).model_dump(mode="json")


@router.post("/classes/{class_id}/attendance", status_code=status.HTTP_201_CREATED)
async def mark_attendance(
    class_id: UUID,
    payload: AttendanceMark,
    caller: CallerIdentity = Depends(get_caller_identity),
    db: AsyncSession = Depends(get_db)
):
    """Record or correct a class's attendance for one date"""
    result = await AttendanceService(db).mark_attendance(
        caller, class_id, payload.attendance_date, payload.students, subject=payload.subject
    )
    return {"success": True, "message": "Attendance marked successfully", "data": result.to_dict()}


@router.get("/classes/{class_id}/attendance")
async def get_class_attendance(
    class_id: UUID,
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    caller: CallerIdentity = Depends(get_caller_identity),
    db: AsyncSession = Depends(get_db)
):
    result = await AttendanceService(db).list_class_attendance(
        caller, class_id, start_date, end_date, status, limit=limit, offset=offset
    )
    return {
        "success": True,
        "data": {
            "class": {"id": str(result["class"].id), "class_name": result["class"].class_name},
            "attendance_records": [
                {**_record(row["record"]), "student_name": row["student_name"], "roll_number": row["roll_number"]}
                for row in result["records"]
            ],
            "pagination": {
                "total": result["total"],
                "limit": limit,
                "offset": offset,
                "has_more": result["has_more"],
            },
        },
    }


@router.put("/attendance/{record_id}")
async def update_attendance_record(
    record_id: UUID,
    payload: AttendanceUpdate,
    caller: CallerIdentity = Depends(get_caller_identity),
    db: AsyncSession = Depends(get_db)
):
    record = await AttendanceService(db).update_single_record(
        caller, record_id, payload.status, payload.remarks, payload.subject
    )
    return {"success": True, "data": _record(record), "message": "Attendance record updated successfully"}


@router.get("/attendance/date/{attendance_date}")
async def get_attendance_for_date(
    attendance_date: str,
    class_id: Optional[UUID] = Query(None),
    status: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    caller: CallerIdentity = Depends(get_caller_identity),
    db: AsyncSession = Depends(get_db)
):
    result = await AttendanceService(db).attendance_for_date(
        caller, attendance_date, class_id=class_id, status=status, limit=limit, offset=offset
    )
    return {
        "success": True,
        "data": {
            "attendance_date": result["attendance_date"].isoformat(),
            "attendance_records": [
                {
                    **_record(row["record"]),
                    "student_name": row["student_name"],
                    "roll_number": row["roll_number"],
                    "class_name": row["class_name"],
                }
                for row in result["records"]
            ],
            "pagination": {
                "total": result["total"],
                "limit": limit,
                "offset": offset,
                "has_more": result["has_more"],
            },
        },
    }
