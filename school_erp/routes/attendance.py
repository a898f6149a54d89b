from datetime import date
from typing import Any, Dict, Optional
import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import get_db
from school_erp.core.dependencies import CurrentSession, get_session_staff, require_staff_or_admin, resolve_school
from school_erp.core.permissions import require_permission
from school_erp.schemas.attendance.requests import MarkAttendanceRequest, StaffAttendanceRequest
from school_erp.schemas.attendance.responses import StudentAttendanceResponse
from school_erp.services.attendance_service import AttendanceService
from school_erp.utils.dates import today
from school_erp.utils.tabular import export_rows

router = APIRouter(prefix="/api/attendance", tags=["Attendance"])

STUDENT_ATTENDANCE = "student_attendance"
STAFF_ATTENDANCE = "staff_attendance"
REPORT_COLUMNS = ["date", "admission_no", "name", "class", "status", "remarks"]


def get_attendance_service(db: AsyncSession = Depends(get_db)) -> AttendanceService:
    return AttendanceService(db)


@router.post("/mark")
async def mark_attendance(
    body: MarkAttendanceRequest,
    session: CurrentSession = Depends(require_staff_or_admin),
    db: AsyncSession = Depends(get_db),
    attendance_service: AttendanceService = Depends(get_attendance_service)
) -> Dict[str, Any]:
    """Mark a class for one day. Teachers may only mark the class they are class teacher of."""
    school = await resolve_school(db, body.school_code, session)
    staff = await get_session_staff(db, session)
    records = await attendance_service.mark_class_attendance(school.school_code, body, session.actor, staff)
    return {
        "data": [StudentAttendanceResponse.model_validate(r).model_dump() for r in records],
        "message": f"Attendance marked for {len(records)} students",
    }


@router.get("/class/{class_id}")
async def class_attendance(
    class_id: uuid.UUID,
    on: Optional[date] = Query(None, alias="date"),
    school_code: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_staff_or_admin),
    db: AsyncSession = Depends(get_db),
    attendance_service: AttendanceService = Depends(get_attendance_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    rows = await attendance_service.class_attendance(school.school_code, class_id, on or today())
    return {"data": rows}


@router.get("/student-monthly")
async def student_monthly(
    class_id: uuid.UUID = Query(...),
    year: int = Query(..., ge=2000, le=2100),
    month: int = Query(..., ge=1, le=12),
    school_code: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_staff_or_admin),
    db: AsyncSession = Depends(get_db),
    attendance_service: AttendanceService = Depends(get_attendance_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    return {"data": await attendance_service.student_monthly(school.school_code, class_id, year, month)}


@router.post("/staff")
async def mark_staff_attendance(
    body: StaffAttendanceRequest,
    session: CurrentSession = Depends(require_permission(STAFF_ATTENDANCE, "edit")),
    db: AsyncSession = Depends(get_db),
    attendance_service: AttendanceService = Depends(get_attendance_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, body.school_code, session)
    saved = await attendance_service.mark_staff_attendance(school.school_code, body, session.actor)
    return {"data": {"saved": saved, "attendance_date": body.attendance_date}}


@router.get("/staff")
async def staff_attendance(
    on: Optional[date] = Query(None, alias="date"),
    school_code: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(STAFF_ATTENDANCE)),
    db: AsyncSession = Depends(get_db),
    attendance_service: AttendanceService = Depends(get_attendance_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    return {"data": await attendance_service.staff_attendance(school.school_code, on or today())}


@router.get("/staff-monthly")
async def staff_monthly(
    year: int = Query(..., ge=2000, le=2100),
    month: int = Query(..., ge=1, le=12),
    school_code: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(STAFF_ATTENDANCE)),
    db: AsyncSession = Depends(get_db),
    attendance_service: AttendanceService = Depends(get_attendance_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    return {"data": await attendance_service.staff_monthly(school.school_code, year, month)}


@router.get("/overview")
async def attendance_overview(
    on: Optional[date] = Query(None, alias="date"),
    school_code: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(STUDENT_ATTENDANCE)),
    db: AsyncSession = Depends(get_db),
    attendance_service: AttendanceService = Depends(get_attendance_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    return {"data": await attendance_service.overview(school.school_code, on or today())}


@router.get("/report")
async def attendance_report(
    class_id: uuid.UUID = Query(...),
    start_date: date = Query(...),
    end_date: date = Query(...),
    format: str = Query("csv", pattern="^(csv|xlsx)$"),
    school_code: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(STUDENT_ATTENDANCE)),
    db: AsyncSession = Depends(get_db),
    attendance_service: AttendanceService = Depends(get_attendance_service)
):
    school = await resolve_school(db, school_code, session)
    rows = await attendance_service.report_rows(school.school_code, class_id, start_date, end_date)
    labels = {c: c.replace("_", " ").title() for c in REPORT_COLUMNS}
    return export_rows(
        rows, REPORT_COLUMNS, f"attendance_{start_date.isoformat()}_{end_date.isoformat()}", format, labels, "Attendance"
    )
