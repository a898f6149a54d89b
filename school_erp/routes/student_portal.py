from typing import Any, Dict, Optional
import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import get_db
from school_erp.core.dependencies import CurrentSession, get_session_student, require_student
from school_erp.schemas.examination.responses import MarkResponse
from school_erp.schemas.student.responses import StudentResponse
from school_erp.services.attendance_service import AttendanceService
from school_erp.services.examination_service import ExaminationService
from school_erp.services.fee_service import FeeService
from school_erp.services.library_service import LibraryService
from school_erp.utils.dates import month_bounds, today

router = APIRouter(prefix="/api/student", tags=["Student Portal"])


@router.get("/profile")
async def my_profile(
    session: CurrentSession = Depends(require_student),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    student = await get_session_student(db, session)
    return {"data": StudentResponse.model_validate(student).model_dump()}


@router.get("/fees")
async def my_fees(
    academic_year: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_student),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    student = await get_session_student(db, session)
    return {"data": await FeeService(db).student_fees(student.school_code, student.id, academic_year)}


@router.get("/attendance")
async def my_attendance(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    month: Optional[int] = Query(None, ge=1, le=12),
    session: CurrentSession = Depends(require_student),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    """Attendance for one month, the current month by default"""
    student = await get_session_student(db, session)
    on = today()
    start, end = month_bounds(year or on.year, month or on.month)
    history = await AttendanceService(db).student_history(student.school_code, student.id, start, end)
    return {"data": history}


@router.get("/marks")
async def my_marks(
    exam_id: Optional[uuid.UUID] = Query(None),
    session: CurrentSession = Depends(require_student),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    student = await get_session_student(db, session)
    marks = await ExaminationService(db).student_marks(student.school_code, student.id, exam_id)
    return {"data": [MarkResponse.model_validate(m).model_dump() for m in marks]}


@router.get("/library")
async def my_library(
    session: CurrentSession = Depends(require_student),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    student = await get_session_student(db, session)
    items = await LibraryService(db).list_transactions(
        student.school_code, borrower_type="student", borrower_id=student.id
    )
    return {"data": items}
