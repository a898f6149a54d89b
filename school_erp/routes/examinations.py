from typing import Any, Dict, Optional
import uuid

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import get_db
from school_erp.core.dependencies import CurrentSession, resolve_school
from school_erp.core.permissions import require_permission
from school_erp.schemas.examination.requests import (
    ApproveMarksRequest,
    ExamCreateRequest,
    ExamUpdateRequest,
    GradeScaleRequest,
    SaveMarksRequest,
)
from school_erp.schemas.examination.responses import ExamResponse, GradeScaleResponse, MarkResponse
from school_erp.services.audit_service import record_audit
from school_erp.services.examination_service import ExaminationService

router = APIRouter(prefix="/api/examinations", tags=["Examinations"])

EXAMS = "exam_management"
MARKS = "marks_entry"


def get_exam_service(db: AsyncSession = Depends(get_db)) -> ExaminationService:
    return ExaminationService(db)


@router.get("")
async def list_exams(
    school_code: Optional[str] = Query(None),
    academic_year: Optional[str] = Query(None),
    class_id: Optional[uuid.UUID] = Query(None),
    session: CurrentSession = Depends(require_permission(EXAMS)),
    db: AsyncSession = Depends(get_db),
    exam_service: ExaminationService = Depends(get_exam_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    exams = await exam_service.list_exams(school.school_code, academic_year, class_id)
    return {"data": [ExamResponse.model_validate(e).model_dump() for e in exams]}


@router.post("", status_code=201)
async def create_exam(
    body: ExamCreateRequest,
    background_tasks: BackgroundTasks,
    session: CurrentSession = Depends(require_permission(EXAMS, "edit")),
    db: AsyncSession = Depends(get_db),
    exam_service: ExaminationService = Depends(get_exam_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, body.school_code, session)
    if body.academic_year is None:
        body.academic_year = school.current_academic_year
    exam = await exam_service.create_exam(school.school_code, body)
    background_tasks.add_task(
        record_audit, school.school_code, "create", "examination", exam.id, session.actor, {"name": exam.name}
    )
    return {"data": ExamResponse.model_validate(exam).model_dump()}


@router.get("/grade-scales")
async def list_grade_scales(
    school_code: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(EXAMS)),
    db: AsyncSession = Depends(get_db),
    exam_service: ExaminationService = Depends(get_exam_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    scales = await exam_service.list_grade_scales(school.school_code)
    return {"data": [GradeScaleResponse.model_validate(s).model_dump() for s in scales]}


@router.post("/grade-scales", status_code=201)
async def create_grade_scale(
    body: GradeScaleRequest,
    session: CurrentSession = Depends(require_permission(EXAMS, "edit")),
    db: AsyncSession = Depends(get_db),
    exam_service: ExaminationService = Depends(get_exam_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, body.school_code, session)
    scale = await exam_service.create_grade_scale(school.school_code, body)
    return {"data": GradeScaleResponse.model_validate(scale).model_dump()}


@router.put("/grade-scales/{scale_id}")
async def update_grade_scale(
    scale_id: uuid.UUID,
    body: GradeScaleRequest,
    session: CurrentSession = Depends(require_permission(EXAMS, "edit")),
    db: AsyncSession = Depends(get_db),
    exam_service: ExaminationService = Depends(get_exam_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, body.school_code, session)
    scale = await exam_service.update_grade_scale(school.school_code, scale_id, body)
    return {"data": GradeScaleResponse.model_validate(scale).model_dump()}


@router.delete("/grade-scales/{scale_id}")
async def delete_grade_scale(
    scale_id: uuid.UUID,
    school_code: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(EXAMS, "edit")),
    db: AsyncSession = Depends(get_db),
    exam_service: ExaminationService = Depends(get_exam_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    await exam_service.delete_grade_scale(school.school_code, scale_id)
    return {"data": {"deleted": True}}


@router.post("/marks")
async def save_marks(
    body: SaveMarksRequest,
    background_tasks: BackgroundTasks,
    session: CurrentSession = Depends(require_permission(MARKS, "edit")),
    db: AsyncSession = Depends(get_db),
    exam_service: ExaminationService = Depends(get_exam_service)
) -> Dict[str, Any]:
    """Save marks per student and subject; a null mark records the student as absent"""
    school = await resolve_school(db, body.school_code, session)
    result = await exam_service.save_marks(school.school_code, body, session.actor)
    background_tasks.add_task(
        record_audit, school.school_code, "save_marks", "examination", body.exam_id, session.actor,
        {"created": result["created"], "updated": result["updated"]},
    )
    return {"data": result}


@router.post("/marks/approve")
async def approve_marks(
    body: ApproveMarksRequest,
    background_tasks: BackgroundTasks,
    session: CurrentSession = Depends(require_permission(EXAMS, "edit")),
    db: AsyncSession = Depends(get_db),
    exam_service: ExaminationService = Depends(get_exam_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, body.school_code, session)
    approved = await exam_service.approve_marks(school.school_code, body)
    background_tasks.add_task(
        record_audit, school.school_code, "approve_marks", "examination", body.exam_id, session.actor,
        {"approved": approved},
    )
    return {"data": {"approved": approved}}


@router.get("/marks/student/{student_id}")
async def student_marks(
    student_id: uuid.UUID,
    exam_id: Optional[uuid.UUID] = Query(None),
    school_code: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(MARKS)),
    db: AsyncSession = Depends(get_db),
    exam_service: ExaminationService = Depends(get_exam_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    marks = await exam_service.student_marks(school.school_code, student_id, exam_id)
    return {"data": [MarkResponse.model_validate(m).model_dump() for m in marks]}


@router.get("/{exam_id}")
async def get_exam(
    exam_id: uuid.UUID,
    school_code: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(EXAMS)),
    db: AsyncSession = Depends(get_db),
    exam_service: ExaminationService = Depends(get_exam_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    exam = await exam_service.get_exam(school.school_code, exam_id)
    return {"data": ExamResponse.model_validate(exam).model_dump()}


@router.patch("/{exam_id}")
async def update_exam(
    exam_id: uuid.UUID,
    body: ExamUpdateRequest,
    school_code: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(EXAMS, "edit")),
    db: AsyncSession = Depends(get_db),
    exam_service: ExaminationService = Depends(get_exam_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    exam = await exam_service.update_exam(school.school_code, exam_id, body)
    return {"data": ExamResponse.model_validate(exam).model_dump()}


@router.delete("/{exam_id}")
async def delete_exam(
    exam_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    school_code: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(EXAMS, "edit")),
    db: AsyncSession = Depends(get_db),
    exam_service: ExaminationService = Depends(get_exam_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    await exam_service.delete_exam(school.school_code, exam_id)
    background_tasks.add_task(record_audit, school.school_code, "delete", "examination", exam_id, session.actor)
    return {"data": {"deleted": True}}


@router.get("/{exam_id}/results/{class_id}")
async def class_results(
    exam_id: uuid.UUID,
    class_id: uuid.UUID,
    school_code: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(EXAMS)),
    db: AsyncSession = Depends(get_db),
    exam_service: ExaminationService = Depends(get_exam_service)
) -> Dict[str, Any]:
    """Per-student totals, percentage, grade and rank for one class"""
    school = await resolve_school(db, school_code, session)
    return {"data": await exam_service.class_results(school.school_code, exam_id, class_id)}
