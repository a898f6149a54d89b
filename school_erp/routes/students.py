from typing import Any, Dict, Optional
import uuid

from fastapi import APIRouter, BackgroundTasks, Body, Depends, File, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import get_db
from school_erp.core.dependencies import CurrentSession, resolve_school
from school_erp.core.logging import logger
from school_erp.core.permissions import require_permission
from school_erp.schemas.student.requests import StudentBulkRequest, StudentCreateRequest
from school_erp.schemas.student.responses import (
    SiblingGroup,
    StudentBulkResult,
    StudentResponse,
    StudentValidationResult,
)
from school_erp.services.audit_service import record_audit
from school_erp.services.student_service import COLUMN_LABELS, TEMPLATE_COLUMNS, StudentService
from school_erp.utils.files import save_image
from school_erp.utils.tabular import export_rows, read_upload

router = APIRouter(prefix="/api", tags=["Students"])

DIRECTORY = "student_directory"
IMPORT = "student_import"


def get_student_service(db: AsyncSession = Depends(get_db)) -> StudentService:
    return StudentService(db)


@router.get("/students")
async def list_students(
    school_code: Optional[str] = Query(None),
    class_name: Optional[str] = Query(None),
    section: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    academic_year: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    limit: Optional[int] = Query(None, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    session: CurrentSession = Depends(require_permission(DIRECTORY)),
    db: AsyncSession = Depends(get_db),
    student_service: StudentService = Depends(get_student_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    students, total = await student_service.list_students(
        school.school_code,
        class_name=class_name,
        section=section,
        status=status,
        academic_year=academic_year,
        search=search,
        limit=limit,
        offset=offset,
    )
    return {
        "data": [StudentResponse.model_validate(s).model_dump() for s in students],
        "total": total,
    }


@router.get("/students/siblings")
async def list_siblings(
    school_code: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(DIRECTORY)),
    db: AsyncSession = Depends(get_db),
    student_service: StudentService = Depends(get_student_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    groups = await student_service.siblings(school.school_code)
    return {
        "data": [
            SiblingGroup(
                parent_phone=group["parent_phone"],
                students=[StudentResponse.model_validate(s) for s in group["students"]],
            ).model_dump()
            for group in groups
        ]
    }


@router.get("/students/template")
async def import_template(
    format: str = Query("csv", pattern="^(csv|xlsx)$"),
    session: CurrentSession = Depends(require_permission(IMPORT)),
):
    """Empty import sheet with the expected header row"""
    return export_rows([], TEMPLATE_COLUMNS, "student_import_template", format, COLUMN_LABELS, "Students")


@router.post("/students/parse")
async def parse_upload(
    file: UploadFile = File(...),
    session: CurrentSession = Depends(require_permission(IMPORT)),
) -> Dict[str, Any]:
    rows = StudentService.normalize_rows(read_upload(await file.read(), file.filename))
    return {"data": {"rows": rows, "total": len(rows)}}


@router.post("/students/validate")
async def validate_rows(
    body: StudentBulkRequest,
    session: CurrentSession = Depends(require_permission(IMPORT)),
    db: AsyncSession = Depends(get_db),
    student_service: StudentService = Depends(get_student_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, body.school_code, session)
    valid, errors = await student_service.validate_rows(school.school_code, body.rows)
    return {
        "data": StudentValidationResult(
            total=len(body.rows), valid=len(valid), invalid=len(errors), errors=errors
        ).model_dump()
    }


@router.post("/students/bulk")
async def bulk_insert(
    body: StudentBulkRequest,
    background_tasks: BackgroundTasks,
    session: CurrentSession = Depends(require_permission(IMPORT, "edit")),
    db: AsyncSession = Depends(get_db),
    student_service: StudentService = Depends(get_student_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, body.school_code, session)
    result = await student_service.bulk_insert(
        school.school_code, body.rows, body.academic_year or school.current_academic_year
    )
    background_tasks.add_task(
        record_audit, school.school_code, "bulk_import", "student", None, session.actor,
        {"inserted": result["inserted"], "skipped": result["skipped"]},
    )
    return {"data": StudentBulkResult(**result).model_dump()}


@router.get("/students/{student_id}")
async def get_student(
    student_id: uuid.UUID,
    school_code: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(DIRECTORY)),
    db: AsyncSession = Depends(get_db),
    student_service: StudentService = Depends(get_student_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    student = await student_service.get_student(school.school_code, student_id)
    return {"data": StudentResponse.model_validate(student).model_dump()}


@router.post("/students", status_code=201)
async def create_student(
    body: StudentCreateRequest,
    background_tasks: BackgroundTasks,
    session: CurrentSession = Depends(require_permission(DIRECTORY, "edit")),
    db: AsyncSession = Depends(get_db),
    student_service: StudentService = Depends(get_student_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, body.school_code, session)
    student = await student_service.create_student(school.school_code, body, school.current_academic_year)
    background_tasks.add_task(
        record_audit, school.school_code, "create", "student", student.id, session.actor,
        {"admission_no": student.admission_no},
    )
    return {"data": StudentResponse.model_validate(student).model_dump()}


@router.patch("/students/{student_id}")
async def update_student(
    student_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    changes: Dict[str, Any] = Body(...),
    school_code: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(DIRECTORY, "edit")),
    db: AsyncSession = Depends(get_db),
    student_service: StudentService = Depends(get_student_service)
) -> Dict[str, Any]:
    """Partial update; only whitelisted student columns are applied"""
    school = await resolve_school(db, school_code or changes.pop("school_code", None), session)
    changes.pop("school_code", None)
    student = await student_service.update_student(school.school_code, student_id, changes)
    background_tasks.add_task(
        record_audit, school.school_code, "update", "student", student_id, session.actor,
        {"fields": sorted(changes)},
    )
    return {"data": StudentResponse.model_validate(student).model_dump()}


@router.delete("/students/{student_id}")
async def delete_student(
    student_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    hard: bool = Query(False),
    school_code: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(DIRECTORY, "edit")),
    db: AsyncSession = Depends(get_db),
    student_service: StudentService = Depends(get_student_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    student = await student_service.delete_student(school.school_code, student_id, hard=hard)
    background_tasks.add_task(
        record_audit, school.school_code, "delete" if hard else "deactivate", "student", student_id,
        session.actor, {"admission_no": student.admission_no},
    )
    return {"data": {"id": student_id, "deleted": hard, "status": None if hard else student.status}}


@router.post("/students/{student_id}/photo")
async def upload_photo(
    student_id: uuid.UUID,
    file: UploadFile = File(...),
    session: CurrentSession = Depends(require_permission(DIRECTORY, "edit")),
    db: AsyncSession = Depends(get_db),
    student_service: StudentService = Depends(get_student_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, session.school_code, session)
    await student_service.get_student(school.school_code, student_id)
    photo_url = await save_image(file, school.school_code, "students")
    student = await student_service.set_photo(school.school_code, student_id, photo_url)
    return {"data": {"photo_url": student.photo_url}}


@router.get("/download/students")
async def download_students(
    school_code: Optional[str] = Query(None),
    class_name: Optional[str] = Query(None),
    section: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    columns: Optional[str] = Query(None, description="Comma separated column keys"),
    format: str = Query("csv", pattern="^(csv|xlsx)$"),
    session: CurrentSession = Depends(require_permission(DIRECTORY)),
    db: AsyncSession = Depends(get_db),
    student_service: StudentService = Depends(get_student_service)
):
    school = await resolve_school(db, school_code, session)
    students, _ = await student_service.list_students(
        school.school_code, class_name=class_name, section=section, status=status
    )
    selected = StudentService.export_columns(columns)
    logger.info(f"{school.school_code}: exporting {len(students)} students as {format}")
    return export_rows(
        [StudentService.export_row(s, selected) for s in students],
        selected,
        f"students_{school.school_code}",
        format,
        COLUMN_LABELS,
        "Students",
    )
