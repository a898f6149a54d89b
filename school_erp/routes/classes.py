from typing import Any, Dict, Optional
import uuid

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import get_db
from school_erp.core.dependencies import CurrentSession, resolve_school
from school_erp.core.permissions import require_permission
from school_erp.schemas.classes.requests import ClassCreateRequest, ClassUpdateRequest
from school_erp.schemas.classes.responses import ClassOverview, ClassResponse
from school_erp.schemas.student.responses import StudentResponse
from school_erp.services.audit_service import record_audit
from school_erp.services.class_service import ClassService

router = APIRouter(prefix="/api/classes", tags=["Classes"])

SUB_MODULE = "class_management"


def get_class_service(db: AsyncSession = Depends(get_db)) -> ClassService:
    return ClassService(db)


@router.get("")
async def list_classes(
    school_code: Optional[str] = Query(None),
    academic_year: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(SUB_MODULE)),
    db: AsyncSession = Depends(get_db),
    class_service: ClassService = Depends(get_class_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    classes = await class_service.list_classes(school.school_code, academic_year)
    return {"data": [ClassResponse.model_validate(c).model_dump() for c in classes]}


@router.get("/overview")
async def class_overview(
    school_code: Optional[str] = Query(None),
    academic_year: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(SUB_MODULE)),
    db: AsyncSession = Depends(get_db),
    class_service: ClassService = Depends(get_class_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    overview = await class_service.overview(school.school_code, academic_year)
    return {"data": [ClassOverview(**row).model_dump() for row in overview]}


@router.get("/{class_id}")
async def get_class(
    class_id: uuid.UUID,
    school_code: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(SUB_MODULE)),
    db: AsyncSession = Depends(get_db),
    class_service: ClassService = Depends(get_class_service)
) -> Dict[str, Any]:
    """Class details with its active students"""
    school = await resolve_school(db, school_code, session)
    school_class = await class_service.get_class(school.school_code, class_id)
    students = await class_service.students_in_class(school_class)
    data = ClassResponse.model_validate(school_class).model_dump()
    data["students"] = [StudentResponse.model_validate(s).model_dump() for s in students]
    return {"data": data}


@router.post("", status_code=201)
async def create_class(
    body: ClassCreateRequest,
    background_tasks: BackgroundTasks,
    session: CurrentSession = Depends(require_permission(SUB_MODULE, "edit")),
    db: AsyncSession = Depends(get_db),
    class_service: ClassService = Depends(get_class_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, body.school_code, session)
    school_class = await class_service.create_class(school.school_code, body, school.current_academic_year)
    background_tasks.add_task(
        record_audit, school.school_code, "create", "class", school_class.id, session.actor,
        {"class": school_class.label},
    )
    return {"data": ClassResponse.model_validate(school_class).model_dump()}


@router.patch("/{class_id}")
async def update_class(
    class_id: uuid.UUID,
    body: ClassUpdateRequest,
    background_tasks: BackgroundTasks,
    school_code: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(SUB_MODULE, "edit")),
    db: AsyncSession = Depends(get_db),
    class_service: ClassService = Depends(get_class_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    school_class = await class_service.update_class(school.school_code, class_id, body)
    background_tasks.add_task(
        record_audit, school.school_code, "update", "class", class_id, session.actor,
        body.model_dump(exclude_unset=True, mode="json"),
    )
    return {"data": ClassResponse.model_validate(school_class).model_dump()}


@router.delete("/{class_id}")
async def delete_class(
    class_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    school_code: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(SUB_MODULE, "edit")),
    db: AsyncSession = Depends(get_db),
    class_service: ClassService = Depends(get_class_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    await class_service.delete_class(school.school_code, class_id)
    background_tasks.add_task(record_audit, school.school_code, "delete", "class", class_id, session.actor)
    return {"data": {"deleted": True}}
