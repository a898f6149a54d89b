from typing import Any, Dict, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import get_db
from school_erp.core.dependencies import CurrentSession, resolve_school
from school_erp.core.permissions import require_permission
from school_erp.schemas.academic_year.requests import AcademicYearCreateRequest, ClosureRequest, PromotionRequest
from school_erp.schemas.academic_year.responses import AcademicYearResponse, ClosureResponse, PromotionResponse
from school_erp.services.academic_year_service import AcademicYearService
from school_erp.services.audit_service import record_audit

router = APIRouter(prefix="/api/academic-year-management", tags=["Academic Years"])

SUB_MODULE = "academic_year_management"


def get_year_service(db: AsyncSession = Depends(get_db)) -> AcademicYearService:
    return AcademicYearService(db)


@router.get("/years")
async def list_years(
    school_code: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(SUB_MODULE)),
    db: AsyncSession = Depends(get_db),
    year_service: AcademicYearService = Depends(get_year_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    years = await year_service.list_years(school.school_code)
    return {"data": [AcademicYearResponse(**year).model_dump() for year in years]}


@router.post("/years", status_code=201)
async def create_year(
    body: AcademicYearCreateRequest,
    background_tasks: BackgroundTasks,
    session: CurrentSession = Depends(require_permission(SUB_MODULE, "edit")),
    db: AsyncSession = Depends(get_db),
    year_service: AcademicYearService = Depends(get_year_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, body.school_code, session)
    year = await year_service.create_year(school.school_code, body)
    background_tasks.add_task(
        record_audit, school.school_code, "create", "academic_year", year.id, session.actor,
        {"year_name": year.year_name},
    )
    return {
        "data": AcademicYearResponse(
            id=year.id,
            year_name=year.year_name,
            start_date=year.start_date,
            end_date=year.end_date,
            status=year.status,
            is_current=year.is_current,
        ).model_dump()
    }


@router.post("/closure")
async def close_year(
    body: ClosureRequest,
    session: CurrentSession = Depends(require_permission(SUB_MODULE, "edit")),
    db: AsyncSession = Depends(get_db),
    year_service: AcademicYearService = Depends(get_year_service)
) -> Dict[str, Any]:
    """Close the previous year and activate the new one as a single transaction"""
    school = await resolve_school(db, body.school_code, session)
    result = await year_service.close_year(school, body, body.performed_by or session.actor)
    return {"data": ClosureResponse(**result).model_dump()}


@router.post("/promotion/execute")
async def execute_promotion(
    body: PromotionRequest,
    session: CurrentSession = Depends(require_permission(SUB_MODULE, "edit")),
    db: AsyncSession = Depends(get_db),
    year_service: AcademicYearService = Depends(get_year_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, body.school_code, session)
    result = await year_service.execute_promotion(school, body, body.performed_by or session.actor)
    return {"data": PromotionResponse(**result).model_dump()}
