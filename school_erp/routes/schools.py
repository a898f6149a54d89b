from typing import Any, Dict

from fastapi import APIRouter, BackgroundTasks, Depends, File, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import get_db
from school_erp.core.dependencies import CurrentSession, get_current_session, require_school_admin, resolve_school
from school_erp.schemas.school.requests import ChangeAdminPasswordRequest, InstituteUpdateRequest, SchoolSignupRequest
from school_erp.schemas.school.responses import SchoolResponse
from school_erp.services.audit_service import record_audit
from school_erp.services.school_service import SchoolService
from school_erp.utils.files import save_image

router = APIRouter(prefix="/api", tags=["Schools"])


def get_school_service(db: AsyncSession = Depends(get_db)) -> SchoolService:
    return SchoolService(db)


@router.post("/schools", status_code=201)
async def signup(
    body: SchoolSignupRequest,
    background_tasks: BackgroundTasks,
    school_service: SchoolService = Depends(get_school_service)
) -> Dict[str, Any]:
    """Register a new school; the generated school code is returned for the admin login"""
    school = await school_service.signup(body)
    background_tasks.add_task(
        record_audit, school.school_code, "signup", "school", school.id, f"admin:{school.school_code}"
    )
    return {"data": SchoolResponse.model_validate(school).model_dump()}


@router.get("/schools/{school_code}/public")
async def public_profile(
    school_code: str,
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code)
    return {"data": SchoolService.public_profile(school)}


@router.post("/schools/upload-logo")
async def upload_logo(
    file: UploadFile = File(...),
    session: CurrentSession = Depends(require_school_admin),
    db: AsyncSession = Depends(get_db),
    school_service: SchoolService = Depends(get_school_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, session.school_code, session)
    logo_url = await save_image(file, school.school_code, "logo")
    school = await school_service.set_logo(school, logo_url)
    return {"data": {"logo_url": school.logo_url}}


@router.get("/institute")
async def get_institute(
    session: CurrentSession = Depends(get_current_session),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    school = await resolve_school(db, session.school_code, session)
    return {"data": SchoolResponse.model_validate(school).model_dump()}


@router.patch("/institute")
async def update_institute(
    body: InstituteUpdateRequest,
    background_tasks: BackgroundTasks,
    session: CurrentSession = Depends(require_school_admin),
    db: AsyncSession = Depends(get_db),
    school_service: SchoolService = Depends(get_school_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, session.school_code, session)
    school = await school_service.update(school, body)
    background_tasks.add_task(
        record_audit, school.school_code, "update", "school", school.id, session.actor,
        body.model_dump(exclude_unset=True),
    )
    return {"data": SchoolResponse.model_validate(school).model_dump()}


@router.post("/institute/change-password")
async def change_admin_password(
    body: ChangeAdminPasswordRequest,
    session: CurrentSession = Depends(require_school_admin),
    db: AsyncSession = Depends(get_db),
    school_service: SchoolService = Depends(get_school_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, session.school_code, session)
    await school_service.change_admin_password(school, body.current_password, body.new_password)
    return {"data": {"updated": True}}
