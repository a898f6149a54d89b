from typing import Any, Dict, Optional
import uuid

from fastapi import APIRouter, BackgroundTasks, Depends, File, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import get_db
from school_erp.core.dependencies import (
    CurrentSession,
    get_current_session,
    get_session_staff,
    resolve_school,
)
from school_erp.core.errors import PermissionDenied
from school_erp.core.permissions import require_permission
from school_erp.schemas.rbac.responses import StaffRoleResponse
from school_erp.schemas.staff.requests import (
    StaffCreateRequest,
    StaffPermissionsRequest,
    StaffRolesRequest,
    StaffUpdateRequest,
)
from school_erp.schemas.staff.responses import StaffResponse
from school_erp.services.audit_service import record_audit
from school_erp.services.rbac_service import RBACService
from school_erp.services.staff_service import STAFF_COLUMN_LABELS, STAFF_EXPORT_COLUMNS, StaffService
from school_erp.utils.files import save_image
from school_erp.utils.tabular import export_rows

router = APIRouter(prefix="/api/staff", tags=["Staff"])

DIRECTORY = "staff_directory"
ROLES = "role_management"


def get_staff_service(db: AsyncSession = Depends(get_db)) -> StaffService:
    return StaffService(db)


def get_rbac_service(db: AsyncSession = Depends(get_db)) -> RBACService:
    return RBACService(db)


@router.get("")
async def list_staff(
    school_code: Optional[str] = Query(None),
    include_inactive: bool = Query(False),
    department: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(DIRECTORY)),
    db: AsyncSession = Depends(get_db),
    staff_service: StaffService = Depends(get_staff_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    members = await staff_service.list_staff(school.school_code, include_inactive, department, search)
    return {"data": [StaffResponse.model_validate(s).model_dump() for s in members]}


@router.get("/export")
async def export_staff(
    school_code: Optional[str] = Query(None),
    include_inactive: bool = Query(False),
    format: str = Query("csv", pattern="^(csv|xlsx)$"),
    session: CurrentSession = Depends(require_permission(DIRECTORY)),
    db: AsyncSession = Depends(get_db),
    staff_service: StaffService = Depends(get_staff_service)
):
    school = await resolve_school(db, school_code, session)
    members = await staff_service.list_staff(school.school_code, include_inactive)
    rows = [{column: getattr(s, column) for column in STAFF_EXPORT_COLUMNS} for s in members]
    return export_rows(rows, STAFF_EXPORT_COLUMNS, f"staff_{school.school_code}", format, STAFF_COLUMN_LABELS, "Staff")


@router.get("/me/menu")
async def my_menu(
    session: CurrentSession = Depends(get_current_session),
    db: AsyncSession = Depends(get_db),
    rbac_service: RBACService = Depends(get_rbac_service)
) -> Dict[str, Any]:
    """Navigation menu for the logged-in staff member; school admins get the full tree"""
    if session.is_school_admin:
        return {"data": await rbac_service.module_tree()}
    staff = await get_session_staff(db, session)
    if staff is None:
        raise PermissionDenied()
    return {"data": await rbac_service.staff_menu(staff)}


@router.get("/{staff_uuid}")
async def get_staff(
    staff_uuid: uuid.UUID,
    school_code: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(DIRECTORY)),
    db: AsyncSession = Depends(get_db),
    staff_service: StaffService = Depends(get_staff_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    staff = await staff_service.get_staff(school.school_code, staff_uuid)
    return {"data": StaffResponse.model_validate(staff).model_dump()}


@router.post("", status_code=201)
async def create_staff(
    body: StaffCreateRequest,
    background_tasks: BackgroundTasks,
    session: CurrentSession = Depends(require_permission(DIRECTORY, "edit")),
    db: AsyncSession = Depends(get_db),
    staff_service: StaffService = Depends(get_staff_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, body.school_code, session)
    staff = await staff_service.create_staff(school.school_code, body)
    background_tasks.add_task(
        record_audit, school.school_code, "create", "staff", staff.id, session.actor,
        {"staff_id": staff.staff_id},
    )
    return {"data": StaffResponse.model_validate(staff).model_dump()}


@router.patch("/{staff_uuid}")
async def update_staff(
    staff_uuid: uuid.UUID,
    body: StaffUpdateRequest,
    background_tasks: BackgroundTasks,
    school_code: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(DIRECTORY, "edit")),
    db: AsyncSession = Depends(get_db),
    staff_service: StaffService = Depends(get_staff_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    staff = await staff_service.update_staff(school.school_code, staff_uuid, body)
    background_tasks.add_task(
        record_audit, school.school_code, "update", "staff", staff_uuid, session.actor,
        {"fields": sorted(body.model_dump(exclude_unset=True))},
    )
    return {"data": StaffResponse.model_validate(staff).model_dump()}


@router.delete("/{staff_uuid}")
async def deactivate_staff(
    staff_uuid: uuid.UUID,
    background_tasks: BackgroundTasks,
    school_code: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(DIRECTORY, "edit")),
    db: AsyncSession = Depends(get_db),
    staff_service: StaffService = Depends(get_staff_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    staff = await staff_service.deactivate_staff(school.school_code, staff_uuid)
    background_tasks.add_task(record_audit, school.school_code, "deactivate", "staff", staff_uuid, session.actor)
    return {"data": StaffResponse.model_validate(staff).model_dump()}


@router.post("/{staff_uuid}/photo")
async def upload_photo(
    staff_uuid: uuid.UUID,
    file: UploadFile = File(...),
    session: CurrentSession = Depends(require_permission(DIRECTORY, "edit")),
    db: AsyncSession = Depends(get_db),
    staff_service: StaffService = Depends(get_staff_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, session.school_code, session)
    await staff_service.get_staff(school.school_code, staff_uuid)
    photo_url = await save_image(file, school.school_code, "staff")
    staff = await staff_service.set_photo(school.school_code, staff_uuid, photo_url)
    return {"data": {"photo_url": staff.photo_url}}


@router.get("/{staff_uuid}/roles")
async def get_staff_roles(
    staff_uuid: uuid.UUID,
    session: CurrentSession = Depends(require_permission(ROLES)),
    db: AsyncSession = Depends(get_db),
    staff_service: StaffService = Depends(get_staff_service),
    rbac_service: RBACService = Depends(get_rbac_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, session.school_code, session)
    staff = await staff_service.get_staff(school.school_code, staff_uuid)
    roles = await rbac_service.get_staff_roles(staff)
    return {"data": [StaffRoleResponse.model_validate(r).model_dump() for r in roles]}


@router.put("/{staff_uuid}/roles")
async def set_staff_roles(
    staff_uuid: uuid.UUID,
    body: StaffRolesRequest,
    background_tasks: BackgroundTasks,
    session: CurrentSession = Depends(require_permission(ROLES, "edit")),
    db: AsyncSession = Depends(get_db),
    staff_service: StaffService = Depends(get_staff_service),
    rbac_service: RBACService = Depends(get_rbac_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, session.school_code, session)
    staff = await staff_service.get_staff(school.school_code, staff_uuid)
    roles = await rbac_service.set_staff_roles(staff, body.role_ids, assigned_by=session.actor)
    background_tasks.add_task(
        record_audit, school.school_code, "assign_roles", "staff", staff_uuid, session.actor,
        {"role_ids": [str(r) for r in body.role_ids]},
    )
    return {"data": [StaffRoleResponse.model_validate(r).model_dump() for r in roles]}


@router.get("/{staff_uuid}/permissions")
async def get_staff_permissions(
    staff_uuid: uuid.UUID,
    session: CurrentSession = Depends(require_permission(ROLES)),
    db: AsyncSession = Depends(get_db),
    staff_service: StaffService = Depends(get_staff_service),
    rbac_service: RBACService = Depends(get_rbac_service)
) -> Dict[str, Any]:
    """Effective permissions: role grants with per-staff overrides applied on top"""
    school = await resolve_school(db, session.school_code, session)
    staff = await staff_service.get_staff(school.school_code, staff_uuid)
    return {"data": await rbac_service.get_staff_permissions(staff.id)}


@router.post("/{staff_uuid}/permissions")
async def save_staff_permissions(
    staff_uuid: uuid.UUID,
    body: StaffPermissionsRequest,
    background_tasks: BackgroundTasks,
    session: CurrentSession = Depends(require_permission(ROLES, "edit")),
    db: AsyncSession = Depends(get_db),
    staff_service: StaffService = Depends(get_staff_service),
    rbac_service: RBACService = Depends(get_rbac_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, session.school_code, session)
    staff = await staff_service.get_staff(school.school_code, staff_uuid)
    saved = await rbac_service.save_staff_permissions(
        staff, [entry.model_dump() for entry in body.permissions], assigned_by=session.actor
    )
    background_tasks.add_task(
        record_audit, school.school_code, "set_permissions", "staff", staff_uuid, session.actor,
        {"overrides": saved},
    )
    return {"data": await rbac_service.get_staff_permissions(staff.id)}


@router.delete("/{staff_uuid}/permissions/{sub_module_key}/{category_key}")
async def clear_staff_permission(
    staff_uuid: uuid.UUID,
    sub_module_key: str,
    category_key: str,
    session: CurrentSession = Depends(require_permission(ROLES, "edit")),
    db: AsyncSession = Depends(get_db),
    staff_service: StaffService = Depends(get_staff_service),
    rbac_service: RBACService = Depends(get_rbac_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, session.school_code, session)
    staff = await staff_service.get_staff(school.school_code, staff_uuid)
    await rbac_service.clear_staff_permission(staff, sub_module_key, category_key)
    return {"data": await rbac_service.get_staff_permissions(staff.id)}


@router.get("/{staff_uuid}/menu")
async def staff_menu(
    staff_uuid: uuid.UUID,
    session: CurrentSession = Depends(require_permission(ROLES)),
    db: AsyncSession = Depends(get_db),
    staff_service: StaffService = Depends(get_staff_service),
    rbac_service: RBACService = Depends(get_rbac_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, session.school_code, session)
    staff = await staff_service.get_staff(school.school_code, staff_uuid)
    return {"data": await rbac_service.staff_menu(staff)}
