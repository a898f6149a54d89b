from typing import Any, Dict, Optional
import uuid

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import get_db
from school_erp.core.dependencies import CurrentSession, get_current_session, resolve_school
from school_erp.core.permissions import require_permission
from school_erp.schemas.rbac.requests import RoleCreateRequest, RolePermissionsRequest, RoleUpdateRequest
from school_erp.schemas.rbac.responses import PermissionCheckResponse, RoleResponse
from school_erp.services.audit_service import record_audit
from school_erp.services.rbac_service import RBACService
from school_erp.services.staff_service import StaffService

router = APIRouter(prefix="/api/rbac", tags=["RBAC"])

SUB_MODULE = "role_management"


def get_rbac_service(db: AsyncSession = Depends(get_db)) -> RBACService:
    return RBACService(db)


@router.get("/modules")
async def module_catalogue(
    session: CurrentSession = Depends(get_current_session),
    rbac_service: RBACService = Depends(get_rbac_service)
) -> Dict[str, Any]:
    return {"data": await rbac_service.module_tree()}


@router.get("/roles")
async def list_roles(
    school_code: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(SUB_MODULE)),
    db: AsyncSession = Depends(get_db),
    rbac_service: RBACService = Depends(get_rbac_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    roles = await rbac_service.list_roles(school.school_code)
    return {"data": [RoleResponse.model_validate(r).model_dump() for r in roles]}


@router.post("/roles", status_code=201)
async def create_role(
    body: RoleCreateRequest,
    background_tasks: BackgroundTasks,
    session: CurrentSession = Depends(require_permission(SUB_MODULE, "edit")),
    db: AsyncSession = Depends(get_db),
    rbac_service: RBACService = Depends(get_rbac_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, body.school_code, session)
    role = await rbac_service.create_role(school.school_code, body.name, body.description)
    background_tasks.add_task(
        record_audit, school.school_code, "create", "role", role.id, session.actor, {"name": role.name}
    )
    return {"data": RoleResponse.model_validate(role).model_dump()}


@router.get("/roles/{role_id}")
async def get_role(
    role_id: uuid.UUID,
    session: CurrentSession = Depends(require_permission(SUB_MODULE)),
    db: AsyncSession = Depends(get_db),
    rbac_service: RBACService = Depends(get_rbac_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, session.school_code, session)
    role = await rbac_service.get_role(school.school_code, role_id)
    return {"data": RoleResponse.model_validate(role).model_dump()}


@router.patch("/roles/{role_id}")
async def update_role(
    role_id: uuid.UUID,
    body: RoleUpdateRequest,
    session: CurrentSession = Depends(require_permission(SUB_MODULE, "edit")),
    db: AsyncSession = Depends(get_db),
    rbac_service: RBACService = Depends(get_rbac_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, session.school_code, session)
    role = await rbac_service.update_role(school.school_code, role_id, body.model_dump(exclude_unset=True))
    return {"data": RoleResponse.model_validate(role).model_dump()}


@router.delete("/roles/{role_id}")
async def delete_role(
    role_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    session: CurrentSession = Depends(require_permission(SUB_MODULE, "edit")),
    db: AsyncSession = Depends(get_db),
    rbac_service: RBACService = Depends(get_rbac_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, session.school_code, session)
    await rbac_service.delete_role(school.school_code, role_id)
    background_tasks.add_task(record_audit, school.school_code, "delete", "role", role_id, session.actor)
    return {"data": {"deleted": True}}


@router.get("/roles/{role_id}/permissions")
async def get_role_permissions(
    role_id: uuid.UUID,
    session: CurrentSession = Depends(require_permission(SUB_MODULE)),
    db: AsyncSession = Depends(get_db),
    rbac_service: RBACService = Depends(get_rbac_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, session.school_code, session)
    return {"data": await rbac_service.get_role_permissions(school.school_code, role_id)}


@router.put("/roles/{role_id}/permissions")
async def set_role_permissions(
    role_id: uuid.UUID,
    body: RolePermissionsRequest,
    background_tasks: BackgroundTasks,
    session: CurrentSession = Depends(require_permission(SUB_MODULE, "edit")),
    db: AsyncSession = Depends(get_db),
    rbac_service: RBACService = Depends(get_rbac_service)
) -> Dict[str, Any]:
    """Replace the whole permission matrix of a role"""
    school = await resolve_school(db, session.school_code, session)
    saved = await rbac_service.set_role_permissions(
        school.school_code, role_id, [entry.model_dump() for entry in body.permissions]
    )
    background_tasks.add_task(
        record_audit, school.school_code, "set_permissions", "role", role_id, session.actor, {"grants": saved}
    )
    return {"data": await rbac_service.get_role_permissions(school.school_code, role_id)}


@router.get("/check")
async def check_permission(
    staff_id: uuid.UUID = Query(...),
    sub_module_key: str = Query(...),
    category_key: str = Query("view"),
    access: str = Query("view", pattern="^(view|edit)$"),
    session: CurrentSession = Depends(require_permission(SUB_MODULE)),
    db: AsyncSession = Depends(get_db),
    rbac_service: RBACService = Depends(get_rbac_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, session.school_code, session)
    staff = await StaffService(db).get_staff(school.school_code, staff_id)
    decision = await rbac_service.check_staff_permission(staff.id, sub_module_key, category_key, access)
    return {
        "data": PermissionCheckResponse(
            allowed=decision.allowed, source=decision.source, reason=decision.reason
        ).model_dump()
    }
