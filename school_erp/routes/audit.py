from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import get_db
from school_erp.core.dependencies import CurrentSession, require_school_admin, resolve_school
from school_erp.core.permissions import require_permission
from school_erp.schemas.auth.responses import AuditLogResponse, LoginAuditResponse
from school_erp.services.audit_service import AuditService

router = APIRouter(prefix="/api", tags=["Audit"])


def get_audit_service(db: AsyncSession = Depends(get_db)) -> AuditService:
    return AuditService(db)


@router.get("/audit-logs")
async def list_audit_logs(
    school_code: Optional[str] = Query(None),
    action: Optional[str] = Query(None),
    entity_type: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    session: CurrentSession = Depends(require_permission("audit_logs")),
    db: AsyncSession = Depends(get_db),
    audit_service: AuditService = Depends(get_audit_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    logs = await audit_service.list_logs(school.school_code, action, entity_type, limit)
    return {"data": [AuditLogResponse.model_validate(log).model_dump() for log in logs]}


@router.get("/admin/login-audit")
async def list_login_audit(
    school_code: Optional[str] = Query(None),
    role: Optional[str] = Query(None),
    status: Optional[str] = Query(None, pattern="^(success|failed)$"),
    limit: int = Query(100, ge=1, le=1000),
    session: CurrentSession = Depends(require_school_admin),
    db: AsyncSession = Depends(get_db),
    audit_service: AuditService = Depends(get_audit_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    logs = await audit_service.list_login_logs(school.school_code, role, status, limit)
    return {"data": [LoginAuditResponse.model_validate(log).model_dump() for log in logs]}
