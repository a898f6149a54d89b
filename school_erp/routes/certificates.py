from typing import Any, Dict, Optional
import uuid

from fastapi import APIRouter, BackgroundTasks, Depends, File, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import get_db
from school_erp.core.dependencies import CurrentSession, resolve_school
from school_erp.core.permissions import require_permission
from school_erp.schemas.certificate.requests import BulkGenerateRequest, CertificateGenerateRequest, TemplateCreateRequest
from school_erp.schemas.certificate.responses import CertificateResponse, TemplateResponse
from school_erp.services.audit_service import record_audit
from school_erp.services.certificate_service import CertificateService
from school_erp.utils.tabular import read_upload

router = APIRouter(prefix="/api/certificates", tags=["Certificates"])

SUB_MODULE = "certificate_management"


def get_certificate_service(db: AsyncSession = Depends(get_db)) -> CertificateService:
    return CertificateService(db)


@router.get("/templates")
async def list_templates(
    school_code: Optional[str] = Query(None),
    certificate_type: Optional[str] = Query(None, pattern="^(student|staff)$"),
    session: CurrentSession = Depends(require_permission(SUB_MODULE)),
    db: AsyncSession = Depends(get_db),
    certificate_service: CertificateService = Depends(get_certificate_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    templates = await certificate_service.list_templates(school.school_code, certificate_type)
    return {"data": [TemplateResponse.model_validate(t).model_dump() for t in templates]}


@router.post("/templates", status_code=201)
async def create_template(
    body: TemplateCreateRequest,
    session: CurrentSession = Depends(require_permission(SUB_MODULE, "edit")),
    db: AsyncSession = Depends(get_db),
    certificate_service: CertificateService = Depends(get_certificate_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, body.school_code, session)
    template = await certificate_service.create_template(school.school_code, body)
    return {"data": TemplateResponse.model_validate(template).model_dump()}


@router.delete("/templates/{template_id}")
async def delete_template(
    template_id: uuid.UUID,
    school_code: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(SUB_MODULE, "edit")),
    db: AsyncSession = Depends(get_db),
    certificate_service: CertificateService = Depends(get_certificate_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    await certificate_service.delete_template(school.school_code, template_id)
    return {"data": {"deleted": True}}


@router.post("/generate", status_code=201)
async def generate_certificate(
    body: CertificateGenerateRequest,
    background_tasks: BackgroundTasks,
    session: CurrentSession = Depends(require_permission(SUB_MODULE, "edit")),
    db: AsyncSession = Depends(get_db),
    certificate_service: CertificateService = Depends(get_certificate_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, body.school_code, session)
    certificate = await certificate_service.generate(school.school_code, body, session.actor)
    background_tasks.add_task(
        record_audit, school.school_code, "issue", "certificate", certificate.id, session.actor,
        {"certificate_number": certificate.certificate_number},
    )
    return {"data": CertificateResponse.model_validate(certificate).model_dump()}


@router.post("/parse")
async def parse_upload(
    file: UploadFile = File(...),
    session: CurrentSession = Depends(require_permission(SUB_MODULE, "edit")),
) -> Dict[str, Any]:
    """Read a CSV/XLSX of recipients; the header row is returned for field mapping"""
    rows = read_upload(await file.read(), file.filename)
    columns = list(rows[0].keys()) if rows else []
    return {"data": {"columns": columns, "rows": rows, "total": len(rows)}}


@router.post("/bulk-generate")
async def bulk_generate(
    body: BulkGenerateRequest,
    background_tasks: BackgroundTasks,
    session: CurrentSession = Depends(require_permission(SUB_MODULE, "edit")),
    db: AsyncSession = Depends(get_db),
    certificate_service: CertificateService = Depends(get_certificate_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, body.school_code, session)
    result = await certificate_service.bulk_generate(school.school_code, body, session.actor)
    background_tasks.add_task(
        record_audit, school.school_code, "bulk_issue", "certificate", body.template_id, session.actor,
        {"issued": result["issued"], "failed": result["failed"]},
    )
    return {"data": result}


@router.get("/issued")
async def list_issued(
    school_code: Optional[str] = Query(None),
    recipient_type: Optional[str] = Query(None, pattern="^(student|staff)$"),
    recipient_id: Optional[uuid.UUID] = Query(None),
    search: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(SUB_MODULE)),
    db: AsyncSession = Depends(get_db),
    certificate_service: CertificateService = Depends(get_certificate_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    certificates = await certificate_service.list_issued(school.school_code, recipient_type, recipient_id, search)
    return {"data": [CertificateResponse.model_validate(c).model_dump() for c in certificates]}


@router.get("/verify/{code}")
async def verify_certificate(
    code: str,
    certificate_service: CertificateService = Depends(get_certificate_service)
) -> Dict[str, Any]:
    certificate = await certificate_service.verify(code)
    return {
        "data": {
            "valid": certificate.status == "ISSUED",
            "certificate_number": certificate.certificate_number,
            "recipient_name": certificate.recipient_name,
            "school_code": certificate.school_code,
            "issued_at": certificate.issued_at,
        }
    }
