from datetime import date
from typing import Any, Dict, Optional
import uuid

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import get_db
from school_erp.core.dependencies import CurrentSession, resolve_school
from school_erp.core.permissions import require_permission
from school_erp.schemas.gate_pass.requests import GatePassCreateRequest
from school_erp.schemas.gate_pass.responses import GatePassResponse
from school_erp.services.audit_service import record_audit
from school_erp.services.gate_pass_service import GatePassService

router = APIRouter(prefix="/api/gate-pass", tags=["Gate Pass"])

SUB_MODULE = "gate_pass"


def get_gate_pass_service(db: AsyncSession = Depends(get_db)) -> GatePassService:
    return GatePassService(db)


@router.post("", status_code=201)
async def create_gate_pass(
    body: GatePassCreateRequest,
    background_tasks: BackgroundTasks,
    session: CurrentSession = Depends(require_permission(SUB_MODULE, "edit")),
    db: AsyncSession = Depends(get_db),
    gate_pass_service: GatePassService = Depends(get_gate_pass_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, body.school_code, session)
    gate_pass = await gate_pass_service.create(school.school_code, body, session.actor)
    background_tasks.add_task(
        record_audit, school.school_code, "create", "gate_pass", gate_pass.id, session.actor,
        {"pass_number": gate_pass.pass_number, "person_name": gate_pass.person_name},
    )
    return {"data": GatePassResponse.model_validate(gate_pass).model_dump()}


@router.get("")
async def list_gate_passes(
    school_code: Optional[str] = Query(None),
    on: Optional[date] = Query(None, alias="date"),
    status: Optional[str] = Query(None, pattern="^(out|returned)$"),
    person_type: Optional[str] = Query(None, pattern="^(student|staff|visitor)$"),
    session: CurrentSession = Depends(require_permission(SUB_MODULE)),
    db: AsyncSession = Depends(get_db),
    gate_pass_service: GatePassService = Depends(get_gate_pass_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    passes = await gate_pass_service.list_passes(school.school_code, on, status, person_type)
    return {"data": [GatePassResponse.model_validate(p).model_dump() for p in passes]}


@router.get("/{pass_id}")
async def get_gate_pass(
    pass_id: uuid.UUID,
    school_code: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(SUB_MODULE)),
    db: AsyncSession = Depends(get_db),
    gate_pass_service: GatePassService = Depends(get_gate_pass_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    gate_pass = await gate_pass_service.get(school.school_code, pass_id)
    return {"data": GatePassResponse.model_validate(gate_pass).model_dump()}


@router.post("/{pass_id}/return")
async def mark_returned(
    pass_id: uuid.UUID,
    school_code: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(SUB_MODULE, "edit")),
    db: AsyncSession = Depends(get_db),
    gate_pass_service: GatePassService = Depends(get_gate_pass_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    gate_pass = await gate_pass_service.mark_returned(school.school_code, pass_id)
    return {"data": GatePassResponse.model_validate(gate_pass).model_dump()}


@router.get("/{pass_id}/pdf")
async def gate_pass_pdf(
    pass_id: uuid.UUID,
    school_code: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(SUB_MODULE)),
    db: AsyncSession = Depends(get_db),
    gate_pass_service: GatePassService = Depends(get_gate_pass_service)
) -> Response:
    school = await resolve_school(db, school_code, session)
    content = await gate_pass_service.render_pdf(school, pass_id)
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'inline; filename="gate-pass-{pass_id}.pdf"'},
    )
