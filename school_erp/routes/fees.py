from datetime import date
from typing import Any, Dict, Optional
import uuid

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.cache import cache_key, invalidate_prefix
from school_erp.core.database import get_db
from school_erp.core.dependencies import CurrentSession, resolve_school
from school_erp.core.permissions import require_permission
from school_erp.schemas.fees.requests import (
    FeeAdjustmentRequest,
    FeeHeadCreateRequest,
    FeeStructureCreateRequest,
    FeeStructureUpdateRequest,
    PaymentCreateRequest,
    PaymentReverseRequest,
)
from school_erp.schemas.fees.responses import (
    FeeHeadResponse,
    FeeStructureResponse,
    GenerateFeesResponse,
    PaymentResponse,
    ReceiptResponse,
)
from school_erp.services.audit_service import record_audit
from school_erp.services.fee_service import FeeService

router = APIRouter(prefix="/api/v2/fees", tags=["Fees"])

CONFIGURATION = "fee_configuration"
COLLECTION = "fee_collection"
REPORTS = "fee_reports"


def get_fee_service(db: AsyncSession = Depends(get_db)) -> FeeService:
    return FeeService(db)


def structure_data(structure) -> Dict[str, Any]:
    return FeeStructureResponse.model_validate(structure).model_dump()


# Fee heads

@router.get("/fee-heads")
async def list_fee_heads(
    school_code: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(CONFIGURATION)),
    db: AsyncSession = Depends(get_db),
    fee_service: FeeService = Depends(get_fee_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    heads = await fee_service.list_heads(school.school_code)
    return {"data": [FeeHeadResponse.model_validate(h).model_dump() for h in heads]}


@router.post("/fee-heads", status_code=201)
async def create_fee_head(
    body: FeeHeadCreateRequest,
    session: CurrentSession = Depends(require_permission(CONFIGURATION, "edit")),
    db: AsyncSession = Depends(get_db),
    fee_service: FeeService = Depends(get_fee_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, body.school_code, session)
    head = await fee_service.create_head(school.school_code, body)
    return {"data": FeeHeadResponse.model_validate(head).model_dump()}


# Fee structures

@router.get("/fee-structures")
async def list_fee_structures(
    school_code: Optional[str] = Query(None),
    academic_year: Optional[str] = Query(None),
    class_name: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(CONFIGURATION)),
    db: AsyncSession = Depends(get_db),
    fee_service: FeeService = Depends(get_fee_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    structures = await fee_service.list_structures(school.school_code, academic_year, class_name)
    return {"data": [structure_data(s) for s in structures]}


@router.post("/fee-structures", status_code=201)
async def create_fee_structure(
    body: FeeStructureCreateRequest,
    background_tasks: BackgroundTasks,
    session: CurrentSession = Depends(require_permission(CONFIGURATION, "edit")),
    db: AsyncSession = Depends(get_db),
    fee_service: FeeService = Depends(get_fee_service)
) -> Dict[str, Any]:
    """Create an inactive fee structure; it has to be activated before fees are generated"""
    school = await resolve_school(db, body.school_code, session)
    if body.academic_year is None:
        body.academic_year = school.current_academic_year
    structure = await fee_service.create_structure(school.school_code, body)
    background_tasks.add_task(
        record_audit, school.school_code, "create", "fee_structure", structure.id, session.actor,
        {"name": structure.name, "class_name": structure.class_name},
    )
    return {"data": structure_data(structure)}


@router.get("/fee-structures/{structure_id}")
async def get_fee_structure(
    structure_id: uuid.UUID,
    school_code: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(CONFIGURATION)),
    db: AsyncSession = Depends(get_db),
    fee_service: FeeService = Depends(get_fee_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    return {"data": structure_data(await fee_service.get_structure(school.school_code, structure_id))}


@router.patch("/fee-structures/{structure_id}")
async def update_fee_structure(
    structure_id: uuid.UUID,
    body: FeeStructureUpdateRequest,
    school_code: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(CONFIGURATION, "edit")),
    db: AsyncSession = Depends(get_db),
    fee_service: FeeService = Depends(get_fee_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    structure = await fee_service.update_structure(school.school_code, structure_id, body)
    return {"data": structure_data(structure)}


@router.post("/fee-structures/{structure_id}/activate")
async def activate_fee_structure(
    structure_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    school_code: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(CONFIGURATION, "edit")),
    db: AsyncSession = Depends(get_db),
    fee_service: FeeService = Depends(get_fee_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    structure = await fee_service.set_active(school.school_code, structure_id, True)
    background_tasks.add_task(
        record_audit, school.school_code, "activate", "fee_structure", structure_id, session.actor
    )
    return {"data": structure_data(structure)}


@router.post("/fee-structures/{structure_id}/deactivate")
async def deactivate_fee_structure(
    structure_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    school_code: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(CONFIGURATION, "edit")),
    db: AsyncSession = Depends(get_db),
    fee_service: FeeService = Depends(get_fee_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    structure = await fee_service.set_active(school.school_code, structure_id, False)
    background_tasks.add_task(
        record_audit, school.school_code, "deactivate", "fee_structure", structure_id, session.actor
    )
    return {"data": structure_data(structure)}


@router.post("/fee-structures/{structure_id}/generate-fees")
async def generate_fees(
    structure_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    school_code: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(CONFIGURATION, "edit")),
    db: AsyncSession = Depends(get_db),
    fee_service: FeeService = Depends(get_fee_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    result = await fee_service.generate_fees(school.school_code, structure_id)
    background_tasks.add_task(
        record_audit, school.school_code, "generate_fees", "fee_structure", structure_id, session.actor,
        {"fees_created": result["fees_created"], "fees_skipped": result["fees_skipped"]},
    )
    return {"data": GenerateFeesResponse(**result).model_dump()}


# Student fees

@router.get("/students/{student_id}/fees")
async def student_fees(
    student_id: uuid.UUID,
    school_code: Optional[str] = Query(None),
    academic_year: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(COLLECTION)),
    db: AsyncSession = Depends(get_db),
    fee_service: FeeService = Depends(get_fee_service)
) -> Dict[str, Any]:
    """Fee rows of active structures with the late fee as of today"""
    school = await resolve_school(db, school_code, session)
    return {"data": await fee_service.student_fees(school.school_code, student_id, academic_year)}


@router.get("/students/{student_id}/statement")
async def student_statement(
    student_id: uuid.UUID,
    school_code: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(REPORTS)),
    db: AsyncSession = Depends(get_db),
    fee_service: FeeService = Depends(get_fee_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    return {"data": await fee_service.statement(school.school_code, student_id)}


# Payments

@router.post("/payments", status_code=201)
async def collect_payment(
    body: PaymentCreateRequest,
    background_tasks: BackgroundTasks,
    session: CurrentSession = Depends(require_permission(COLLECTION, "edit")),
    db: AsyncSession = Depends(get_db),
    fee_service: FeeService = Depends(get_fee_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, body.school_code, session)
    result = await fee_service.collect_payment(school.school_code, body, session.actor)
    payment, receipt = result["payment"], result["receipt"]
    await invalidate_prefix(cache_key("dashboard", school.school_code))
    background_tasks.add_task(
        record_audit, school.school_code, "collect", "payment", payment.id, session.actor,
        {"amount": str(payment.amount), "receipt_no": receipt.receipt_no},
    )
    return {
        "data": {
            "payment": PaymentResponse.model_validate(payment).model_dump(),
            "receipt": ReceiptResponse.model_validate(receipt).model_dump(),
        }
    }


@router.get("/payments")
async def list_payments(
    school_code: Optional[str] = Query(None),
    student_id: Optional[uuid.UUID] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    include_reversed: bool = Query(False),
    session: CurrentSession = Depends(require_permission(COLLECTION)),
    db: AsyncSession = Depends(get_db),
    fee_service: FeeService = Depends(get_fee_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    payments = await fee_service.list_payments(
        school.school_code, student_id, start_date, end_date, include_reversed
    )
    return {"data": [PaymentResponse.model_validate(p).model_dump() for p in payments]}


@router.post("/payments/{payment_id}/reverse")
async def reverse_payment(
    payment_id: uuid.UUID,
    body: PaymentReverseRequest,
    background_tasks: BackgroundTasks,
    school_code: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(COLLECTION, "edit")),
    db: AsyncSession = Depends(get_db),
    fee_service: FeeService = Depends(get_fee_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    payment = await fee_service.reverse_payment(school.school_code, payment_id, body.reason, session.actor)
    await invalidate_prefix(cache_key("dashboard", school.school_code))
    background_tasks.add_task(
        record_audit, school.school_code, "reverse", "payment", payment_id, session.actor, {"reason": body.reason}
    )
    return {"data": PaymentResponse.model_validate(payment).model_dump()}


@router.post("/adjustments", status_code=201)
async def add_adjustment(
    body: FeeAdjustmentRequest,
    background_tasks: BackgroundTasks,
    session: CurrentSession = Depends(require_permission(COLLECTION, "edit")),
    db: AsyncSession = Depends(get_db),
    fee_service: FeeService = Depends(get_fee_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, body.school_code, session)
    fee = await fee_service.add_adjustment(school.school_code, body, session.actor)
    background_tasks.add_task(
        record_audit, school.school_code, body.adjustment_type, "student_fee", body.student_fee_id, session.actor,
        {"amount": str(body.amount), "reason": body.reason},
    )
    return {"data": fee}


# Reports

@router.get("/reports/overdue")
async def overdue_report(
    school_code: Optional[str] = Query(None),
    class_name: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_permission(REPORTS)),
    db: AsyncSession = Depends(get_db),
    fee_service: FeeService = Depends(get_fee_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    return {"data": await fee_service.overdue_report(school.school_code, class_name)}
