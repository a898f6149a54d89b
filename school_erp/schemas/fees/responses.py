from typing import Any, Dict, List, Optional
from datetime import date, datetime
import uuid

from pydantic import BaseModel

from school_erp.schemas.common import Numeric, ORMModel


class FeeHeadResponse(ORMModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    is_active: bool


class FeeStructureItemResponse(ORMModel):
    id: uuid.UUID
    fee_head_id: uuid.UUID
    amount: Numeric


class FeeStructureResponse(ORMModel):
    id: uuid.UUID
    name: str
    class_name: str
    section: Optional[str] = None
    academic_year: Optional[str] = None
    start_month: int
    end_month: int
    frequency: str
    payment_due_day: int
    late_fee_type: Optional[str] = None
    late_fee_value: Numeric
    grace_period_days: int
    is_active: bool
    total_amount: Numeric
    items: List[FeeStructureItemResponse] = []


class GenerateFeesResponse(BaseModel):
    structure_id: uuid.UUID
    students_matched: int
    fees_created: int
    fees_skipped: int
    periods: List[str]
    warning: Optional[str] = None


class PaymentResponse(ORMModel):
    id: uuid.UUID
    student_id: uuid.UUID
    amount: Numeric
    payment_mode: str
    payment_date: date
    reference_no: Optional[str] = None
    remarks: Optional[str] = None
    collected_by: str
    status: str
    created_at: datetime


class ReceiptResponse(ORMModel):
    receipt_no: str
    receipt_data: Dict[str, Any]
    issued_at: datetime
