from typing import List, Literal, Optional
from datetime import date
from decimal import Decimal
import uuid

from pydantic import BaseModel, Field, field_validator

from school_erp.schemas.common import SchoolScoped


class FeeHeadCreateRequest(SchoolScoped):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None


class FeeStructureItemRequest(BaseModel):
    fee_head_id: uuid.UUID
    amount: Decimal = Field(..., ge=0)


class FeeStructureCreateRequest(SchoolScoped):
    name: str = Field(..., min_length=1, max_length=150)
    class_name: str = Field(..., min_length=1)
    section: Optional[str] = None
    academic_year: Optional[str] = None
    start_month: int = Field(4, ge=1, le=12)
    end_month: int = Field(3, ge=1, le=12)
    frequency: Literal["monthly", "quarterly", "yearly"] = "monthly"
    payment_due_day: Optional[int] = Field(None, ge=1, le=31)
    late_fee_type: Optional[Literal["flat", "per_day", "percentage"]] = None
    late_fee_value: Decimal = Field(Decimal("0"), ge=0)
    grace_period_days: Optional[int] = Field(None, ge=0)
    items: List[FeeStructureItemRequest] = Field(..., min_length=1)


class FeeStructureUpdateRequest(BaseModel):
    name: Optional[str] = None
    payment_due_day: Optional[int] = Field(None, ge=1, le=31)
    late_fee_type: Optional[Literal["flat", "per_day", "percentage"]] = None
    late_fee_value: Optional[Decimal] = Field(None, ge=0)
    grace_period_days: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None


class PaymentAllocationRequest(BaseModel):
    student_fee_id: uuid.UUID
    amount: Decimal = Field(..., gt=0)


class PaymentCreateRequest(SchoolScoped):
    student_id: uuid.UUID
    amount: Decimal
    payment_mode: str = Field(..., min_length=1)
    payment_date: Optional[date] = None
    reference_no: Optional[str] = None
    remarks: Optional[str] = None
    allocations: List[PaymentAllocationRequest] = []

    @field_validator("amount")
    @classmethod
    def positive_amount(cls, v: Decimal) -> Decimal:
        if v <= 0:
            raise ValueError("Amount must be greater than zero")
        return v


class PaymentReverseRequest(BaseModel):
    reason: str = Field(..., min_length=1)


class FeeAdjustmentRequest(SchoolScoped):
    student_fee_id: uuid.UUID
    adjustment_type: Literal["discount", "waiver", "fine"]
    amount: Decimal = Field(..., gt=0)
    reason: Optional[str] = None
