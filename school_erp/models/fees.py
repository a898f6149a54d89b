from decimal import Decimal

from sqlalchemy import (
    Column, String, Integer, Date, DateTime, Boolean, Numeric, Text, JSON,
    ForeignKey, Uuid, UniqueConstraint
)
from sqlalchemy.orm import relationship
from .base import TenantModel

Money = Numeric(12, 2)


class FeeHead(TenantModel):
    __tablename__ = "fee_heads"
    __table_args__ = (UniqueConstraint("school_code", "name", name="uq_fee_head_name"),)

    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)


class FeeStructure(TenantModel):
    __tablename__ = "fee_structures"

    name = Column(String(150), nullable=False)
    class_name = Column("class", String(50), nullable=False)
    section = Column(String(20), nullable=True)
    academic_year = Column(String(20), nullable=True)
    start_month = Column(Integer, default=4, nullable=False)
    end_month = Column(Integer, default=3, nullable=False)
    frequency = Column(String(20), default="monthly", nullable=False)
    payment_due_day = Column(Integer, default=15, nullable=False)
    late_fee_type = Column(String(20), nullable=True)
    late_fee_value = Column(Money, default=Decimal("0"), nullable=False)
    grace_period_days = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=False, nullable=False)

    items = relationship(
        "FeeStructureItem", back_populates="structure", cascade="all, delete-orphan", lazy="selectin"
    )

    @property
    def total_amount(self) -> Decimal:
        return sum((Decimal(item.amount or 0) for item in self.items), Decimal("0"))


class FeeStructureItem(TenantModel):
    __tablename__ = "fee_structure_items"

    fee_structure_id = Column(Uuid, ForeignKey("fee_structures.id", ondelete="CASCADE"), nullable=False, index=True)
    fee_head_id = Column(Uuid, ForeignKey("fee_heads.id"), nullable=False)
    amount = Column(Money, nullable=False)

    structure = relationship("FeeStructure", back_populates="items")
    fee_head = relationship("FeeHead", lazy="joined")


class StudentFee(TenantModel):
    __tablename__ = "student_fees"
    __table_args__ = (
        UniqueConstraint("student_id", "fee_structure_id", "fee_year", "fee_month", name="uq_student_fee_period"),
    )

    student_id = Column(Uuid, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    fee_structure_id = Column(Uuid, ForeignKey("fee_structures.id", ondelete="CASCADE"), nullable=False, index=True)
    fee_month = Column(Integer, nullable=False)
    fee_year = Column(Integer, nullable=False)
    due_date = Column(Date, nullable=False)
    base_amount = Column(Money, nullable=False)
    paid_amount = Column(Money, default=Decimal("0"), nullable=False)
    adjustment_amount = Column(Money, default=Decimal("0"), nullable=False)
    status = Column(String(20), default="pending", nullable=False)

    structure = relationship("FeeStructure", lazy="joined")


class Payment(TenantModel):
    __tablename__ = "payments"

    student_id = Column(Uuid, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Money, nullable=False)
    payment_mode = Column(String(30), nullable=False)
    payment_date = Column(Date, nullable=False)
    reference_no = Column(String(100), nullable=True)
    remarks = Column(Text, nullable=True)
    collected_by = Column(String(100), nullable=False)
    status = Column(String(20), default="completed", nullable=False)

    allocations = relationship(
        "PaymentAllocation", back_populates="payment", cascade="all, delete-orphan", lazy="selectin"
    )
    receipt = relationship("Receipt", back_populates="payment", uselist=False, lazy="selectin")


class PaymentAllocation(TenantModel):
    __tablename__ = "payment_allocations"

    payment_id = Column(Uuid, ForeignKey("payments.id", ondelete="CASCADE"), nullable=False, index=True)
    student_fee_id = Column(Uuid, ForeignKey("student_fees.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Money, nullable=False)

    payment = relationship("Payment", back_populates="allocations")


class Receipt(TenantModel):
    __tablename__ = "receipts"

    payment_id = Column(Uuid, ForeignKey("payments.id", ondelete="CASCADE"), nullable=False, unique=True)
    receipt_no = Column(String(60), unique=True, nullable=False)
    receipt_data = Column(JSON, nullable=False)
    issued_at = Column(DateTime, nullable=False)

    payment = relationship("Payment", back_populates="receipt")


class FeeAdjustment(TenantModel):
    __tablename__ = "fee_adjustments"

    student_fee_id = Column(Uuid, ForeignKey("student_fees.id", ondelete="CASCADE"), nullable=False, index=True)
    adjustment_type = Column(String(20), nullable=False)
    amount = Column(Money, nullable=False)
    reason = Column(Text, nullable=True)
    created_by = Column(String(100), nullable=True)
