from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
import uuid
import logging

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.config import settings
from school_erp.core.database import transaction
from school_erp.core.errors import BadRequestError, ConflictError, NotFoundError
from school_erp.core.logging import log_function_call
from school_erp.models import (
    FeeAdjustment, FeeHead, FeeStructure, FeeStructureItem, Payment, PaymentAllocation,
    Receipt, Student, StudentFee,
)
from school_erp.schemas.fees.requests import (
    FeeAdjustmentRequest, FeeHeadCreateRequest, FeeStructureCreateRequest,
    FeeStructureUpdateRequest, PaymentCreateRequest,
)
from school_erp.services.fee_calculator import ZERO, money_value, summarize_fee, to_money
from school_erp.utils.dates import clamp_day, leading_year, today, utcnow

logger = logging.getLogger(__name__)

FREQUENCY_STEP = {"monthly": 1, "quarterly": 3}
ALLOCATION_TOLERANCE = Decimal("0.01")


def fee_periods(frequency: str, start_month: int, end_month: int, start_year: int) -> List[Tuple[int, int]]:
    """
    (year, month) pairs billed by a structure. A range whose end month is
    before its start month runs into the next calendar year.
    """
    span = end_month - start_month + 1 if end_month >= start_month else 12 - start_month + end_month + 1
    if frequency == "yearly":
        return [(start_year, start_month)]

    step = FREQUENCY_STEP.get(frequency, 1)
    periods = []
    for offset in range(0, span, step):
        index = start_month - 1 + offset
        periods.append((start_year + index // 12, index % 12 + 1))
    return periods


def stored_status(fee: StudentFee) -> str:
    balance = to_money(fee.base_amount) + to_money(fee.adjustment_amount) - to_money(fee.paid_amount)
    if balance <= ZERO:
        return "paid"
    if to_money(fee.paid_amount) > ZERO:
        return "partial"
    return "pending"


def fee_view(fee: StudentFee, on: Optional[date] = None) -> Dict[str, Any]:
    structure = fee.structure
    summary = summarize_fee(
        fee.base_amount,
        fee.paid_amount,
        fee.adjustment_amount,
        fee.due_date,
        late_fee_type=structure.late_fee_type if structure else None,
        late_fee_value=structure.late_fee_value if structure else ZERO,
        grace_period_days=structure.grace_period_days if structure else 0,
        on=on or today(),
    )
    return {
        "id": fee.id,
        "student_id": fee.student_id,
        "fee_structure_id": fee.fee_structure_id,
        "structure_name": structure.name if structure else "",
        "fee_month": fee.fee_month,
        "fee_year": fee.fee_year,
        "due_date": fee.due_date,
        "base_amount": money_value(fee.base_amount),
        "paid_amount": money_value(fee.paid_amount),
        "adjustment_amount": money_value(fee.adjustment_amount),
        "balance_due": money_value(summary.balance_due),
        "late_fee": money_value(summary.late_fee),
        "days_late": summary.days_late,
        "total_due": money_value(summary.total_due),
        "status": summary.status,
    }


class FeeService:
    def __init__(self, db: AsyncSession):
        self.db = db

    # Fee heads

    async def list_heads(self, school_code: str) -> List[FeeHead]:
        result = await self.db.execute(
            select(FeeHead).where(FeeHead.school_code == school_code).order_by(FeeHead.name)
        )
        return list(result.scalars().all())

    async def create_head(self, school_code: str, data: FeeHeadCreateRequest) -> FeeHead:
        name = data.name.strip()
        taken = (await self.db.execute(
            select(FeeHead.id).where(FeeHead.school_code == school_code, func.lower(FeeHead.name) == name.lower())
        )).first()
        if taken:
            raise ConflictError("Fee head with this name already exists")
        head = FeeHead(school_code=school_code, name=name, description=data.description)
        self.db.add(head)
        await self.db.commit()
        return head

    # Structures

    async def get_structure(self, school_code: str, structure_id: uuid.UUID) -> FeeStructure:
        structure = (await self.db.execute(
            select(FeeStructure).where(FeeStructure.id == structure_id, FeeStructure.school_code == school_code)
        )).scalar_one_or_none()
        if structure is None:
            raise NotFoundError("Fee structure not found")
        return structure

    async def list_structures(self, school_code: str, academic_year: Optional[str] = None,
                              class_name: Optional[str] = None) -> List[FeeStructure]:
        query = select(FeeStructure).where(FeeStructure.school_code == school_code)
        if academic_year:
            query = query.where(FeeStructure.academic_year == academic_year)
        if class_name:
            query = query.where(func.lower(FeeStructure.class_name) == class_name.strip().lower())
        result = await self.db.execute(query.order_by(FeeStructure.class_name, FeeStructure.name))
        return list(result.scalars().all())

    async def create_structure(self, school_code: str, data: FeeStructureCreateRequest) -> FeeStructure:
        head_ids = {item.fee_head_id for item in data.items}
        known = set((await self.db.execute(
            select(FeeHead.id).where(FeeHead.school_code == school_code, FeeHead.id.in_(head_ids))
        )).scalars().all())
        missing = head_ids - known
        if missing:
            raise BadRequestError("Unknown fee heads", details={"fee_head_ids": [str(h) for h in missing]})

        structure = FeeStructure(
            school_code=school_code,
            name=data.name.strip(),
            class_name=data.class_name.strip(),
            section=data.section.strip().upper() if data.section else None,
            academic_year=data.academic_year,
            start_month=data.start_month,
            end_month=data.end_month,
            frequency=data.frequency,
            payment_due_day=data.payment_due_day or settings.DEFAULT_PAYMENT_DUE_DAY,
            late_fee_type=data.late_fee_type,
            late_fee_value=data.late_fee_value,
            grace_period_days=(
                data.grace_period_days if data.grace_period_days is not None
                else settings.DEFAULT_GRACE_PERIOD_DAYS
            ),
            is_active=False,
            items=[
                FeeStructureItem(school_code=school_code, fee_head_id=item.fee_head_id, amount=item.amount)
                for item in data.items
            ],
        )
        self.db.add(structure)
        await self.db.commit()
        await self.db.refresh(structure)
        logger.info(f"Fee structure '{structure.name}' created for {school_code}")
        return structure

    async def update_structure(self, school_code: str, structure_id: uuid.UUID,
                               data: FeeStructureUpdateRequest) -> FeeStructure:
        structure = await self.get_structure(school_code, structure_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            if value is not None or field == "late_fee_type":
                setattr(structure, field, value)
        await self.db.commit()
        return structure

    async def set_active(self, school_code: str, structure_id: uuid.UUID, active: bool) -> FeeStructure:
        structure = await self.get_structure(school_code, structure_id)
        structure.is_active = active
        await self.db.commit()
        return structure

    async def _matching_students(self, structure: FeeStructure, with_year: bool) -> List[Student]:
        query = select(Student).where(
            Student.school_code == structure.school_code,
            func.lower(Student.class_name) == structure.class_name.strip().lower(),
            Student.status == "active",
        )
        if structure.section:
            query = query.where(func.upper(Student.section) == structure.section.upper())
        if with_year and structure.academic_year:
            query = query.where(Student.academic_year == structure.academic_year)
        return list((await self.db.execute(query)).scalars().all())

    @log_function_call(logger)
    async def generate_fees(self, school_code: str, structure_id: uuid.UUID) -> Dict[str, Any]:
        """
        Create one fee row per matching student per billing period.

        Students are matched on class and section and, when the structure names
        one, academic year. If the year filter finds nobody the match is retried
        without it and a warning is returned. Existing rows are left alone.
        """
        structure = await self.get_structure(school_code, structure_id)
        if not structure.is_active:
            raise BadRequestError("Fee structure must be activated before generating fees")

        warning = None
        students = await self._matching_students(structure, with_year=True)
        if not students and structure.academic_year:
            students = await self._matching_students(structure, with_year=False)
            if students:
                warning = (
                    f"No students are recorded for academic year {structure.academic_year}; "
                    "fees were generated for the class regardless of academic year"
                )
                logger.warning(f"{school_code}: {warning}")

        start_year = leading_year(structure.academic_year) or today().year
        periods = fee_periods(structure.frequency, structure.start_month, structure.end_month, start_year)
        base_amount = to_money(structure.total_amount)
        due_day = structure.payment_due_day or settings.DEFAULT_PAYMENT_DUE_DAY

        existing = set()
        if students:
            existing = set((await self.db.execute(
                select(StudentFee.student_id, StudentFee.fee_year, StudentFee.fee_month).where(
                    StudentFee.fee_structure_id == structure.id,
                    StudentFee.student_id.in_([s.id for s in students]),
                )
            )).all())

        created = skipped = 0
        for student in students:
            for year, month in periods:
                if (student.id, year, month) in existing:
                    skipped += 1
                    continue
                self.db.add(StudentFee(
                    school_code=school_code,
                    student_id=student.id,
                    fee_structure_id=structure.id,
                    fee_year=year,
                    fee_month=month,
                    due_date=clamp_day(year, month, due_day),
                    base_amount=base_amount,
                    paid_amount=ZERO,
                    adjustment_amount=ZERO,
                    status="pending",
                ))
                created += 1

        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("Fees for this period were generated concurrently, retry the request")

        logger.info(f"{school_code}: generated {created} fees from '{structure.name}' ({skipped} skipped)")
        return {
            "structure_id": structure.id,
            "students_matched": len(students),
            "fees_created": created,
            "fees_skipped": skipped,
            "periods": [f"{year}-{month:02d}" for year, month in periods],
            "warning": warning,
        }

    # Student fees

    async def _student(self, school_code: str, student_id: uuid.UUID) -> Student:
        student = (await self.db.execute(
            select(Student).where(Student.id == student_id, Student.school_code == school_code)
        )).scalar_one_or_none()
        if student is None:
            raise NotFoundError("Student not found")
        return student

    async def student_fees(self, school_code: str, student_id: uuid.UUID,
                           academic_year: Optional[str] = None, on: Optional[date] = None) -> List[Dict[str, Any]]:
        await self._student(school_code, student_id)
        query = (
            select(StudentFee)
            .join(FeeStructure, FeeStructure.id == StudentFee.fee_structure_id)
            .where(
                StudentFee.school_code == school_code,
                StudentFee.student_id == student_id,
                FeeStructure.is_active.is_(True),
            )
        )
        if academic_year:
            query = query.where(FeeStructure.academic_year == academic_year)
        fees = (await self.db.execute(query.order_by(StudentFee.due_date))).unique().scalars().all()
        return [fee_view(fee, on) for fee in fees]

    # Payments

    async def _next_receipt_no(self, school_code: str, year: int) -> str:
        prefix = f"{school_code}/REC/{year}/"
        issued = await self.db.scalar(
            select(func.count(Receipt.id)).where(
                Receipt.school_code == school_code,
                Receipt.receipt_no.like(f"{prefix}%"),
            )
        ) or 0
        return f"{prefix}{issued + 1:05d}"

    @log_function_call(logger)
    async def collect_payment(self, school_code: str, data: PaymentCreateRequest, collected_by: str) -> Dict[str, Any]:
        """
        Record a payment against specific fee rows and issue its receipt.

        Allocations must sum to the payment amount, belong to the paying student
        and stay within each row's balance. Payment, allocations, paid amounts
        and receipt are written in one transaction.
        """
        if not data.allocations:
            raise BadRequestError("At least one payment allocation is required")

        amount = to_money(data.amount)
        allocated = sum((to_money(a.amount) for a in data.allocations), ZERO)
        if abs(allocated - amount) > ALLOCATION_TOLERANCE:
            raise BadRequestError(
                f"Total allocated amount ({allocated}) must equal payment amount ({amount})"
            )

        student = await self._student(school_code, data.student_id)
        fee_ids = [a.student_fee_id for a in data.allocations]
        if len(set(fee_ids)) != len(fee_ids):
            raise BadRequestError("Each fee may only be allocated once per payment")

        fees = {
            fee.id: fee for fee in (await self.db.execute(
                select(StudentFee).where(
                    StudentFee.school_code == school_code,
                    StudentFee.student_id == student.id,
                    StudentFee.id.in_(fee_ids),
                )
            )).unique().scalars().all()
        }
        if len(fees) != len(fee_ids):
            raise BadRequestError("Invalid student fee IDs or fees not found")

        for allocation in data.allocations:
            fee = fees[allocation.student_fee_id]
            balance = to_money(fee.base_amount) + to_money(fee.adjustment_amount) - to_money(fee.paid_amount)
            if to_money(allocation.amount) > balance + ALLOCATION_TOLERANCE:
                raise BadRequestError(
                    f"Allocation amount exceeds balance due for fee {fee.id}",
                    details={"student_fee_id": str(fee.id), "balance_due": money_value(balance)},
                )

        payment_date = data.payment_date or today()
        async with transaction(self.db):
            payment = Payment(
                school_code=school_code,
                student_id=student.id,
                amount=amount,
                payment_mode=data.payment_mode,
                payment_date=payment_date,
                reference_no=(data.reference_no or "").strip() or None,
                remarks=(data.remarks or "").strip() or None,
                collected_by=collected_by,
                status="completed",
            )
            self.db.add(payment)
            for allocation in data.allocations:
                fee = fees[allocation.student_fee_id]
                payment.allocations.append(PaymentAllocation(
                    school_code=school_code,
                    student_fee_id=fee.id,
                    amount=to_money(allocation.amount),
                ))
                fee.paid_amount = to_money(fee.paid_amount) + to_money(allocation.amount)
                fee.status = stored_status(fee)
            await self.db.flush()

            receipt_no = await self._next_receipt_no(school_code, payment_date.year)
            receipt = Receipt(
                school_code=school_code,
                payment_id=payment.id,
                receipt_no=receipt_no,
                issued_at=utcnow(),
                receipt_data={
                    "student": {
                        "id": str(student.id),
                        "admission_no": student.admission_no,
                        "name": student.full_name,
                        "class": student.class_name,
                        "section": student.section,
                    },
                    "payment": {
                        "id": str(payment.id),
                        "amount": money_value(amount),
                        "mode": payment.payment_mode,
                        "date": payment_date.isoformat(),
                        "reference_no": payment.reference_no,
                    },
                    "allocations": [
                        {
                            "student_fee_id": str(a.student_fee_id),
                            "amount": money_value(a.amount),
                            "period": f"{fees[a.student_fee_id].fee_year}-{fees[a.student_fee_id].fee_month:02d}",
                        }
                        for a in data.allocations
                    ],
                    "collected_by": collected_by,
                },
            )
            self.db.add(receipt)

        logger.info(f"{school_code}: payment {payment.id} of {amount} recorded, receipt {receipt_no}")
        return {"payment": payment, "receipt": receipt}

    async def list_payments(
        self,
        school_code: str,
        student_id: Optional[uuid.UUID] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        include_reversed: bool = False
    ) -> List[Payment]:
        query = select(Payment).where(Payment.school_code == school_code)
        if not include_reversed:
            query = query.where(Payment.status != "reversed")
        if student_id:
            query = query.where(Payment.student_id == student_id)
        if start_date:
            query = query.where(Payment.payment_date >= start_date)
        if end_date:
            query = query.where(Payment.payment_date <= end_date)
        result = await self.db.execute(query.order_by(Payment.payment_date.desc(), Payment.created_at.desc()))
        return list(result.scalars().all())

    async def reverse_payment(self, school_code: str, payment_id: uuid.UUID, reason: str,
                              reversed_by: str) -> Payment:
        payment = (await self.db.execute(
            select(Payment).where(Payment.id == payment_id, Payment.school_code == school_code)
        )).scalar_one_or_none()
        if payment is None:
            raise NotFoundError("Payment not found")
        if payment.status == "reversed":
            raise BadRequestError("Payment is already reversed")

        fee_ids = [a.student_fee_id for a in payment.allocations]
        fees = {
            fee.id: fee for fee in (await self.db.execute(
                select(StudentFee).where(StudentFee.id.in_(fee_ids))
            )).unique().scalars().all()
        } if fee_ids else {}

        async with transaction(self.db):
            for allocation in payment.allocations:
                fee = fees.get(allocation.student_fee_id)
                if fee is None:
                    continue
                fee.paid_amount = max(ZERO, to_money(fee.paid_amount) - to_money(allocation.amount))
                fee.status = stored_status(fee)
            payment.status = "reversed"
            payment.remarks = f"Reversed by {reversed_by}: {reason}"

        logger.info(f"{school_code}: payment {payment.id} reversed by {reversed_by}")
        return payment

    # Adjustments

    async def add_adjustment(self, school_code: str, data: FeeAdjustmentRequest, created_by: str) -> Dict[str, Any]:
        """Discounts and waivers lower what is owed on a fee row, fines raise it"""
        fee = (await self.db.execute(
            select(StudentFee).where(StudentFee.id == data.student_fee_id, StudentFee.school_code == school_code)
        )).unique().scalar_one_or_none()
        if fee is None:
            raise NotFoundError("Student fee not found")

        amount = to_money(data.amount)
        delta = amount if data.adjustment_type == "fine" else -amount
        balance = to_money(fee.base_amount) + to_money(fee.adjustment_amount) - to_money(fee.paid_amount)
        if balance + delta < ZERO:
            raise BadRequestError("Adjustment exceeds the balance due", details={"balance_due": money_value(balance)})

        async with transaction(self.db):
            self.db.add(FeeAdjustment(
                school_code=school_code,
                student_fee_id=fee.id,
                adjustment_type=data.adjustment_type,
                amount=amount,
                reason=data.reason,
                created_by=created_by,
            ))
            fee.adjustment_amount = to_money(fee.adjustment_amount) + delta
            fee.status = stored_status(fee)
        return fee_view(fee)

    # Reports

    async def overdue_report(self, school_code: str, class_name: Optional[str] = None,
                             on: Optional[date] = None) -> List[Dict[str, Any]]:
        on = on or today()
        query = (
            select(StudentFee, Student)
            .join(Student, Student.id == StudentFee.student_id)
            .join(FeeStructure, FeeStructure.id == StudentFee.fee_structure_id)
            .where(
                StudentFee.school_code == school_code,
                StudentFee.status != "paid",
                StudentFee.due_date < on,
                FeeStructure.is_active.is_(True),
            )
        )
        if class_name:
            query = query.where(func.lower(Student.class_name) == class_name.strip().lower())
        rows = (await self.db.execute(query.order_by(StudentFee.due_date))).unique().all()

        report = []
        for fee, student in rows:
            view = fee_view(fee, on)
            if view["status"] != "overdue":
                continue
            view.update({
                "admission_no": student.admission_no,
                "student_name": student.full_name,
                "class_name": student.class_name,
                "section": student.section,
                "parent_phone": student.parent_phone,
            })
            report.append(view)
        return report

    async def statement(self, school_code: str, student_id: uuid.UUID) -> Dict[str, Any]:
        student = await self._student(school_code, student_id)
        fees = await self.student_fees(school_code, student_id)
        payments = await self.list_payments(school_code, student_id=student_id, include_reversed=True)

        def total(key: str) -> float:
            return round(sum(f[key] for f in fees), 2)

        return {
            "student": {
                "id": student.id,
                "admission_no": student.admission_no,
                "name": student.full_name,
                "class_name": student.class_name,
                "section": student.section,
            },
            "fees": fees,
            "payments": [
                {
                    "id": p.id,
                    "amount": money_value(p.amount),
                    "payment_date": p.payment_date,
                    "payment_mode": p.payment_mode,
                    "status": p.status,
                    "receipt_no": p.receipt.receipt_no if p.receipt else None,
                }
                for p in payments
            ],
            "totals": {
                "billed": total("base_amount"),
                "adjustments": total("adjustment_amount"),
                "paid": total("paid_amount"),
                "late_fees": total("late_fee"),
                "outstanding": total("total_due"),
            },
        }
