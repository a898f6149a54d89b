"""
Late-fee and balance arithmetic for student fee rows.

Everything here is pure: callers pass the structure's late-fee policy and the
reference date, so the rules can be tested without a database.
"""
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

CENT = Decimal("0.01")
ZERO = Decimal("0")


def to_money(value) -> Decimal:
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def money_value(value) -> float:
    """Amount rounded to the cent, as written into JSON responses"""
    return float(to_money(value))


@dataclass
class LateFee:
    amount: Decimal
    days_late: int


@dataclass
class FeeSummary:
    balance_due: Decimal
    late_fee: Decimal
    days_late: int
    total_due: Decimal
    status: str


def compute_late_fee(
    base_amount,
    due_date: date,
    late_fee_type: Optional[str],
    late_fee_value,
    grace_period_days: int = 0,
    on: Optional[date] = None
) -> LateFee:
    """
    Fine owed on a fee row as of `on`.

    The fee is late only once `on` is strictly after due date plus grace days.
    flat charges the value once, per_day charges it for every late day and
    percentage charges value% of the base amount for every late day.
    """
    on = on or date.today()
    effective_due = due_date + timedelta(days=grace_period_days or 0)
    if on <= effective_due or not late_fee_type:
        return LateFee(amount=ZERO.quantize(CENT), days_late=max(0, (on - effective_due).days))

    days_late = (on - effective_due).days
    value = to_money(late_fee_value)

    if late_fee_type == "flat":
        amount = value
    elif late_fee_type == "per_day":
        amount = value * days_late
    elif late_fee_type == "percentage":
        amount = to_money(base_amount) * value / Decimal(100) * days_late
    else:
        amount = ZERO

    return LateFee(amount=max(ZERO, to_money(amount)), days_late=days_late)


def fee_status(balance_due: Decimal, paid_amount: Decimal, days_late: int) -> str:
    if balance_due <= ZERO:
        return "paid"
    if days_late > 0:
        return "overdue"
    if paid_amount > ZERO:
        return "partial"
    return "pending"


def summarize_fee(
    base_amount,
    paid_amount,
    adjustment_amount,
    due_date: date,
    late_fee_type: Optional[str] = None,
    late_fee_value=ZERO,
    grace_period_days: int = 0,
    on: Optional[date] = None
) -> FeeSummary:
    base = to_money(base_amount)
    paid = to_money(paid_amount)
    balance = base + to_money(adjustment_amount) - paid

    if balance > ZERO:
        late = compute_late_fee(base, due_date, late_fee_type, late_fee_value, grace_period_days, on)
    else:
        late = LateFee(amount=ZERO.quantize(CENT), days_late=0)

    return FeeSummary(
        balance_due=balance,
        late_fee=late.amount,
        days_late=late.days_late,
        total_due=balance + late.amount,
        status=fee_status(balance, paid, late.days_late),
    )
