from datetime import date
from decimal import Decimal

from school_erp.services.fee_calculator import compute_late_fee, fee_status, summarize_fee
from school_erp.services.fee_service import fee_periods

DUE = date(2024, 5, 10)


def test_no_late_fee_on_or_before_due_date():
    late = compute_late_fee(Decimal("1000"), DUE, "flat", Decimal("50"), on=DUE)
    assert late.amount == Decimal("0.00")
    assert late.days_late == 0


def test_grace_period_delays_the_fine():
    late = compute_late_fee(Decimal("1000"), DUE, "flat", Decimal("50"), grace_period_days=5, on=date(2024, 5, 15))
    assert late.amount == Decimal("0.00")

    late = compute_late_fee(Decimal("1000"), DUE, "flat", Decimal("50"), grace_period_days=5, on=date(2024, 5, 16))
    assert late.amount == Decimal("50.00")
    assert late.days_late == 1


def test_per_day_late_fee_multiplies_by_days_late():
    late = compute_late_fee(Decimal("1000"), DUE, "per_day", Decimal("10"), on=date(2024, 5, 20))
    assert late.days_late == 10
    assert late.amount == Decimal("100.00")


def test_percentage_late_fee_is_taken_on_base_amount_per_day():
    late = compute_late_fee(Decimal("1000"), DUE, "percentage", Decimal("2"), on=date(2024, 5, 13))
    assert late.amount == Decimal("60.00")


def test_without_policy_there_is_no_fine():
    late = compute_late_fee(Decimal("1000"), DUE, None, Decimal("10"), on=date(2024, 6, 1))
    assert late.amount == Decimal("0.00")


def test_summary_of_partially_paid_overdue_fee():
    summary = summarize_fee(
        Decimal("1000"), Decimal("400"), Decimal("0"), DUE,
        late_fee_type="flat", late_fee_value=Decimal("25"), on=date(2024, 6, 1),
    )
    assert summary.balance_due == Decimal("600.00")
    assert summary.late_fee == Decimal("25.00")
    assert summary.total_due == Decimal("625.00")
    assert summary.status == "overdue"


def test_paid_fee_accrues_no_fine():
    summary = summarize_fee(
        Decimal("1000"), Decimal("1000"), Decimal("0"), DUE,
        late_fee_type="per_day", late_fee_value=Decimal("10"), on=date(2024, 6, 1),
    )
    assert summary.late_fee == Decimal("0.00")
    assert summary.status == "paid"


def test_discount_adjustment_reduces_balance():
    summary = summarize_fee(Decimal("1000"), Decimal("0"), Decimal("-200"), DUE, on=date(2024, 5, 1))
    assert summary.balance_due == Decimal("800.00")
    assert summary.status == "pending"


def test_fee_status_partial_before_due():
    assert fee_status(Decimal("100"), Decimal("50"), 0) == "partial"


def test_monthly_periods_wrap_into_next_year():
    periods = fee_periods("monthly", 4, 3, 2024)
    assert len(periods) == 12
    assert periods[0] == (2024, 4)
    assert periods[-1] == (2025, 3)


def test_quarterly_periods():
    assert fee_periods("quarterly", 4, 3, 2024) == [(2024, 4), (2024, 7), (2024, 10), (2025, 1)]


def test_yearly_period_is_single():
    assert fee_periods("yearly", 4, 3, 2024) == [(2024, 4)]
