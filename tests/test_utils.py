from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from school_erp.core.security import AuthCookie, Role, decode_auth_cookie, encode_auth_cookie, format_role_tag, \
    generate_password, parse_role_tag
from school_erp.services.academic_year_service import next_year_name
from school_erp.services.attendance_service import attendance_percentage, normalize_status
from school_erp.services.library_service import return_fine
from school_erp.services.school_service import code_prefix
from school_erp.utils.dates import clamp_day, current_academic_year, leading_year, naive_utc, parse_date_string
from school_erp.utils.grading import grade_for_percentage, percentage


@pytest.mark.parametrize("value, expected", [
    ("2024-03-15", date(2024, 3, 15)),
    ("2024-03-15T10:30:00", date(2024, 3, 15)),
    ("15-03-2024", date(2024, 3, 15)),
    ("15/03/2024", date(2024, 3, 15)),
    ("15.03.2024", date(2024, 3, 15)),
    ("2024/03/15", date(2024, 3, 15)),
    (45366, date(2024, 3, 15)),
    ("45366", date(2024, 3, 15)),
    (datetime(2024, 3, 15, 8, 0), date(2024, 3, 15)),
])
def test_parse_date_string_accepts_common_shapes(value, expected):
    assert parse_date_string(value) == expected


@pytest.mark.parametrize("value", [None, "", "   ", "31-02-2024", "not a date", 0])
def test_parse_date_string_rejects_garbage(value):
    assert parse_date_string(value) is None


def test_clamp_day_handles_short_months():
    assert clamp_day(2024, 2, 31) == date(2024, 2, 29)
    assert clamp_day(2023, 2, 31) == date(2023, 2, 28)


def test_academic_year_labels():
    assert current_academic_year(date(2024, 4, 1)) == "2024-25"
    assert current_academic_year(date(2024, 3, 31)) == "2023-24"
    assert leading_year("2024-25") == 2024
    assert leading_year(None) == 0
    assert next_year_name("2024-25") == "2025-26"


def test_naive_utc_converts_aware_values():
    aware = datetime(2024, 1, 1, 12, 0, tzinfo=timezone(timedelta(hours=5, minutes=30)))
    assert naive_utc(aware) == datetime(2024, 1, 1, 6, 30)


def test_grades_from_default_scale():
    assert grade_for_percentage(95) == "A1"
    assert grade_for_percentage(90.5) == "A1"
    assert grade_for_percentage(33) == "D"
    assert grade_for_percentage(None) == "-"


def test_grades_from_custom_bands():
    bands = [("Pass", 40, 100), ("Fail", 0, 39)]
    assert grade_for_percentage(Decimal("72.5"), bands) == "Pass"
    assert grade_for_percentage(10, bands) == "Fail"


def test_percentage_rounds_to_two_places():
    assert percentage(2, 3) == Decimal("66.67")
    assert percentage(10, 0) is None


def test_role_tags():
    assert format_role_tag(Role.SCHOOL, "ghs001") == "school:GHS001"
    assert format_role_tag(Role.TEACHER) == "teacher"
    with pytest.raises(ValueError):
        format_role_tag(Role.SCHOOL)
    with pytest.raises(ValueError):
        format_role_tag("janitor")

    parsed = parse_role_tag("school:GHS001")
    assert parsed.role == Role.SCHOOL and parsed.school_code == "GHS001"
    assert parse_role_tag("school:") is None
    assert parse_role_tag("superuser") is None


def test_auth_cookie_survives_encoding():
    token = encode_auth_cookie(AuthCookie(role=Role.STUDENT, school_code="GHS001", user_id="42"))
    cookie = decode_auth_cookie(token)
    assert cookie.role == Role.STUDENT
    assert cookie.school_code == "GHS001"
    assert cookie.user_id == "42"
    assert decode_auth_cookie("garbage") is None


def test_generated_passwords_mix_letters_and_digits():
    password = generate_password()
    assert len(password) == 8
    assert any(c.isdigit() for c in password)
    assert any(c.isalpha() for c in password)
    with pytest.raises(ValueError):
        generate_password(3)


@pytest.mark.parametrize("raw, expected", [
    ("Present", ("present", None)),
    ("holiday", ("leave", "Holiday")),
    ("half-day", ("half_day", None)),
    ("halfday", ("half_day", None)),
    ("whatever", ("present", None)),
    (None, ("present", None)),
])
def test_normalize_status(raw, expected):
    assert normalize_status(raw) == expected


def test_attendance_percentage_counts_half_days_as_half():
    assert attendance_percentage({"present": 2, "absent": 1, "half_day": 1}) == 62.5
    assert attendance_percentage({}) is None


def test_library_return_fine():
    due = date(2024, 5, 10)
    assert return_fine(due, date(2024, 5, 10), Decimal("2"), Decimal("5")) == Decimal("0.00")
    assert return_fine(due, date(2024, 5, 13), Decimal("2"), Decimal("0")) == Decimal("6.00")
    assert return_fine(due, date(2024, 5, 13), Decimal("0"), Decimal("5")) == Decimal("5.00")


def test_school_code_prefix():
    assert code_prefix("Green Hills Senior School") == "GHS"
    assert code_prefix("Oakwood") == "OAK"
    assert code_prefix("") == "SSS"
