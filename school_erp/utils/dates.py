import calendar
import re
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional

# Day zero of the Excel 1900 date system (accounts for the 1900 leap-year bug)
EXCEL_EPOCH = date(1899, 12, 30)

_DAY_FIRST = re.compile(r"^(\d{1,2})[-/.](\d{1,2})[-/.](\d{4})$")
_YEAR_FIRST = re.compile(r"^(\d{4})[-/.](\d{1,2})[-/.](\d{1,2})$")


def utcnow() -> datetime:
    """Naive UTC timestamp; every DateTime column stores naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def today() -> date:
    return utcnow().date()


def parse_date_string(value: Any) -> Optional[date]:
    """
    Parse the date shapes that show up in forms and spreadsheet uploads.

    Accepts date/datetime objects, ISO `YYYY-MM-DD` (optionally with a time part),
    `DD-MM-YYYY`, `DD/MM/YYYY`, `DD.MM.YYYY`, `YYYY/MM/DD` and Excel serial numbers.
    Returns None for blank or unparseable input.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return _from_excel_serial(float(value))

    text = str(value).strip()
    if not text:
        return None

    if re.fullmatch(r"\d+(\.\d+)?", text):
        return _from_excel_serial(float(text))

    candidate = text.split("T")[0].split(" ")[0]

    match = _YEAR_FIRST.match(candidate)
    if match:
        year, month, day = (int(g) for g in match.groups())
        return _safe_date(year, month, day)

    match = _DAY_FIRST.match(candidate)
    if match:
        day, month, year = (int(g) for g in match.groups())
        return _safe_date(year, month, day)

    return None


def _from_excel_serial(serial: float) -> Optional[date]:
    # Serials outside 1900-01-01 .. 9999-12-31 are not dates
    if serial < 1 or serial > 2958465:
        return None
    return EXCEL_EPOCH + timedelta(days=int(serial))


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def clamp_day(year: int, month: int, day: int) -> date:
    """date(year, month, day) with day clamped to the month's length"""
    last = calendar.monthrange(year, month)[1]
    return date(year, month, max(1, min(day, last)))


def month_bounds(year: int, month: int):
    last = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last)


def leading_year(year_name: Optional[str]) -> int:
    """Leading four-digit year of an academic-year label such as `2024-25`"""
    match = re.match(r"\s*(\d{4})", year_name or "")
    return int(match.group(1)) if match else 0


def current_academic_year(on: Optional[date] = None, start_month: int = 4) -> str:
    """Academic year label for a date, years starting in `start_month`"""
    on = on or today()
    start = on.year if on.month >= start_month else on.year - 1
    return f"{start}-{str(start + 1)[-2:]}"


def naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Convert an aware datetime to naive UTC; naive values are taken as UTC already"""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
