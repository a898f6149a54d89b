from datetime import date
from typing import Any, Dict, Optional
import logging

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.cache import cache_key, get_or_set
from school_erp.models import Payment, SchoolClass, Staff, StaffAttendance, Student, StudentAttendance
from school_erp.services.fee_calculator import money_value
from school_erp.utils.dates import month_bounds, today

logger = logging.getLogger(__name__)

STATS_TTL = 120


class DashboardService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def stats(self, school_code: str, on: Optional[date] = None) -> Dict[str, Any]:
        on = on or today()
        return await get_or_set(
            cache_key("dashboard", school_code, on.isoformat()),
            lambda: self._load_stats(school_code, on),
            ttl=STATS_TTL,
        )

    async def _load_stats(self, school_code: str, on: date) -> Dict[str, Any]:
        students = await self.db.scalar(
            select(func.count(Student.id)).where(Student.school_code == school_code, Student.status == "active")
        ) or 0
        staff = await self.db.scalar(
            select(func.count(Staff.id)).where(Staff.school_code == school_code, Staff.is_active.is_(True))
        ) or 0
        classes = await self.db.scalar(
            select(func.count(SchoolClass.id)).where(SchoolClass.school_code == school_code)
        ) or 0

        student_attendance = dict((await self.db.execute(
            select(StudentAttendance.status, func.count(StudentAttendance.id))
            .where(StudentAttendance.school_code == school_code, StudentAttendance.attendance_date == on)
            .group_by(StudentAttendance.status)
        )).all())
        staff_attendance = dict((await self.db.execute(
            select(StaffAttendance.status, func.count(StaffAttendance.id))
            .where(StaffAttendance.school_code == school_code, StaffAttendance.attendance_date == on)
            .group_by(StaffAttendance.status)
        )).all())

        start, end = month_bounds(on.year, on.month)
        collected = await self.db.scalar(
            select(func.coalesce(func.sum(Payment.amount), 0)).where(
                Payment.school_code == school_code,
                Payment.status == "completed",
                Payment.payment_date.between(start, end),
            )
        )

        return {
            "date": on,
            "total_students": students,
            "total_staff": staff,
            "total_classes": classes,
            "attendance_today": {
                "students": student_attendance,
                "staff": staff_attendance,
                "students_present": sum(student_attendance.get(s, 0) for s in ("present", "late", "half_day")),
            },
            "fees_collected_this_month": money_value(collected),
        }
