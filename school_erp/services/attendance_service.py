from collections import Counter
from datetime import date
from typing import Any, Dict, List, Optional, Tuple
import uuid
import logging

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.errors import BadRequestError, PermissionDenied
from school_erp.models import Staff, StaffAttendance, Student, StudentAttendance, SchoolClass
from school_erp.schemas.attendance.requests import MarkAttendanceRequest, StaffAttendanceRequest
from school_erp.services.class_service import ClassService
from school_erp.utils.dates import month_bounds

logger = logging.getLogger(__name__)

VALID_STATUSES = {"present", "absent", "leave", "late", "half_day"}
PRESENT_LIKE = {"present", "late", "half_day"}


def normalize_status(raw: Optional[str]) -> Tuple[str, Optional[str]]:
    """
    Map a submitted status onto a stored one. Holidays are stored as leave with
    a note; unknown values count as present.
    """
    value = (raw or "").strip().lower().replace("-", "_")
    if value == "holiday":
        return "leave", "Holiday"
    if value == "halfday":
        return "half_day", None
    if value in VALID_STATUSES:
        return value, None
    return "present", None


def attendance_percentage(counts: Dict[str, int]) -> Optional[float]:
    total = sum(counts.values())
    if not total:
        return None
    present = sum(counts.get(s, 0) for s in PRESENT_LIKE) - counts.get("half_day", 0) * 0.5
    return round(present * 100 / total, 2)


class AttendanceService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.classes = ClassService(db)

    async def mark_class_attendance(
        self,
        school_code: str,
        data: MarkAttendanceRequest,
        marked_by: str,
        staff: Optional[Staff] = None
    ) -> List[StudentAttendance]:
        """
        Record a day's attendance for one class. Staff may only mark their own
        class; a class/date that already has records is refused.
        """
        school_class = await self.classes.get_class(school_code, data.class_id)
        if staff is not None and not staff.is_admin_or_principal and not ClassService.is_class_teacher(school_class, staff):
            raise PermissionDenied("Only the class teacher can mark attendance for this class")

        already = await self.db.scalar(
            select(func.count(StudentAttendance.id)).where(
                StudentAttendance.school_code == school_code,
                StudentAttendance.class_id == school_class.id,
                StudentAttendance.attendance_date == data.attendance_date,
            )
        )
        if already:
            raise BadRequestError("Attendance already marked for this date")

        roster = {s.id for s in await self.classes.students_in_class(school_class)}
        unknown = [str(r.student_id) for r in data.records if r.student_id not in roster]
        if unknown:
            raise BadRequestError("Students do not belong to this class", details={"student_ids": unknown})

        records = []
        for entry in data.records:
            status, note = normalize_status(entry.status)
            record = StudentAttendance(
                school_code=school_code,
                student_id=entry.student_id,
                class_id=school_class.id,
                attendance_date=data.attendance_date,
                status=status,
                remarks=entry.remarks or note,
                marked_by=marked_by,
            )
            self.db.add(record)
            records.append(record)
        await self.db.commit()
        logger.info(f"Attendance marked for {school_class.label} on {data.attendance_date} ({school_code})")
        return records

    async def class_attendance(self, school_code: str, class_id: uuid.UUID, on: date) -> List[Dict[str, Any]]:
        school_class = await self.classes.get_class(school_code, class_id)
        students = await self.classes.students_in_class(school_class)
        records = {
            r.student_id: r for r in (await self.db.execute(
                select(StudentAttendance).where(
                    StudentAttendance.class_id == school_class.id,
                    StudentAttendance.attendance_date == on,
                )
            )).scalars().all()
        }
        return [
            {
                "student_id": s.id,
                "admission_no": s.admission_no,
                "name": s.full_name,
                "roll_number": s.roll_number,
                "status": records[s.id].status if s.id in records else None,
                "remarks": records[s.id].remarks if s.id in records else None,
            }
            for s in students
        ]

    async def student_monthly(self, school_code: str, class_id: uuid.UUID, year: int, month: int) -> List[Dict]:
        school_class = await self.classes.get_class(school_code, class_id)
        start, end = month_bounds(year, month)
        students = await self.classes.students_in_class(school_class)

        rows = (await self.db.execute(
            select(StudentAttendance.student_id, StudentAttendance.status, func.count(StudentAttendance.id))
            .where(
                StudentAttendance.school_code == school_code,
                StudentAttendance.attendance_date.between(start, end),
                StudentAttendance.student_id.in_([s.id for s in students]),
            )
            .group_by(StudentAttendance.student_id, StudentAttendance.status)
        )).all() if students else []

        counts: Dict[uuid.UUID, Counter] = {}
        for student_id, status, total in rows:
            counts.setdefault(student_id, Counter())[status] += total

        working_days = await self.db.scalar(
            select(func.count(func.distinct(StudentAttendance.attendance_date))).where(
                StudentAttendance.class_id == school_class.id,
                StudentAttendance.attendance_date.between(start, end),
            )
        ) or 0

        return [
            {
                "id": s.id,
                "name": s.full_name,
                "identifier": s.admission_no,
                "counts": dict(counts.get(s.id, Counter())),
                "working_days": working_days,
                "attendance_percentage": attendance_percentage(dict(counts.get(s.id, Counter()))),
            }
            for s in students
        ]

    async def mark_staff_attendance(self, school_code: str, data: StaffAttendanceRequest, marked_by: str) -> int:
        """Insert or overwrite staff attendance for the day"""
        staff_ids = {
            s for s in (await self.db.execute(
                select(Staff.id).where(Staff.school_code == school_code)
            )).scalars().all()
        }
        unknown = [str(r.staff_id) for r in data.records if r.staff_id not in staff_ids]
        if unknown:
            raise BadRequestError("Unknown staff members", details={"staff_ids": unknown})

        existing = {
            r.staff_id: r for r in (await self.db.execute(
                select(StaffAttendance).where(
                    StaffAttendance.school_code == school_code,
                    StaffAttendance.attendance_date == data.attendance_date,
                )
            )).scalars().all()
        }
        for entry in data.records:
            status, note = normalize_status(entry.status)
            record = existing.get(entry.staff_id)
            if record is None:
                record = StaffAttendance(
                    school_code=school_code,
                    staff_id=entry.staff_id,
                    attendance_date=data.attendance_date,
                )
                self.db.add(record)
            record.status = status
            record.check_in = entry.check_in
            record.check_out = entry.check_out
            record.remarks = entry.remarks or note
            record.marked_by = marked_by
        await self.db.commit()
        return len(data.records)

    async def staff_attendance(self, school_code: str, on: date) -> List[Dict[str, Any]]:
        staff_members = (await self.db.execute(
            select(Staff).where(Staff.school_code == school_code, Staff.is_active.is_(True)).order_by(Staff.staff_id)
        )).scalars().all()
        records = {
            r.staff_id: r for r in (await self.db.execute(
                select(StaffAttendance).where(
                    StaffAttendance.school_code == school_code,
                    StaffAttendance.attendance_date == on,
                )
            )).scalars().all()
        }
        return [
            {
                "staff_id": s.id,
                "staff_code": s.staff_id,
                "name": s.full_name,
                "status": records[s.id].status if s.id in records else None,
                "check_in": records[s.id].check_in if s.id in records else None,
                "check_out": records[s.id].check_out if s.id in records else None,
            }
            for s in staff_members
        ]

    async def staff_monthly(self, school_code: str, year: int, month: int) -> List[Dict]:
        start, end = month_bounds(year, month)
        staff_members = (await self.db.execute(
            select(Staff).where(Staff.school_code == school_code, Staff.is_active.is_(True)).order_by(Staff.staff_id)
        )).scalars().all()
        rows = (await self.db.execute(
            select(StaffAttendance.staff_id, StaffAttendance.status, func.count(StaffAttendance.id))
            .where(
                StaffAttendance.school_code == school_code,
                StaffAttendance.attendance_date.between(start, end),
            )
            .group_by(StaffAttendance.staff_id, StaffAttendance.status)
        )).all()
        counts: Dict[uuid.UUID, Counter] = {}
        for staff_id, status, total in rows:
            counts.setdefault(staff_id, Counter())[status] += total

        summaries = []
        for s in staff_members:
            staff_counts = dict(counts.get(s.id, Counter()))
            summaries.append({
                "id": s.id,
                "name": s.full_name,
                "identifier": s.staff_id,
                "counts": staff_counts,
                "working_days": sum(staff_counts.values()),
                "attendance_percentage": attendance_percentage(staff_counts),
            })
        return summaries

    async def overview(self, school_code: str, on: date) -> Dict[str, Any]:
        student_rows = (await self.db.execute(
            select(StudentAttendance.status, func.count(StudentAttendance.id))
            .where(StudentAttendance.school_code == school_code, StudentAttendance.attendance_date == on)
            .group_by(StudentAttendance.status)
        )).all()
        staff_rows = (await self.db.execute(
            select(StaffAttendance.status, func.count(StaffAttendance.id))
            .where(StaffAttendance.school_code == school_code, StaffAttendance.attendance_date == on)
            .group_by(StaffAttendance.status)
        )).all()
        total_students = await self.db.scalar(
            select(func.count(Student.id)).where(Student.school_code == school_code, Student.status == "active")
        ) or 0
        classes_marked = await self.db.scalar(
            select(func.count(func.distinct(StudentAttendance.class_id))).where(
                StudentAttendance.school_code == school_code, StudentAttendance.attendance_date == on
            )
        ) or 0
        total_classes = await self.db.scalar(
            select(func.count(SchoolClass.id)).where(SchoolClass.school_code == school_code)
        ) or 0

        students = {status: total for status, total in student_rows}
        return {
            "date": on,
            "students": students,
            "staff": {status: total for status, total in staff_rows},
            "total_students": total_students,
            "students_unmarked": max(0, total_students - sum(students.values())),
            "classes_marked": classes_marked,
            "total_classes": total_classes,
        }

    async def report_rows(self, school_code: str, class_id: uuid.UUID, start: date, end: date) -> List[Dict]:
        school_class = await self.classes.get_class(school_code, class_id)
        rows = (await self.db.execute(
            select(StudentAttendance, Student)
            .join(Student, Student.id == StudentAttendance.student_id)
            .where(
                StudentAttendance.class_id == school_class.id,
                StudentAttendance.attendance_date.between(start, end),
            )
            .order_by(StudentAttendance.attendance_date, Student.roll_number)
        )).all()
        return [
            {
                "date": record.attendance_date.isoformat(),
                "admission_no": student.admission_no,
                "name": student.full_name,
                "class": school_class.label,
                "status": record.status,
                "remarks": record.remarks,
            }
            for record, student in rows
        ]

    async def student_history(self, school_code: str, student_id: uuid.UUID,
                              start: date, end: date) -> Dict[str, Any]:
        records = (await self.db.execute(
            select(StudentAttendance)
            .where(
                StudentAttendance.school_code == school_code,
                StudentAttendance.student_id == student_id,
                StudentAttendance.attendance_date.between(start, end),
            )
            .order_by(StudentAttendance.attendance_date)
        )).scalars().all()
        counts = dict(Counter(r.status for r in records))
        return {
            "start_date": start,
            "end_date": end,
            "counts": counts,
            "attendance_percentage": attendance_percentage(counts),
            "records": [
                {"date": r.attendance_date, "status": r.status, "remarks": r.remarks}
                for r in records
            ],
        }
