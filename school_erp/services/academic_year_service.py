from typing import Dict, List, Optional
import logging

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import transaction
from school_erp.core.errors import BadRequestError, ConflictError, NotFoundError
from school_erp.core.logging import log_function_call
from school_erp.models import AcademicYear, AcademicYearAuditLog, School, SchoolClass, Student, StudentEnrollment
from school_erp.schemas.academic_year.requests import AcademicYearCreateRequest, ClosureRequest, PromotionRequest
from school_erp.utils.dates import leading_year, today

logger = logging.getLogger(__name__)

CLOSURE_CONFIRMATION = "CLOSE"


def next_year_name(year_name: str) -> str:
    start = leading_year(year_name)
    if not start:
        raise BadRequestError(f"Cannot derive the next academic year from '{year_name}'")
    return f"{start + 1}-{str(start + 2)[-2:]}"


class AcademicYearService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_year(self, school_code: str, year_name: str) -> Optional[AcademicYear]:
        result = await self.db.execute(
            select(AcademicYear).where(
                AcademicYear.school_code == school_code,
                AcademicYear.year_name == year_name,
            )
        )
        return result.scalar_one_or_none()

    async def list_years(self, school_code: str) -> List[Dict]:
        """
        Academic years on record plus any year only referenced by classes,
        newest leading year first.
        """
        years = (await self.db.execute(
            select(AcademicYear).where(AcademicYear.school_code == school_code)
        )).scalars().all()
        items = [
            {
                "id": y.id,
                "year_name": y.year_name,
                "start_date": y.start_date,
                "end_date": y.end_date,
                "status": y.status,
                "is_current": y.is_current,
                "source": "academic_years",
            }
            for y in years
        ]
        known = {y.year_name for y in years}

        class_years = (await self.db.execute(
            select(SchoolClass.academic_year)
            .where(SchoolClass.school_code == school_code, SchoolClass.academic_year.is_not(None))
            .distinct()
        )).scalars().all()
        for name in class_years:
            if name and name not in known:
                known.add(name)
                items.append({
                    "id": name,
                    "year_name": name,
                    "start_date": None,
                    "end_date": None,
                    "status": "active",
                    "is_current": False,
                    "source": "classes",
                })

        items.sort(key=lambda item: (leading_year(item["year_name"]), item["year_name"]), reverse=True)
        return items

    async def create_year(self, school_code: str, data: AcademicYearCreateRequest) -> AcademicYear:
        if await self._get_year(school_code, data.year_name):
            raise ConflictError("Academic year already exists for this school")

        year = AcademicYear(
            school_code=school_code,
            year_name=data.year_name,
            start_date=data.start_date or today(),
            end_date=data.end_date or today(),
            status=data.status or "upcoming",
            is_current=False,
        )
        self.db.add(year)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("Academic year already exists for this school")
        return year

    @log_function_call(logger)
    async def close_year(self, school: School, data: ClosureRequest, performed_by: str) -> Dict:
        """
        Close `previous_year` and make `new_year` the school's current year.

        Every step (closing, clearing the current flag, activating, updating the
        school and the audit row) commits together or not at all.
        """
        if data.confirm.strip().upper() != CLOSURE_CONFIRMATION:
            raise BadRequestError(f"Type {CLOSURE_CONFIRMATION} to confirm academic year closure")
        if data.previous_year == data.new_year:
            raise BadRequestError("New academic year must differ from the year being closed")

        code = school.school_code
        previous = await self._get_year(code, data.previous_year)
        if previous is None:
            raise NotFoundError(f"Academic year {data.previous_year} not found")
        new = await self._get_year(code, data.new_year)
        if new is None:
            raise NotFoundError(f"Academic year {data.new_year} not found")
        if previous.status == "closed":
            raise BadRequestError(f"Academic year {data.previous_year} is already closed")

        async with transaction(self.db):
            previous.status = "closed"
            previous.is_current = False
            await self.db.execute(
                update(AcademicYear)
                .where(AcademicYear.school_code == code, AcademicYear.id != new.id)
                .values(is_current=False)
            )
            new.status = "active"
            new.is_current = True
            school.current_academic_year = new.year_name
            self.db.add(AcademicYearAuditLog(
                school_code=code,
                action="year_closure",
                previous_year=previous.year_name,
                new_year=new.year_name,
                performed_by=data.performed_by or performed_by,
                details={"closed_on": today().isoformat()},
            ))

        logger.info(f"{code}: closed {previous.year_name}, activated {new.year_name}")
        return {
            "school_code": code,
            "previous_year": previous.year_name,
            "new_year": new.year_name,
            "current_academic_year": school.current_academic_year,
        }

    @log_function_call(logger)
    async def execute_promotion(self, school: School, data: PromotionRequest, performed_by: str) -> Dict:
        code = school.school_code
        to_year = data.to_year or next_year_name(data.from_year)

        student_ids = [a.student_id for a in data.actions]
        students = {}
        if student_ids:
            students = {
                s.id: s for s in (await self.db.execute(
                    select(Student).where(Student.school_code == code, Student.id.in_(student_ids))
                )).scalars().all()
            }
        actions = [a for a in data.actions if a.student_id in students]
        if not actions:
            raise BadRequestError("No valid enrollment rows to create")

        targets = {a.student_id: (a.to_year or "").strip() or to_year for a in actions}
        rows = (await self.db.execute(
            select(StudentEnrollment.student_id, StudentEnrollment.academic_year).where(
                StudentEnrollment.academic_year.in_(set(targets.values())),
                StudentEnrollment.student_id.in_(list(targets)),
            )
        )).all()
        existing = [sid for sid, year in rows if targets[sid] == year]
        if existing:
            raise ConflictError(
                f"Enrollment already exists for {to_year}",
                details={"student_ids": [str(sid) for sid in existing]},
            )

        counts = {"promote": 0, "repeat": 0, "left_school": 0}
        try:
            async with transaction(self.db):
                for action in actions:
                    student = students[action.student_id]
                    year = targets[action.student_id]
                    counts[action.action] += 1

                    if action.action == "left_school":
                        self.db.add(StudentEnrollment(
                            school_code=code,
                            student_id=student.id,
                            academic_year=year,
                            class_name=student.class_name,
                            section=student.section,
                            status="transferred",
                        ))
                        student.status = "transferred"
                        student.academic_year = data.from_year
                        continue

                    if action.action == "promote" and action.target_class:
                        class_name = action.target_class
                        section = action.target_section if action.target_section is not None else student.section
                    else:
                        class_name, section = student.class_name, student.section

                    self.db.add(StudentEnrollment(
                        school_code=code,
                        student_id=student.id,
                        academic_year=year,
                        class_name=class_name,
                        section=section,
                        roll_number=action.roll_number,
                        status="active",
                    ))
                    student.class_name = class_name
                    student.section = section
                    student.academic_year = year
                    if action.roll_number:
                        student.roll_number = action.roll_number

                self.db.add(AcademicYearAuditLog(
                    school_code=code,
                    action="promotion_execute",
                    previous_year=data.from_year,
                    new_year=to_year,
                    performed_by=data.performed_by or performed_by,
                    details={"counts": counts, "skipped": len(data.actions) - len(actions)},
                ))
        except IntegrityError:
            raise ConflictError(f"Enrollment already exists for {to_year}")

        logger.info(f"{code}: promotion {data.from_year} -> {to_year}: {counts}")
        return {
            "from_year": data.from_year,
            "to_year": to_year,
            "enrollments_created": len(actions),
            "students_updated": len(actions),
        }
