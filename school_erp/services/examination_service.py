from decimal import Decimal
from typing import Any, Dict, List, Optional
import uuid
import logging

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import transaction
from school_erp.core.errors import BadRequestError, ConflictError, NotFoundError
from school_erp.models import Examination, GradeScale, StudentMark
from school_erp.schemas.examination.requests import (
    ApproveMarksRequest, ExamCreateRequest, ExamUpdateRequest, GradeScaleRequest, SaveMarksRequest,
)
from school_erp.services.class_service import ClassService
from school_erp.utils.grading import as_number, grade_for_percentage, percentage

logger = logging.getLogger(__name__)

EXAM_STATUSES = {"draft", "scheduled", "ongoing", "completed", "published"}


class ExaminationService:
    def __init__(self, db: AsyncSession):
        self.db = db

    # Exams

    async def get_exam(self, school_code: str, exam_id: uuid.UUID) -> Examination:
        exam = (await self.db.execute(
            select(Examination).where(Examination.id == exam_id, Examination.school_code == school_code)
        )).scalar_one_or_none()
        if exam is None:
            raise NotFoundError("Examination not found")
        return exam

    async def list_exams(self, school_code: str, academic_year: Optional[str] = None,
                         class_id: Optional[uuid.UUID] = None) -> List[Examination]:
        query = select(Examination).where(Examination.school_code == school_code)
        if academic_year:
            query = query.where(Examination.academic_year == academic_year)
        exams = list((await self.db.execute(
            query.order_by(Examination.start_date.desc(), Examination.name)
        )).scalars().all())
        if class_id:
            exams = [e for e in exams if str(class_id) in (e.class_ids or [])]
        return exams

    async def create_exam(self, school_code: str, data: ExamCreateRequest) -> Examination:
        if data.start_date and data.end_date and data.end_date < data.start_date:
            raise BadRequestError("end_date must not be before start_date")
        exam = Examination(
            school_code=school_code,
            name=data.name.strip(),
            exam_type=data.exam_type,
            academic_year=data.academic_year,
            class_ids=[str(cid) for cid in data.class_ids],
            subjects=[{"name": s.name, "max_marks": str(s.max_marks)} for s in data.subjects],
            start_date=data.start_date,
            end_date=data.end_date,
            status="draft",
        )
        self.db.add(exam)
        await self.db.commit()
        logger.info(f"{school_code}: examination '{exam.name}' created")
        return exam

    async def update_exam(self, school_code: str, exam_id: uuid.UUID, data: ExamUpdateRequest) -> Examination:
        exam = await self.get_exam(school_code, exam_id)
        changes = data.model_dump(exclude_unset=True)
        if "status" in changes and changes["status"] not in EXAM_STATUSES:
            raise BadRequestError(f"Invalid status. Must be one of: {', '.join(sorted(EXAM_STATUSES))}")
        if "subjects" in changes and changes["subjects"] is not None:
            changes["subjects"] = [{"name": s.name, "max_marks": str(s.max_marks)} for s in data.subjects]
        for field, value in changes.items():
            setattr(exam, field, value)
        await self.db.commit()
        return exam

    async def delete_exam(self, school_code: str, exam_id: uuid.UUID) -> None:
        exam = await self.get_exam(school_code, exam_id)
        await self.db.delete(exam)
        await self.db.commit()

    # Grade scales

    async def list_grade_scales(self, school_code: str) -> List[GradeScale]:
        result = await self.db.execute(
            select(GradeScale)
            .where(GradeScale.school_code == school_code, GradeScale.is_active.is_(True))
            .order_by(GradeScale.display_order, GradeScale.max_percentage.desc())
        )
        return list(result.scalars().all())

    async def create_grade_scale(self, school_code: str, data: GradeScaleRequest) -> GradeScale:
        scale = GradeScale(school_code=school_code, **data.model_dump(exclude={"school_code"}))
        scale.grade = scale.grade.strip().upper()
        self.db.add(scale)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError(f"Grade {scale.grade} already exists")
        return scale

    async def update_grade_scale(self, school_code: str, scale_id: uuid.UUID, data: GradeScaleRequest) -> GradeScale:
        scale = await self._grade_scale(school_code, scale_id)
        for field, value in data.model_dump(exclude={"school_code"}).items():
            setattr(scale, field, value)
        scale.grade = scale.grade.strip().upper()
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError(f"Grade {scale.grade} already exists")
        return scale

    async def delete_grade_scale(self, school_code: str, scale_id: uuid.UUID) -> None:
        scale = await self._grade_scale(school_code, scale_id)
        await self.db.delete(scale)
        await self.db.commit()

    async def _grade_scale(self, school_code: str, scale_id: uuid.UUID) -> GradeScale:
        scale = (await self.db.execute(
            select(GradeScale).where(GradeScale.id == scale_id, GradeScale.school_code == school_code)
        )).scalar_one_or_none()
        if scale is None:
            raise NotFoundError("Grade scale not found")
        return scale

    # Marks

    async def save_marks(self, school_code: str, data: SaveMarksRequest, entered_by: str) -> Dict[str, Any]:
        """
        Insert or update marks per exam, student and subject. A missing
        `marks_obtained` records the student as absent.
        """
        exam = await self.get_exam(school_code, data.exam_id)
        if exam.status == "published":
            raise BadRequestError("Marks cannot be changed after results are published")
        scales = await self.list_grade_scales(school_code)

        student_ids = {m.student_id for m in data.marks}
        existing = {
            (m.student_id, m.subject): m for m in (await self.db.execute(
                select(StudentMark).where(
                    StudentMark.exam_id == exam.id,
                    StudentMark.student_id.in_(student_ids),
                )
            )).scalars().all()
        }

        status = "submitted" if data.submit else "draft"
        created = updated = 0
        async with transaction(self.db):
            for entry in data.marks:
                subject = entry.subject.strip()
                mark = existing.get((entry.student_id, subject))
                if mark is None:
                    mark = StudentMark(
                        school_code=school_code,
                        exam_id=exam.id,
                        student_id=entry.student_id,
                        subject=subject,
                    )
                    self.db.add(mark)
                    created += 1
                else:
                    if mark.status == "approved":
                        raise BadRequestError(f"Marks for {subject} are already approved")
                    updated += 1
                pct = percentage(entry.marks_obtained, entry.max_marks)
                mark.class_id = data.class_id
                mark.max_marks = entry.max_marks
                mark.marks_obtained = entry.marks_obtained
                mark.is_absent = entry.marks_obtained is None
                mark.percentage = pct
                mark.grade = grade_for_percentage(pct, scales) if pct is not None else "AB"
                mark.status = status
                mark.entered_by = entered_by
                mark.remarks = entry.remarks

        return {"exam_id": exam.id, "created": created, "updated": updated, "status": status}

    async def approve_marks(self, school_code: str, data: ApproveMarksRequest) -> int:
        exam = await self.get_exam(school_code, data.exam_id)
        statement = update(StudentMark).where(
            StudentMark.exam_id == exam.id,
            StudentMark.status == "submitted",
        ).values(status="approved")
        if data.class_id:
            statement = statement.where(StudentMark.class_id == data.class_id)
        result = await self.db.execute(statement)
        await self.db.commit()
        return result.rowcount or 0

    async def student_marks(self, school_code: str, student_id: uuid.UUID,
                            exam_id: Optional[uuid.UUID] = None) -> List[StudentMark]:
        query = select(StudentMark).where(
            StudentMark.school_code == school_code,
            StudentMark.student_id == student_id,
        )
        if exam_id:
            query = query.where(StudentMark.exam_id == exam_id)
        result = await self.db.execute(query.order_by(StudentMark.exam_id, StudentMark.subject))
        return list(result.scalars().all())

    async def class_results(self, school_code: str, exam_id: uuid.UUID, class_id: uuid.UUID) -> Dict[str, Any]:
        """
        Totals per student for one exam and class, ranked by overall percentage.
        Tied percentages share a rank; students without marks are unranked.
        """
        exam = await self.get_exam(school_code, exam_id)
        classes = ClassService(self.db)
        school_class = await classes.get_class(school_code, class_id)
        students = await classes.students_in_class(school_class)
        scales = await self.list_grade_scales(school_code)

        marks = (await self.db.execute(
            select(StudentMark).where(
                StudentMark.exam_id == exam.id,
                StudentMark.student_id.in_([s.id for s in students]),
            )
        )).scalars().all() if students else []

        by_student: Dict[uuid.UUID, List[StudentMark]] = {}
        for mark in marks:
            by_student.setdefault(mark.student_id, []).append(mark)

        results = []
        for student in students:
            entries = by_student.get(student.id, [])
            total_max = sum((Decimal(str(m.max_marks)) for m in entries), Decimal("0"))
            total_obtained = sum(
                (Decimal(str(m.marks_obtained)) for m in entries if m.marks_obtained is not None), Decimal("0")
            )
            overall = percentage(total_obtained, total_max) if entries else None
            results.append({
                "student_id": student.id,
                "admission_no": student.admission_no,
                "name": student.full_name,
                "roll_number": student.roll_number,
                "subjects": [
                    {
                        "subject": m.subject,
                        "max_marks": as_number(m.max_marks),
                        "marks_obtained": as_number(m.marks_obtained),
                        "is_absent": m.is_absent,
                        "grade": m.grade,
                    }
                    for m in sorted(entries, key=lambda m: m.subject)
                ],
                "total_obtained": as_number(total_obtained),
                "total_max": as_number(total_max),
                "percentage": as_number(overall),
                "grade": grade_for_percentage(overall, scales) if overall is not None else None,
                "rank": None,
            })

        ranked = sorted((r for r in results if r["percentage"] is not None), key=lambda r: r["percentage"], reverse=True)
        previous, rank = None, 0
        for position, row in enumerate(ranked, start=1):
            if row["percentage"] != previous:
                rank, previous = position, row["percentage"]
            row["rank"] = rank

        results.sort(key=lambda r: (r["rank"] is None, r["rank"] or 0, r["name"]))
        return {
            "exam_id": exam.id,
            "exam_name": exam.name,
            "class_id": school_class.id,
            "class_label": school_class.label,
            "results": results,
        }
