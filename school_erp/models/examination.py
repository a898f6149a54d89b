from sqlalchemy import (
    Column, String, Integer, Date, Boolean, Numeric, Text, JSON, ForeignKey, Uuid, UniqueConstraint
)
from .base import TenantModel


class Examination(TenantModel):
    __tablename__ = "examinations"

    name = Column(String(150), nullable=False)
    exam_type = Column(String(50), nullable=True)
    academic_year = Column(String(20), nullable=True)
    class_ids = Column(JSON, default=list)
    subjects = Column(JSON, default=list)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    status = Column(String(20), default="draft", nullable=False)


class StudentMark(TenantModel):
    __tablename__ = "student_marks"
    __table_args__ = (UniqueConstraint("exam_id", "student_id", "subject", name="uq_mark_exam_student_subject"),)

    exam_id = Column(Uuid, ForeignKey("examinations.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Uuid, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    class_id = Column(Uuid, ForeignKey("classes.id", ondelete="SET NULL"), nullable=True)
    subject = Column(String(100), nullable=False)
    max_marks = Column(Numeric(6, 2), nullable=False)
    marks_obtained = Column(Numeric(6, 2), nullable=True)
    is_absent = Column(Boolean, default=False, nullable=False)
    percentage = Column(Numeric(5, 2), nullable=True)
    grade = Column(String(5), nullable=True)
    status = Column(String(20), default="draft", nullable=False)
    entered_by = Column(String(100), nullable=True)
    remarks = Column(Text, nullable=True)


class GradeScale(TenantModel):
    __tablename__ = "grade_scales"
    __table_args__ = (UniqueConstraint("school_code", "grade", name="uq_grade_scale_grade"),)

    grade = Column(String(5), nullable=False)
    min_percentage = Column(Numeric(5, 2), nullable=False)
    max_percentage = Column(Numeric(5, 2), nullable=False)
    grade_point = Column(Numeric(4, 2), nullable=True)
    description = Column(String(100), nullable=True)
    display_order = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
