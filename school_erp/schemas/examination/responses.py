from typing import Any, Dict, List, Optional
from datetime import date
import uuid

from school_erp.schemas.common import Numeric, ORMModel


class ExamResponse(ORMModel):
    id: uuid.UUID
    name: str
    exam_type: Optional[str] = None
    academic_year: Optional[str] = None
    class_ids: List[str] = []
    subjects: List[Dict[str, Any]] = []
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: str


class MarkResponse(ORMModel):
    id: uuid.UUID
    exam_id: uuid.UUID
    student_id: uuid.UUID
    subject: str
    max_marks: Numeric
    marks_obtained: Optional[Numeric] = None
    is_absent: bool
    percentage: Optional[Numeric] = None
    grade: Optional[str] = None
    status: str


class GradeScaleResponse(ORMModel):
    id: uuid.UUID
    grade: str
    min_percentage: Numeric
    max_percentage: Numeric
    grade_point: Optional[Numeric] = None
    description: Optional[str] = None
    display_order: int
