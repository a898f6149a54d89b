from typing import List, Optional
from datetime import date
from decimal import Decimal
import uuid

from pydantic import BaseModel, Field, model_validator

from school_erp.schemas.common import SchoolScoped


class ExamSubject(BaseModel):
    name: str = Field(..., min_length=1)
    max_marks: Decimal = Field(Decimal("100"), gt=0)


class ExamCreateRequest(SchoolScoped):
    name: str = Field(..., min_length=1, max_length=150)
    exam_type: Optional[str] = None
    academic_year: Optional[str] = None
    class_ids: List[uuid.UUID] = []
    subjects: List[ExamSubject] = []
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class ExamUpdateRequest(BaseModel):
    name: Optional[str] = None
    status: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    subjects: Optional[List[ExamSubject]] = None


class MarkEntry(BaseModel):
    student_id: uuid.UUID
    subject: str
    max_marks: Decimal = Field(..., gt=0)
    marks_obtained: Optional[Decimal] = None
    remarks: Optional[str] = None

    @model_validator(mode="after")
    def check_range(self):
        if self.marks_obtained is not None and not (0 <= self.marks_obtained <= self.max_marks):
            raise ValueError("marks_obtained must be between 0 and max_marks")
        return self


class SaveMarksRequest(SchoolScoped):
    exam_id: uuid.UUID
    class_id: Optional[uuid.UUID] = None
    marks: List[MarkEntry] = Field(..., min_length=1)
    submit: bool = True


class ApproveMarksRequest(SchoolScoped):
    exam_id: uuid.UUID
    class_id: Optional[uuid.UUID] = None


class GradeScaleRequest(SchoolScoped):
    grade: str = Field(..., min_length=1, max_length=5)
    min_percentage: Decimal = Field(..., ge=0, le=100)
    max_percentage: Decimal = Field(..., ge=0, le=100)
    grade_point: Optional[Decimal] = None
    description: Optional[str] = None
    display_order: int = 0

    @model_validator(mode="after")
    def check_bounds(self):
        if self.min_percentage > self.max_percentage:
            raise ValueError("min_percentage must not exceed max_percentage")
        return self
