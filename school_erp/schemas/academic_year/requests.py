from typing import List, Literal, Optional
from datetime import date
import uuid

from pydantic import BaseModel, Field, field_validator, model_validator

from school_erp.schemas.common import SchoolScoped


class AcademicYearCreateRequest(SchoolScoped):
    year_name: str = Field(..., min_length=4, max_length=20)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: Optional[Literal["upcoming", "active", "closed"]] = None

    @field_validator("year_name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        return v.strip()

    @model_validator(mode="after")
    def check_dates(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class ClosureRequest(SchoolScoped):
    previous_year: str
    new_year: str
    confirm: str
    performed_by: Optional[str] = None


class PromotionAction(BaseModel):
    student_id: uuid.UUID
    action: Literal["promote", "repeat", "left_school"]
    to_year: Optional[str] = None
    target_class: Optional[str] = None
    target_section: Optional[str] = None
    roll_number: Optional[str] = None


class PromotionRequest(SchoolScoped):
    from_year: str
    to_year: Optional[str] = None
    actions: List[PromotionAction] = []
    performed_by: Optional[str] = None
