from typing import Optional, Union
from datetime import date
import uuid

from pydantic import BaseModel


class AcademicYearResponse(BaseModel):
    id: Optional[Union[uuid.UUID, str]] = None
    year_name: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: Optional[str] = None
    is_current: bool = False
    source: str = "academic_years"


class ClosureResponse(BaseModel):
    previous_year: str
    new_year: str
    school_code: str
    current_academic_year: str


class PromotionResponse(BaseModel):
    from_year: str
    to_year: str
    enrollments_created: int
    students_updated: int
