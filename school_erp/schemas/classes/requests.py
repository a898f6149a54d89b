from typing import Optional
import uuid

from pydantic import BaseModel, Field

from school_erp.schemas.common import SchoolScoped


class ClassCreateRequest(SchoolScoped):
    class_name: str = Field(..., min_length=1, max_length=50)
    section: Optional[str] = Field(None, max_length=20)
    academic_year: Optional[str] = None
    class_teacher_id: Optional[uuid.UUID] = None
    capacity: Optional[int] = Field(None, gt=0)
    room_number: Optional[str] = None


class ClassUpdateRequest(BaseModel):
    class_name: Optional[str] = Field(None, min_length=1, max_length=50)
    section: Optional[str] = None
    academic_year: Optional[str] = None
    class_teacher_id: Optional[uuid.UUID] = None
    capacity: Optional[int] = Field(None, gt=0)
    room_number: Optional[str] = None
