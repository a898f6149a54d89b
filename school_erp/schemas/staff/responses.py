from typing import Optional
from datetime import date, datetime
import uuid

from school_erp.schemas.common import ORMModel


class StaffResponse(ORMModel):
    id: uuid.UUID
    school_code: str
    staff_id: str
    full_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    designation: Optional[str] = None
    department: Optional[str] = None
    role: str
    gender: Optional[str] = None
    date_of_birth: Optional[date] = None
    date_of_joining: Optional[date] = None
    qualification: Optional[str] = None
    address: Optional[str] = None
    photo_url: Optional[str] = None
    is_active: bool
    created_at: datetime
