from typing import List, Optional
from datetime import datetime
import uuid

from pydantic import EmailStr

from school_erp.schemas.common import ORMModel


class SchoolResponse(ORMModel):
    id: uuid.UUID
    school_code: str
    name: str
    email: EmailStr
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    principal_name: Optional[str] = None
    status: str
    current_academic_year: Optional[str] = None
    logo_url: Optional[str] = None
    working_days: Optional[List[str]] = None
    created_at: datetime
