from typing import Literal, Optional
from datetime import datetime
import uuid

from pydantic import Field

from school_erp.schemas.common import SchoolScoped


class GatePassCreateRequest(SchoolScoped):
    person_type: Literal["student", "staff", "visitor"]
    person_id: Optional[uuid.UUID] = None
    person_name: Optional[str] = None
    reason: str = Field(..., min_length=1)
    accompanied_by: Optional[str] = None
    time_out: Optional[datetime] = None
    expected_return: Optional[datetime] = None
