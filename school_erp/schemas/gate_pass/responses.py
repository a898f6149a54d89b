from typing import Optional
from datetime import datetime
import uuid

from school_erp.schemas.common import ORMModel


class GatePassResponse(ORMModel):
    id: uuid.UUID
    pass_number: str
    person_type: str
    person_id: Optional[uuid.UUID] = None
    person_name: str
    class_name: Optional[str] = None
    reason: str
    accompanied_by: Optional[str] = None
    time_out: datetime
    expected_return: Optional[datetime] = None
    time_in: Optional[datetime] = None
    issued_by: Optional[str] = None
    status: str
