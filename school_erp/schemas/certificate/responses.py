from typing import Any, Dict, List, Optional
from datetime import datetime
import uuid

from school_erp.schemas.common import ORMModel


class TemplateResponse(ORMModel):
    id: uuid.UUID
    name: str
    certificate_type: str
    content: Optional[str] = None
    fields: List[str] = []
    is_active: bool


class CertificateResponse(ORMModel):
    id: uuid.UUID
    template_id: Optional[uuid.UUID] = None
    recipient_type: str
    recipient_id: Optional[uuid.UUID] = None
    recipient_name: str
    certificate_number: str
    verification_code: str
    certificate_data: Dict[str, Any] = {}
    status: str
    issued_by: Optional[str] = None
    issued_at: datetime
