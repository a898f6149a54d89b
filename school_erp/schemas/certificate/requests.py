from typing import Any, Dict, List, Literal, Optional
import uuid

from pydantic import Field

from school_erp.schemas.common import SchoolScoped


class TemplateCreateRequest(SchoolScoped):
    name: str = Field(..., min_length=1, max_length=150)
    certificate_type: Literal["student", "staff"] = "student"
    content: Optional[str] = None
    fields: List[str] = []


class CertificateGenerateRequest(SchoolScoped):
    template_id: uuid.UUID
    recipient_type: Literal["student", "staff"] = "student"
    recipient_id: Optional[uuid.UUID] = None
    recipient_name: Optional[str] = None
    certificate_number: Optional[str] = None
    data: Dict[str, Any] = {}


class BulkGenerateRequest(SchoolScoped):
    template_id: uuid.UUID
    rows: List[Dict[str, Any]] = Field(..., min_length=1)
    field_mapping: Dict[str, str] = {}
    name_column: str = "name"
    number_column: Optional[str] = None
