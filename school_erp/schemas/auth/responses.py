from typing import Any, Dict, List, Optional
from datetime import datetime
import uuid

from pydantic import BaseModel

from school_erp.schemas.common import ORMModel


class SessionInfo(BaseModel):
    role: str
    school_code: Optional[str] = None
    user_id: str
    user: Dict[str, Any] = {}
    redirect: Optional[str] = None


class AuditLogResponse(ORMModel):
    id: uuid.UUID
    action: str
    entity_type: str
    entity_id: Optional[str] = None
    performed_by: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    created_at: datetime


class LoginAuditResponse(ORMModel):
    id: uuid.UUID
    school_code: Optional[str] = None
    user_id: Optional[str] = None
    name: Optional[str] = None
    role: str
    login_type: str
    status: str
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime


class GeneratedCredential(BaseModel):
    id: str
    login_id: str
    name: str
    password: str


class GeneratedCredentials(BaseModel):
    generated: int
    credentials: List[GeneratedCredential]
