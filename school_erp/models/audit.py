import uuid

from sqlalchemy import Column, String, JSON, Uuid, Text
from .base import Base, TenantModel, TimestampMixin


class AuditLog(TenantModel):
    __tablename__ = "audit_logs"

    action = Column(String(60), nullable=False, index=True)
    entity_type = Column(String(60), nullable=False, index=True)
    entity_id = Column(String(64), nullable=True)
    performed_by = Column(String(100), nullable=True)
    details = Column(JSON, nullable=True)


class LoginAuditLog(TimestampMixin, Base):
    __tablename__ = "login_audit_logs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    school_code = Column(String(20), nullable=True, index=True)
    user_id = Column(String(64), nullable=True)
    name = Column(String(200), nullable=True)
    role = Column(String(30), nullable=False)
    login_type = Column(String(30), default="password", nullable=False)
    status = Column(String(20), nullable=False)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)
