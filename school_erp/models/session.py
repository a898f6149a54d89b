import uuid

from sqlalchemy import Column, String, DateTime, JSON, Uuid
from .base import Base, TimestampMixin


class UserSession(TimestampMixin, Base):
    __tablename__ = "sessions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    session_token = Column(String(64), unique=True, nullable=False, index=True)
    role = Column(String(20), nullable=False)
    school_code = Column(String(20), nullable=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    user_payload = Column(JSON, default=dict)
    expires_at = Column(DateTime, nullable=False)
