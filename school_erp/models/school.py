import uuid

from sqlalchemy import Column, String, Text, Boolean, Date, JSON, Uuid, UniqueConstraint
from .base import Base, TenantModel, TimestampMixin


class School(TimestampMixin, Base):
    __tablename__ = "schools"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    school_code = Column(String(20), unique=True, nullable=False, index=True)
    name = Column(String(200), nullable=False)
    email = Column(String(200), unique=True, nullable=False)
    phone = Column(String(30), nullable=True)
    address = Column(Text, nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True)
    principal_name = Column(String(150), nullable=True)
    admin_password_hash = Column(String(255), nullable=False)
    status = Column(String(20), default="active", nullable=False)
    current_academic_year = Column(String(20), nullable=True)
    logo_url = Column(String(500), nullable=True)
    working_days = Column(JSON, default=lambda: ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat"])

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    def __repr__(self):
        return f"<School({self.school_code})>"


class AcademicYear(TenantModel):
    __tablename__ = "academic_years"
    __table_args__ = (UniqueConstraint("school_code", "year_name", name="uq_academic_year_name"),)

    year_name = Column(String(20), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    status = Column(String(20), default="upcoming", nullable=False)
    is_current = Column(Boolean, default=False, nullable=False)


class AcademicYearAuditLog(TenantModel):
    __tablename__ = "academic_year_audit_log"

    action = Column(String(50), nullable=False)
    previous_year = Column(String(20), nullable=True)
    new_year = Column(String(20), nullable=True)
    performed_by = Column(String(100), nullable=True)
    details = Column(JSON, nullable=True)
