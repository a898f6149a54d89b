from sqlalchemy import Column, String, Date, Text, Boolean, UniqueConstraint
from .base import TenantModel

ADMIN_DESIGNATIONS = {"principal", "admin", "vice principal"}


class Staff(TenantModel):
    __tablename__ = "staff"
    __table_args__ = (UniqueConstraint("school_code", "staff_id", name="uq_staff_staff_id"),)

    staff_id = Column(String(30), nullable=False)
    full_name = Column(String(150), nullable=False)
    email = Column(String(200), nullable=True)
    phone = Column(String(30), nullable=True)
    designation = Column(String(100), nullable=True)
    department = Column(String(100), nullable=True)
    role = Column(String(50), default="teacher", nullable=False)
    gender = Column(String(20), nullable=True)
    date_of_birth = Column(Date, nullable=True)
    date_of_joining = Column(Date, nullable=True)
    qualification = Column(String(200), nullable=True)
    address = Column(Text, nullable=True)
    photo_url = Column(String(500), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    password_hash = Column(String(255), nullable=True)

    @property
    def is_admin_or_principal(self) -> bool:
        values = {(self.role or "").strip().lower(), (self.designation or "").strip().lower()}
        return bool(values & ADMIN_DESIGNATIONS)

    @property
    def is_accountant(self) -> bool:
        values = {(self.role or "").strip().lower(), (self.designation or "").strip().lower()}
        return "accountant" in values

    def __repr__(self):
        return f"<Staff({self.school_code}/{self.staff_id})>"
