from sqlalchemy import Column, String, Integer, Date, DateTime, Boolean, Text, ForeignKey, Uuid, UniqueConstraint
from sqlalchemy.orm import relationship
from .base import TenantModel


class LeaveType(TenantModel):
    __tablename__ = "leave_types"
    __table_args__ = (UniqueConstraint("school_code", "name", name="uq_leave_type_name"),)

    name = Column(String(100), nullable=False)
    max_days = Column(Integer, nullable=True)
    applies_to = Column(String(20), default="both", nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)


class StudentLeaveRequest(TenantModel):
    __tablename__ = "student_leave_requests"

    student_id = Column(Uuid, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    leave_type_id = Column(Uuid, ForeignKey("leave_types.id", ondelete="SET NULL"), nullable=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    reason = Column(Text, nullable=False)
    status = Column(String(20), default="pending", nullable=False)
    reviewed_by = Column(Uuid, ForeignKey("staff.id", ondelete="SET NULL"), nullable=True)
    rejection_reason = Column(Text, nullable=True)
    reviewed_at = Column(DateTime, nullable=True)

    student = relationship("Student", lazy="joined")


class StaffLeaveRequest(TenantModel):
    __tablename__ = "staff_leave_requests"

    staff_id = Column(Uuid, ForeignKey("staff.id", ondelete="CASCADE"), nullable=False, index=True)
    leave_type_id = Column(Uuid, ForeignKey("leave_types.id", ondelete="SET NULL"), nullable=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    reason = Column(Text, nullable=False)
    status = Column(String(20), default="pending", nullable=False)
    reviewed_by = Column(String(100), nullable=True)
    rejection_reason = Column(Text, nullable=True)
    reviewed_at = Column(DateTime, nullable=True)

    staff = relationship("Staff", lazy="joined", foreign_keys=[staff_id])
