from sqlalchemy import Column, String, Date, ForeignKey, Uuid, UniqueConstraint
from .base import TenantModel

STUDENT_ATTENDANCE_STATUSES = {"present", "absent", "late", "leave", "half_day"}


class StudentAttendance(TenantModel):
    __tablename__ = "student_attendance"
    __table_args__ = (UniqueConstraint("student_id", "attendance_date", name="uq_student_attendance_day"),)

    student_id = Column(Uuid, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    class_id = Column(Uuid, ForeignKey("classes.id", ondelete="SET NULL"), nullable=True, index=True)
    attendance_date = Column(Date, nullable=False, index=True)
    status = Column(String(20), nullable=False)
    remarks = Column(String(255), nullable=True)
    marked_by = Column(String(50), nullable=True)


class StaffAttendance(TenantModel):
    __tablename__ = "staff_attendance"
    __table_args__ = (UniqueConstraint("staff_id", "attendance_date", name="uq_staff_attendance_day"),)

    staff_id = Column(Uuid, ForeignKey("staff.id", ondelete="CASCADE"), nullable=False, index=True)
    attendance_date = Column(Date, nullable=False, index=True)
    status = Column(String(20), nullable=False)
    check_in = Column(String(10), nullable=True)
    check_out = Column(String(10), nullable=True)
    remarks = Column(String(255), nullable=True)
    marked_by = Column(String(50), nullable=True)
