from sqlalchemy import Column, String, Date, Text, ForeignKey, Uuid, UniqueConstraint
from sqlalchemy.orm import relationship
from .base import TenantModel


class Student(TenantModel):
    __tablename__ = "students"
    __table_args__ = (UniqueConstraint("school_code", "admission_no", name="uq_student_admission_no"),)

    admission_no = Column(String(50), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=True)
    class_name = Column("class", String(50), nullable=False)
    section = Column(String(20), nullable=True)
    academic_year = Column(String(20), nullable=True)
    roll_number = Column(String(20), nullable=True)
    date_of_birth = Column(Date, nullable=True)
    gender = Column(String(20), nullable=True)
    blood_group = Column(String(10), nullable=True)
    category = Column(String(50), nullable=True)
    admission_date = Column(Date, nullable=True)
    father_name = Column(String(150), nullable=True)
    mother_name = Column(String(150), nullable=True)
    parent_phone = Column(String(30), nullable=True)
    parent_email = Column(String(200), nullable=True)
    address = Column(Text, nullable=True)
    photo_url = Column(String(500), nullable=True)
    transport_type = Column(String(50), nullable=True)
    status = Column(String(20), default="active", nullable=False)
    password_hash = Column(String(255), nullable=True)

    enrollments = relationship("StudentEnrollment", back_populates="student", cascade="all, delete-orphan")

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)

    def __repr__(self):
        return f"<Student({self.school_code}/{self.admission_no})>"


class StudentEnrollment(TenantModel):
    __tablename__ = "student_enrollments"
    __table_args__ = (UniqueConstraint("student_id", "academic_year", name="uq_enrollment_student_year"),)

    student_id = Column(Uuid, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    academic_year = Column(String(20), nullable=False)
    class_name = Column("class", String(50), nullable=False)
    section = Column(String(20), nullable=True)
    roll_number = Column(String(20), nullable=True)
    status = Column(String(20), default="active", nullable=False)

    student = relationship("Student", back_populates="enrollments")
