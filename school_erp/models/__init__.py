from .base import Base, TenantModel
from .school import School, AcademicYear, AcademicYearAuditLog
from .student import Student, StudentEnrollment
from .staff import Staff
from .class_ import SchoolClass
from .attendance import StudentAttendance, StaffAttendance
from .fees import (
    FeeHead, FeeStructure, FeeStructureItem, StudentFee,
    Payment, PaymentAllocation, Receipt, FeeAdjustment
)
from .library import LibraryBook, LibraryBookCopy, LibraryTransaction, LibrarySettings
from .transport import TransportVehicle, TransportRoute, TransportAssignment
from .examination import Examination, StudentMark, GradeScale
from .certificate import CertificateTemplate, IssuedCertificate
from .leave import LeaveType, StudentLeaveRequest, StaffLeaveRequest
from .rbac import Module, SubModule, PermissionCategory, Role, RolePermission, StaffRole, StaffPermission
from .audit import AuditLog, LoginAuditLog
from .session import UserSession
from .gate_pass import GatePass

__all__ = [
    "Base", "TenantModel",
    "School", "AcademicYear", "AcademicYearAuditLog",
    "Student", "StudentEnrollment",
    "Staff",
    "SchoolClass",
    "StudentAttendance", "StaffAttendance",
    "FeeHead", "FeeStructure", "FeeStructureItem", "StudentFee",
    "Payment", "PaymentAllocation", "Receipt", "FeeAdjustment",
    "LibraryBook", "LibraryBookCopy", "LibraryTransaction", "LibrarySettings",
    "TransportVehicle", "TransportRoute", "TransportAssignment",
    "Examination", "StudentMark", "GradeScale",
    "CertificateTemplate", "IssuedCertificate",
    "LeaveType", "StudentLeaveRequest", "StaffLeaveRequest",
    "Module", "SubModule", "PermissionCategory", "Role", "RolePermission", "StaffRole", "StaffPermission",
    "AuditLog", "LoginAuditLog",
    "UserSession",
    "GatePass",
]
