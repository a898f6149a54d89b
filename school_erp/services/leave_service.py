from typing import List, Optional
import uuid
import logging

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.errors import BadRequestError, ConflictError, NotFoundError, PermissionDenied
from school_erp.models import LeaveType, SchoolClass, Staff, StaffLeaveRequest, Student, StudentLeaveRequest
from school_erp.schemas.leave.requests import (
    LeaveDecisionRequest, LeaveTypeCreateRequest, StaffLeaveCreateRequest, StudentLeaveCreateRequest,
)
from school_erp.services.class_service import ClassService
from school_erp.utils.dates import utcnow

logger = logging.getLogger(__name__)

PENDING = "pending"


def _decide(request, decision: LeaveDecisionRequest) -> None:
    if request.status != PENDING:
        raise BadRequestError(f"Leave request is already {request.status}")
    if decision.action == "reject":
        if not (decision.rejection_reason or "").strip():
            raise BadRequestError("Rejection reason is required")
        request.status = "rejected"
        request.rejection_reason = decision.rejection_reason.strip()
    else:
        request.status = "approved"
        request.rejection_reason = None
    request.reviewed_at = utcnow()


class LeaveService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_types(self, school_code: str, applies_to: Optional[str] = None) -> List[LeaveType]:
        query = select(LeaveType).where(LeaveType.school_code == school_code, LeaveType.is_active.is_(True))
        if applies_to:
            query = query.where(LeaveType.applies_to.in_([applies_to, "both"]))
        result = await self.db.execute(query.order_by(LeaveType.name))
        return list(result.scalars().all())

    async def create_type(self, school_code: str, data: LeaveTypeCreateRequest) -> LeaveType:
        leave_type = LeaveType(
            school_code=school_code,
            name=data.name.strip(),
            max_days=data.max_days,
            applies_to=data.applies_to,
        )
        self.db.add(leave_type)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("Leave type already exists")
        return leave_type

    async def _check_type(self, school_code: str, leave_type_id: Optional[uuid.UUID], days: int) -> None:
        if leave_type_id is None:
            return
        leave_type = (await self.db.execute(
            select(LeaveType).where(LeaveType.id == leave_type_id, LeaveType.school_code == school_code)
        )).scalar_one_or_none()
        if leave_type is None:
            raise NotFoundError("Leave type not found")
        if leave_type.max_days and days > leave_type.max_days:
            raise BadRequestError(f"{leave_type.name} allows at most {leave_type.max_days} days")

    # Student leave

    async def create_student_request(self, school_code: str, student_id: uuid.UUID,
                                     data: StudentLeaveCreateRequest) -> StudentLeaveRequest:
        student = (await self.db.execute(
            select(Student).where(Student.id == student_id, Student.school_code == school_code)
        )).scalar_one_or_none()
        if student is None:
            raise NotFoundError("Student not found")
        await self._check_type(school_code, data.leave_type_id, (data.end_date - data.start_date).days + 1)

        request = StudentLeaveRequest(
            school_code=school_code,
            student_id=student.id,
            leave_type_id=data.leave_type_id,
            start_date=data.start_date,
            end_date=data.end_date,
            reason=data.reason.strip(),
            status=PENDING,
        )
        self.db.add(request)
        await self.db.commit()
        await self.db.refresh(request)
        return request

    async def list_student_requests(
        self,
        school_code: str,
        status: Optional[str] = None,
        student_id: Optional[uuid.UUID] = None,
        class_name: Optional[str] = None,
        section: Optional[str] = None
    ) -> List[StudentLeaveRequest]:
        query = (
            select(StudentLeaveRequest)
            .join(Student, Student.id == StudentLeaveRequest.student_id)
            .where(StudentLeaveRequest.school_code == school_code)
        )
        if status:
            query = query.where(StudentLeaveRequest.status == status)
        if student_id:
            query = query.where(StudentLeaveRequest.student_id == student_id)
        if class_name:
            query = query.where(func.lower(Student.class_name) == class_name.strip().lower())
        if section:
            query = query.where(Student.section == section.strip().upper())
        result = await self.db.execute(query.order_by(StudentLeaveRequest.created_at.desc()))
        return list(result.unique().scalars().all())

    async def decide_student_request(self, school_code: str, request_id: uuid.UUID,
                                     decision: LeaveDecisionRequest, staff: Optional[Staff]) -> StudentLeaveRequest:
        """
        Approve or reject a student's leave. Staff reviewers must be the class
        teacher of the student's class; school admins may review any request.
        """
        request = (await self.db.execute(
            select(StudentLeaveRequest).where(
                StudentLeaveRequest.id == request_id,
                StudentLeaveRequest.school_code == school_code,
            )
        )).unique().scalar_one_or_none()
        if request is None:
            raise NotFoundError("Leave request not found")

        if staff is not None and not staff.is_admin_or_principal:
            student = request.student
            query = select(SchoolClass).where(
                SchoolClass.school_code == school_code,
                func.lower(SchoolClass.class_name) == student.class_name.lower(),
            )
            classes = (await self.db.execute(query)).unique().scalars().all()
            classes = [c for c in classes if not c.section or not student.section or c.section == student.section]
            if not any(ClassService.is_class_teacher(c, staff) for c in classes):
                raise PermissionDenied("Only the class teacher can review this leave request")

        _decide(request, decision)
        request.reviewed_by = staff.id if staff is not None else None
        await self.db.commit()
        logger.info(f"{school_code}: student leave {request.id} {request.status}")
        return request

    # Staff leave

    async def create_staff_request(self, school_code: str, staff_id: uuid.UUID,
                                   data: StaffLeaveCreateRequest) -> StaffLeaveRequest:
        staff = (await self.db.execute(
            select(Staff).where(Staff.id == staff_id, Staff.school_code == school_code)
        )).scalar_one_or_none()
        if staff is None:
            raise NotFoundError("Staff member not found")
        await self._check_type(school_code, data.leave_type_id, (data.end_date - data.start_date).days + 1)

        request = StaffLeaveRequest(
            school_code=school_code,
            staff_id=staff.id,
            leave_type_id=data.leave_type_id,
            start_date=data.start_date,
            end_date=data.end_date,
            reason=data.reason.strip(),
            status=PENDING,
        )
        self.db.add(request)
        await self.db.commit()
        await self.db.refresh(request)
        return request

    async def list_staff_requests(self, school_code: str, status: Optional[str] = None,
                                  staff_id: Optional[uuid.UUID] = None) -> List[StaffLeaveRequest]:
        query = select(StaffLeaveRequest).where(StaffLeaveRequest.school_code == school_code)
        if status:
            query = query.where(StaffLeaveRequest.status == status)
        if staff_id:
            query = query.where(StaffLeaveRequest.staff_id == staff_id)
        result = await self.db.execute(query.order_by(StaffLeaveRequest.created_at.desc()))
        return list(result.unique().scalars().all())

    async def decide_staff_request(self, school_code: str, request_id: uuid.UUID,
                                   decision: LeaveDecisionRequest, reviewed_by: str) -> StaffLeaveRequest:
        request = (await self.db.execute(
            select(StaffLeaveRequest).where(
                StaffLeaveRequest.id == request_id,
                StaffLeaveRequest.school_code == school_code,
            )
        )).unique().scalar_one_or_none()
        if request is None:
            raise NotFoundError("Leave request not found")
        _decide(request, decision)
        request.reviewed_by = reviewed_by
        await self.db.commit()
        logger.info(f"{school_code}: staff leave {request.id} {request.status} by {reviewed_by}")
        return request
