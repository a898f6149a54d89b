from typing import Any, Dict, Optional
import uuid

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import get_db
from school_erp.core.dependencies import (
    CurrentSession,
    get_current_session,
    get_session_staff,
    get_session_student,
    require_staff_or_admin,
    resolve_school,
)
from school_erp.core.errors import PermissionDenied, ValidationError
from school_erp.core.permissions import require_permission
from school_erp.core.security import Role
from school_erp.schemas.leave.requests import (
    LeaveDecisionRequest,
    LeaveTypeCreateRequest,
    StaffLeaveCreateRequest,
    StudentLeaveCreateRequest,
)
from school_erp.schemas.leave.responses import LeaveTypeResponse, StaffLeaveResponse, StudentLeaveResponse
from school_erp.services.audit_service import record_audit
from school_erp.services.leave_service import LeaveService

router = APIRouter(prefix="/api/leave", tags=["Leave"])

SUB_MODULE = "leave_management"


def get_leave_service(db: AsyncSession = Depends(get_db)) -> LeaveService:
    return LeaveService(db)


@router.get("/types")
async def list_leave_types(
    school_code: Optional[str] = Query(None),
    applies_to: Optional[str] = Query(None, pattern="^(student|staff)$"),
    session: CurrentSession = Depends(get_current_session),
    db: AsyncSession = Depends(get_db),
    leave_service: LeaveService = Depends(get_leave_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    types = await leave_service.list_types(school.school_code, applies_to)
    return {"data": [LeaveTypeResponse.model_validate(t).model_dump() for t in types]}


@router.post("/types", status_code=201)
async def create_leave_type(
    body: LeaveTypeCreateRequest,
    session: CurrentSession = Depends(require_permission(SUB_MODULE, "edit")),
    db: AsyncSession = Depends(get_db),
    leave_service: LeaveService = Depends(get_leave_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, body.school_code, session)
    leave_type = await leave_service.create_type(school.school_code, body)
    return {"data": LeaveTypeResponse.model_validate(leave_type).model_dump()}


# Student requests

@router.post("/student-requests", status_code=201)
async def create_student_request(
    body: StudentLeaveCreateRequest,
    session: CurrentSession = Depends(get_current_session),
    db: AsyncSession = Depends(get_db),
    leave_service: LeaveService = Depends(get_leave_service)
) -> Dict[str, Any]:
    """Students apply for themselves; staff and admins apply on behalf of a student"""
    school = await resolve_school(db, body.school_code, session)
    if session.role == Role.STUDENT:
        student_id = (await get_session_student(db, session)).id
    else:
        if not (session.is_school_admin or session.is_staff):
            raise PermissionDenied()
        if body.student_id is None:
            raise ValidationError("student_id is required")
        student_id = body.student_id
    request = await leave_service.create_student_request(school.school_code, student_id, body)
    return {"data": StudentLeaveResponse.model_validate(request).model_dump()}


@router.get("/student-requests")
async def list_student_requests(
    school_code: Optional[str] = Query(None),
    status: Optional[str] = Query(None, pattern="^(pending|approved|rejected)$"),
    student_id: Optional[uuid.UUID] = Query(None),
    class_name: Optional[str] = Query(None),
    section: Optional[str] = Query(None),
    session: CurrentSession = Depends(get_current_session),
    db: AsyncSession = Depends(get_db),
    leave_service: LeaveService = Depends(get_leave_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    if session.role == Role.STUDENT:
        student_id = (await get_session_student(db, session)).id
    elif not (session.is_school_admin or session.is_staff):
        raise PermissionDenied()
    requests = await leave_service.list_student_requests(
        school.school_code, status=status, student_id=student_id, class_name=class_name, section=section
    )
    return {"data": [StudentLeaveResponse.model_validate(r).model_dump() for r in requests]}


@router.post("/student-requests/{request_id}/decision")
async def decide_student_request(
    request_id: uuid.UUID,
    body: LeaveDecisionRequest,
    background_tasks: BackgroundTasks,
    session: CurrentSession = Depends(require_staff_or_admin),
    db: AsyncSession = Depends(get_db),
    leave_service: LeaveService = Depends(get_leave_service)
) -> Dict[str, Any]:
    """Approve or reject; teachers may only decide for students of the class they teach"""
    school = await resolve_school(db, session.school_code, session)
    staff = await get_session_staff(db, session)
    request = await leave_service.decide_student_request(school.school_code, request_id, body, staff)
    background_tasks.add_task(
        record_audit, school.school_code, body.action, "student_leave", request_id, session.actor,
        {"rejection_reason": body.rejection_reason} if body.rejection_reason else None,
    )
    return {"data": StudentLeaveResponse.model_validate(request).model_dump()}


# Staff requests

@router.post("/staff-requests", status_code=201)
async def create_staff_request(
    body: StaffLeaveCreateRequest,
    session: CurrentSession = Depends(require_staff_or_admin),
    db: AsyncSession = Depends(get_db),
    leave_service: LeaveService = Depends(get_leave_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, body.school_code, session)
    if session.is_school_admin:
        if body.staff_id is None:
            raise ValidationError("staff_id is required")
        staff_id = body.staff_id
    else:
        staff = await get_session_staff(db, session)
        if staff is None:
            raise PermissionDenied()
        staff_id = staff.id
    request = await leave_service.create_staff_request(school.school_code, staff_id, body)
    return {"data": StaffLeaveResponse.model_validate(request).model_dump()}


@router.get("/staff-requests")
async def list_staff_requests(
    school_code: Optional[str] = Query(None),
    status: Optional[str] = Query(None, pattern="^(pending|approved|rejected)$"),
    staff_id: Optional[uuid.UUID] = Query(None),
    session: CurrentSession = Depends(require_staff_or_admin),
    db: AsyncSession = Depends(get_db),
    leave_service: LeaveService = Depends(get_leave_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, school_code, session)
    if not session.is_school_admin:
        staff = await get_session_staff(db, session)
        if staff is None:
            raise PermissionDenied()
        if not staff.is_admin_or_principal:
            staff_id = staff.id
    requests = await leave_service.list_staff_requests(school.school_code, status, staff_id)
    return {"data": [StaffLeaveResponse.model_validate(r).model_dump() for r in requests]}


@router.post("/staff-requests/{request_id}/decision")
async def decide_staff_request(
    request_id: uuid.UUID,
    body: LeaveDecisionRequest,
    background_tasks: BackgroundTasks,
    session: CurrentSession = Depends(require_permission(SUB_MODULE, "edit")),
    db: AsyncSession = Depends(get_db),
    leave_service: LeaveService = Depends(get_leave_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, session.school_code, session)
    request = await leave_service.decide_staff_request(school.school_code, request_id, body, session.actor)
    background_tasks.add_task(
        record_audit, school.school_code, body.action, "staff_leave", request_id, session.actor,
        {"rejection_reason": body.rejection_reason} if body.rejection_reason else None,
    )
    return {"data": StaffLeaveResponse.model_validate(request).model_dump()}
