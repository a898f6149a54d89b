from typing import Any, Dict

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.config import settings
from school_erp.core.database import get_db
from school_erp.core.dependencies import (
    CurrentSession,
    get_current_session,
    normalize_school_code,
    require_school_admin,
    resolve_school,
)
from school_erp.core.logging import logger
from school_erp.core.rate_limiter import get_client_ip, rate_limiter
from school_erp.schemas.auth.requests import (
    GeneratePasswordsRequest,
    LoginAuditRequest,
    SchoolLoginRequest,
    StaffLoginRequest,
    StudentLoginRequest,
)
from school_erp.schemas.auth.responses import GeneratedCredentials, SessionInfo
from school_erp.services.audit_service import AuditService
from school_erp.services.auth_service import AuthService, ClientInfo, LoginResult
from school_erp.utils.cookie_utils import clear_auth_cookies, get_session_token, set_auth_cookies

router = APIRouter(prefix="/api", tags=["Authentication"])

LOGIN_WINDOW_SECONDS = 60


def get_auth_service(db: AsyncSession = Depends(get_db)) -> AuthService:
    return AuthService(db)


def client_info(request: Request) -> ClientInfo:
    return ClientInfo(ip_address=get_client_ip(request), user_agent=request.headers.get("user-agent"))


async def limit_login(request: Request) -> None:
    await rate_limiter.enforce(request, "login", settings.LOGIN_RATE_LIMIT, LOGIN_WINDOW_SECONDS)


def login_response(result: LoginResult, request: Request, response: Response) -> Dict[str, Any]:
    set_auth_cookies(response, request, result.auth_token, result.session.session_token)
    return {
        "data": SessionInfo(
            role=result.session.role,
            school_code=result.session.school_code,
            user_id=result.session.user_id,
            user=result.user,
            redirect=result.redirect,
        ).model_dump()
    }


@router.post("/auth/school/login", dependencies=[Depends(limit_login)])
async def school_login(
    body: SchoolLoginRequest,
    request: Request,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service)
) -> Dict[str, Any]:
    """Log a school admin in with the school code and admin password"""
    result = await auth_service.login_school(
        normalize_school_code(body.school_code), body.password, client_info(request)
    )
    return login_response(result, request, response)


@router.post("/auth/staff/login", dependencies=[Depends(limit_login)])
async def staff_login(
    body: StaffLoginRequest,
    request: Request,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service)
) -> Dict[str, Any]:
    result = await auth_service.login_staff(
        normalize_school_code(body.school_code), body.staff_id, body.password, client_info(request)
    )
    return login_response(result, request, response)


@router.post("/auth/accountant/login", dependencies=[Depends(limit_login)])
async def accountant_login(
    body: StaffLoginRequest,
    request: Request,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service)
) -> Dict[str, Any]:
    result = await auth_service.login_staff(
        normalize_school_code(body.school_code), body.staff_id, body.password, client_info(request),
        as_accountant=True,
    )
    return login_response(result, request, response)


@router.post("/auth/student/login", dependencies=[Depends(limit_login)])
async def student_login(
    body: StudentLoginRequest,
    request: Request,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service)
) -> Dict[str, Any]:
    result = await auth_service.login_student(
        normalize_school_code(body.school_code), body.admission_no, body.password, client_info(request)
    )
    return login_response(result, request, response)


@router.post("/auth/logout")
async def logout(
    request: Request,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service)
) -> Dict[str, Any]:
    await auth_service.logout(get_session_token(request))
    clear_auth_cookies(response, request)
    return {"data": {"logged_out": True}}


@router.get("/auth/session")
async def current_session(session: CurrentSession = Depends(get_current_session)) -> Dict[str, Any]:
    return {
        "data": SessionInfo(
            role=session.role,
            school_code=session.school_code,
            user_id=session.user_id,
            user=session.payload,
        ).model_dump()
    }


@router.post("/auth/log-login")
async def log_login(
    body: LoginAuditRequest,
    request: Request,
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    """
    Record a login event reported by a client. Limited per ip; a repeat of the
    same user, ip and status inside the dedupe window is dropped.
    """
    await rate_limiter.enforce(request, "log-login", settings.LOGIN_AUDIT_RATE_LIMIT, LOGIN_WINDOW_SECONDS)
    client = client_info(request)
    entry = await AuditService(db).log_login(
        role=body.role,
        status=body.status,
        school_code=body.school_code,
        user_id=body.user_id,
        name=body.name,
        login_type=body.login_type,
        ip_address=client.ip_address,
        user_agent=client.user_agent,
    )
    return {"data": {"recorded": entry is not None}}


@router.post("/passwords/generate")
async def generate_passwords(
    body: GeneratePasswordsRequest,
    session: CurrentSession = Depends(require_school_admin),
    db: AsyncSession = Depends(get_db),
    auth_service: AuthService = Depends(get_auth_service)
) -> Dict[str, Any]:
    school = await resolve_school(db, body.school_code, session)
    credentials = await auth_service.generate_passwords(
        school.school_code, body.target, overwrite=body.overwrite, class_name=body.class_name
    )
    logger.info(f"{school.school_code}: generated {len(credentials)} {body.target} passwords")
    return {"data": GeneratedCredentials(generated=len(credentials), credentials=credentials).model_dump()}
