from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from school_erp.core.database import get_db
from school_erp.core.dependencies import CurrentSession, get_current_session, get_session_staff
from school_erp.core.errors import PermissionDenied
from school_erp.services.rbac_service import RBACService

logger = logging.getLogger(__name__)


class PermissionChecker:
    """
    Route guard for one sub-module.

    School admin sessions always pass, as do staff whose role or designation is
    principal/admin. Other staff sessions go through the RBAC check; any other
    session is refused.
    """

    def __init__(self, sub_module_key: str, access: str = "view"):
        self.sub_module_key = sub_module_key
        self.access = access

    async def __call__(
        self,
        session: CurrentSession = Depends(get_current_session),
        db: AsyncSession = Depends(get_db)
    ) -> CurrentSession:
        if session.is_school_admin:
            return session

        staff = await get_session_staff(db, session)
        if staff is None or not staff.is_active:
            raise PermissionDenied()
        if staff.is_admin_or_principal:
            return session

        decision = await RBACService(db).check_staff_permission(
            staff.id, self.sub_module_key, self.access, self.access
        )
        if not decision.allowed:
            logger.info(
                f"Denied {self.access} on {self.sub_module_key} for staff {staff.staff_id}: {decision.reason}"
            )
            raise PermissionDenied(decision.reason or "Permission denied")
        return session


def require_permission(sub_module_key: str, access: str = "view") -> PermissionChecker:
    return PermissionChecker(sub_module_key, access)
