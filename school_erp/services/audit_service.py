from datetime import timedelta
from typing import Any, Dict, List, Optional
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import get_db_context
from school_erp.models import AuditLog, LoginAuditLog
from school_erp.utils.dates import utcnow

logger = logging.getLogger(__name__)

LOGIN_DEDUPE_WINDOW = timedelta(seconds=2)


async def record_audit(
    school_code: str,
    action: str,
    entity_type: str,
    entity_id: Optional[Any] = None,
    performed_by: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None
) -> None:
    """
    Append an audit row in its own session. Meant to run as a background task:
    a failure is logged and never reaches the request that triggered it.
    """
    try:
        async with get_db_context() as db:
            db.add(AuditLog(
                school_code=school_code,
                action=action,
                entity_type=entity_type,
                entity_id=str(entity_id) if entity_id is not None else None,
                performed_by=performed_by,
                details=details or {},
            ))
    except Exception as e:
        logger.error(f"Audit write failed for {action} on {entity_type}: {str(e)}")


class AuditService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_logs(
        self,
        school_code: str,
        action: Optional[str] = None,
        entity_type: Optional[str] = None,
        limit: int = 100
    ) -> List[AuditLog]:
        query = select(AuditLog).where(AuditLog.school_code == school_code)
        if action:
            query = query.where(AuditLog.action == action)
        if entity_type:
            query = query.where(AuditLog.entity_type == entity_type)
        result = await self.db.execute(query.order_by(AuditLog.created_at.desc()).limit(limit))
        return list(result.scalars().all())

    async def log_login(
        self,
        role: str,
        status: str,
        school_code: Optional[str] = None,
        user_id: Optional[str] = None,
        name: Optional[str] = None,
        login_type: str = "password",
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None
    ) -> Optional[LoginAuditLog]:
        """
        Store one login attempt. An identical attempt (same user, ip and status)
        within the dedupe window is skipped and gives None.
        """
        since = utcnow() - LOGIN_DEDUPE_WINDOW
        duplicate = await self.db.execute(
            select(LoginAuditLog.id).where(
                LoginAuditLog.user_id == user_id,
                LoginAuditLog.ip_address == ip_address,
                LoginAuditLog.status == status,
                LoginAuditLog.created_at >= since,
            ).limit(1)
        )
        if duplicate.scalar_one_or_none() is not None:
            logger.debug(f"Duplicate login audit skipped for {user_id}")
            return None

        entry = LoginAuditLog(
            school_code=school_code,
            user_id=user_id,
            name=name,
            role=role,
            login_type=login_type,
            status=status,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        self.db.add(entry)
        await self.db.commit()
        return entry

    async def list_login_logs(
        self,
        school_code: str,
        role: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 100
    ) -> List[LoginAuditLog]:
        query = select(LoginAuditLog).where(LoginAuditLog.school_code == school_code)
        if role:
            query = query.where(LoginAuditLog.role == role)
        if status:
            query = query.where(LoginAuditLog.status == status)
        result = await self.db.execute(query.order_by(LoginAuditLog.created_at.desc()).limit(limit))
        return list(result.scalars().all())
