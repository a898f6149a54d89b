from datetime import timedelta
from typing import Any, Dict, Optional
import logging

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.config import get_session_ttl
from school_erp.core.security import generate_session_token
from school_erp.models import UserSession
from school_erp.utils.dates import utcnow

logger = logging.getLogger(__name__)


class SessionService:
    """Database-backed login sessions with a sliding expiry window."""

    def __init__(self, db: AsyncSession, ttl: Optional[timedelta] = None):
        self.db = db
        self.ttl = ttl or get_session_ttl()

    async def create_session(
        self,
        role: str,
        user_id: str,
        school_code: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None
    ) -> UserSession:
        session = UserSession(
            session_token=generate_session_token(),
            role=role,
            school_code=school_code,
            user_id=str(user_id),
            user_payload=payload or {},
            expires_at=utcnow() + self.ttl,
        )
        self.db.add(session)
        await self.db.commit()
        logger.info(f"Session created for {role} {user_id} ({school_code})")
        return session

    async def get_session(self, token: Optional[str], sliding: bool = True) -> Optional[UserSession]:
        """
        Look a session up by token. Expired sessions are deleted and give None;
        live ones get their expiry pushed forward when `sliding` is set.
        """
        if not token:
            return None
        result = await self.db.execute(select(UserSession).where(UserSession.session_token == token))
        session = result.scalar_one_or_none()
        if session is None:
            return None

        now = utcnow()
        if session.expires_at <= now:
            await self.db.delete(session)
            await self.db.commit()
            logger.info(f"Expired session removed for {session.role} {session.user_id}")
            return None

        if sliding:
            session.expires_at = now + self.ttl
            await self.db.commit()
        return session

    async def destroy_session(self, token: Optional[str]) -> None:
        if not token:
            return
        await self.db.execute(delete(UserSession).where(UserSession.session_token == token))
        await self.db.commit()

    async def destroy_sessions_for_user(self, role: str, user_id: str) -> int:
        result = await self.db.execute(
            delete(UserSession).where(UserSession.role == role, UserSession.user_id == str(user_id))
        )
        await self.db.commit()
        return result.rowcount or 0

    async def purge_expired(self) -> int:
        result = await self.db.execute(delete(UserSession).where(UserSession.expires_at <= utcnow()))
        await self.db.commit()
        return result.rowcount or 0
