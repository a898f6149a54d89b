from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import get_db
from school_erp.core.dependencies import CurrentSession, require_staff_or_admin, resolve_school
from school_erp.services.dashboard_service import DashboardService

router = APIRouter(prefix="/api/dashboard", tags=["Dashboard"])


@router.get("/stats")
async def dashboard_stats(
    school_code: Optional[str] = Query(None),
    session: CurrentSession = Depends(require_staff_or_admin),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    """Headline counts for the school dashboard, cached for a short while"""
    school = await resolve_school(db, school_code, session)
    return {"data": await DashboardService(db).stats(school.school_code)}
