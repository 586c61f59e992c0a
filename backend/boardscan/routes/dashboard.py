"""
BoardScan Backend — Dashboard Route
=====================================
"""

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from boardscan.database import get_db_session
from boardscan.dependencies import get_current_user
from boardscan.schemas.stats import DashboardStatsResponse
from boardscan.services.stats_service import stats_service

router = APIRouter(prefix="/api/dashboard", tags=["Dashboard"])


@router.get(
    "/stats",
    response_model=DashboardStatsResponse,
    dependencies=[Depends(get_current_user)],
    summary="Scan counts, totals and top board types/categories",
)
async def dashboard_stats(
    response: Response,
    db: AsyncSession = Depends(get_db_session),
) -> DashboardStatsResponse:
    result = await stats_service.dashboard_stats(db)
    # Figures change with every scan; let clients poll but not cache
    response.headers["Cache-Control"] = "private, no-cache"
    return result
