"""LeadBoard — Dashboard Routes."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from leadboard.analyzer.breakdown_engine import compute_champions
from leadboard.analyzer.daily_engine import (
    best_day,
    clamp_days,
    compute_daily_series,
    filter_range,
    max_spend_day,
    period_totals,
    worst_day,
)
from leadboard.analyzer.periods import general_period_range
from leadboard.core.logging import get_logger
from leadboard.core.timeutil import today_local
from leadboard.database import get_session
from leadboard.models.analysis_models import DashboardOverview

logger = get_logger("api.dashboard")

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get("/overview", response_model=DashboardOverview)
async def get_overview(
    period: Optional[str] = Query("3dias", description="este_mes | 14dias | 7dias | 3dias | all"),
    days: Optional[str] = Query(None, description="Daily series lookback (default 90)"),
    session: Session = Depends(get_session),
):
    """Cards for one period: ranked days, totals and lowest-CPL champions."""
    today = today_local()
    bounds = general_period_range(period, today)
    overview = DashboardOverview(
        period=period or "all",
        date_from=bounds[0].isoformat() if bounds else None,
        date_to=bounds[1].isoformat() if bounds else None,
    )
    try:
        daily = filter_range(compute_daily_series(session, clamp_days(days), today), bounds)
        overview.daily = daily
        overview.best_day = best_day(daily)
        overview.worst_day = worst_day(daily)
        overview.max_spend_day = max_spend_day(daily)
        overview.totals = period_totals(daily)
        overview.champions = compute_champions(
            session, bounds[0] if bounds else None, bounds[1] if bounds else None
        )
    except SQLAlchemyError as e:
        session.rollback()
        logger.warning(f"Overview unavailable: {e}", extra={"endpoint": "/api/dashboard/overview"})
    return overview
