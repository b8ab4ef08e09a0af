"""LeadBoard — Metrics Routes."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from leadboard.analyzer.daily_engine import clamp_days, compute_daily_series
from leadboard.analyzer.summary_engine import compute_summary
from leadboard.core.logging import get_logger
from leadboard.core.timeutil import parse_date, today_local
from leadboard.database import get_session
from leadboard.models.analysis_models import DailySeriesResponse, MetricsResponse

logger = get_logger("api.metrics")

router = APIRouter(prefix="/metrics", tags=["Metrics"])


@router.get("/daily", response_model=DailySeriesResponse)
async def get_daily(
    days: Optional[str] = Query(None, description="Lookback in days, 1–365 (default 90)"),
    session: Session = Depends(get_session),
):
    """Daily spend, attributed leads and CPL. Empty on store errors."""
    try:
        return DailySeriesResponse(daily=compute_daily_series(session, clamp_days(days)))
    except SQLAlchemyError as e:
        session.rollback()
        logger.warning(f"Daily series unavailable: {e}", extra={"endpoint": "/api/metrics/daily"})
        return DailySeriesResponse()


@router.get("", response_model=MetricsResponse)
async def get_metrics(
    platform: str = Query("meta"),
    date_from: Optional[str] = Query(None, description="YYYY-MM-DD"),
    date_to: Optional[str] = Query(None, description="YYYY-MM-DD"),
    objective: str = Query("ENGAGEMENT"),
    status: str = Query("ACTIVE"),
    lead_platform: Optional[str] = Query(None, description="Count only leads of this platform"),
    session: Session = Depends(get_session),
):
    """Today and whole-range aggregates.

    Snapshot measures are folded in only when both ``objective`` and
    ``status`` are ``ALL``.
    """
    platform = platform.strip() or "meta"
    if platform != "meta":
        raise HTTPException(status_code=400, detail="Only platform=meta is supported for now.")

    response = MetricsResponse(
        platform=platform,
        date_from=date_from,
        date_to=date_to,
        objective=objective.upper(),
        status=status.upper(),
    )
    try:
        response.today, response.total = compute_summary(
            session,
            today_local(),
            platform=platform,
            date_from=parse_date(date_from),
            date_to=parse_date(date_to),
            include_snapshots=response.objective == "ALL" and response.status == "ALL",
            lead_platform=(lead_platform or "").strip().lower() or None,
        )
    except SQLAlchemyError as e:
        session.rollback()
        logger.warning(f"Metrics unavailable: {e}", extra={"endpoint": "/api/metrics"})
    return response
