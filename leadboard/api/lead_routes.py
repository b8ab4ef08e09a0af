"""LeadBoard — Lead Listing Routes."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from leadboard.analyzer.lead_engine import lead_counts, list_leads
from leadboard.analyzer.periods import lead_period_range
from leadboard.core.logging import get_logger
from leadboard.core.timeutil import parse_date, today_local
from leadboard.database import get_session
from leadboard.models.analysis_models import LeadsResponse

logger = get_logger("api.leads")

router = APIRouter(tags=["Leads"])


def _range_label(bounds) -> str:
    if bounds is None:
        return "all"
    start, end = bounds
    return start.isoformat() if start == end else f"{start.isoformat()}..{end.isoformat()}"


@router.get("/leads", response_model=LeadsResponse)
async def get_leads(
    platform: Optional[str] = Query(None, description="Platform tag, or 'all'"),
    date: Optional[str] = Query(None, description="YYYY-MM-DD or 'all' (default today)"),
    period: Optional[str] = Query(
        None, description="maximo | hoje | ontem | 3dias | 7dias; overrides date"
    ),
    session: Session = Depends(get_session),
):
    """Attributed leads for a day, a period, or all time, newest first."""
    platform_tag = (platform or "").strip().lower()
    platform_filter = None if platform_tag in ("", "all") else platform_tag

    if period:
        try:
            bounds = lead_period_range(period.strip().lower())
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
    elif (date or "").strip().lower() == "all":
        bounds = None
    else:
        day = parse_date(date) if date else today_local()
        if day is None:
            raise HTTPException(status_code=400, detail="date must be YYYY-MM-DD or 'all'.")
        bounds = (day, day)

    try:
        items = list_leads(
            session,
            platform=platform_filter,
            date_from=bounds[0] if bounds else None,
            date_to=bounds[1] if bounds else None,
        )
    except SQLAlchemyError as e:
        logger.error(f"Lead listing failed: {e}", extra={"endpoint": "/api/leads"})
        raise HTTPException(status_code=500, detail=str(e))

    return LeadsResponse(
        date=_range_label(bounds),
        platform=platform_filter or "all",
        period=period,
        total_conversations=len(items),
        items=items,
        counts=lead_counts(items),
    )
