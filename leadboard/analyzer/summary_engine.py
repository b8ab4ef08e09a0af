"""LeadBoard — Period Summary Engine.

"Today" vs "total" aggregates. Lead counts come from the lead table; spend,
impressions, link clicks and conversation starts come from ad-spend rows,
each column read on its own so one failing column does not sink the rest.
"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from leadboard.analyzer.kpi_engine import cost_per_result
from leadboard.core.logging import get_logger
from leadboard.core.timeutil import day_window, next_day
from leadboard.models.analysis_models import PeriodAggregate
from leadboard.models.store_models import AdSpend, MetricSnapshot, WhatsappLead

logger = get_logger("analyzer.summary")

# response field → ad-spend column
AD_COLUMNS = {
    "spend": AdSpend.spend,
    "impressions": AdSpend.impressions,
    "inline_link_clicks": AdSpend.link_clicks,
    "actions": AdSpend.conversations_started,
}
SNAPSHOT_MEASURES = ("spend", "leads", "opportunities", "sales_count", "revenue")


def count_leads(
    session: Session,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    platform: Optional[str] = None,
) -> int:
    """Attributed leads (non-null source_id) in [start, end)."""
    query = select(func.count()).select_from(WhatsappLead).where(
        WhatsappLead.source_id.is_not(None)
    )
    if start is not None:
        query = query.where(WhatsappLead.created_at >= start)
    if end is not None:
        query = query.where(WhatsappLead.created_at < end)
    if platform:
        query = query.where(WhatsappLead.platform == platform)
    return int(session.exec(query).one() or 0)


def sum_ad_column(
    session: Session,
    field: str,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> float:
    """Sum one ad-spend column over a date range; 0 on store errors."""
    column = AD_COLUMNS[field]
    query = select(func.coalesce(func.sum(column), 0))
    if date_from is not None:
        query = query.where(AdSpend.spend_date >= date_from)
    if date_to is not None:
        query = query.where(AdSpend.spend_date <= date_to)
    try:
        return float(session.exec(query).one() or 0)
    except SQLAlchemyError as e:
        session.rollback()
        logger.warning(f"facebook_ads column {field} unavailable: {e}")
        return 0.0


def sum_snapshots(
    session: Session,
    platform: str,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
) -> dict:
    query = select(
        *[func.coalesce(func.sum(getattr(MetricSnapshot, m)), 0) for m in SNAPSHOT_MEASURES]
    ).where(MetricSnapshot.platform == platform)
    if date_from:
        query = query.where(MetricSnapshot.metric_date >= date_from)
    if date_to:
        query = query.where(MetricSnapshot.metric_date <= date_to)
    row = session.exec(query).one()
    return {m: float(v or 0) for m, v in zip(SNAPSHOT_MEASURES, row)}


def _ad_totals(session: Session, date_from: Optional[date], date_to: Optional[date]) -> dict:
    return {field: sum_ad_column(session, field, date_from, date_to) for field in AD_COLUMNS}


def build_aggregate(leads: int, ads: dict, snapshot: Optional[dict] = None) -> PeriodAggregate:
    """Combine lead count, ad totals and (optionally) snapshot measures.

    Ad spend wins over snapshot spend whenever it is non-zero.
    """
    agg = PeriodAggregate(**(snapshot or {}))
    agg.leads = leads
    agg.spend = ads["spend"] or agg.spend
    agg.impressions = ads["impressions"]
    agg.inline_link_clicks = ads["inline_link_clicks"]
    agg.actions = ads["actions"]
    agg.cost_per_result = cost_per_result(ads["spend"], ads["actions"])
    return agg


def compute_summary(
    session: Session,
    today: date,
    platform: str = "meta",
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    include_snapshots: bool = False,
    lead_platform: Optional[str] = None,
) -> tuple[PeriodAggregate, PeriodAggregate]:
    """Return (today, total) aggregates."""
    today_start, today_end = day_window(today)
    total_start = day_window(date_from)[0] if date_from else None
    total_end = day_window(next_day(date_to))[0] if date_to else None

    leads_today = count_leads(session, today_start, today_end, lead_platform)
    leads_total = count_leads(session, total_start, total_end, lead_platform)
    ads_today = _ad_totals(session, today, today)
    ads_total = _ad_totals(session, date_from, date_to)

    snap_today = snap_total = None
    if include_snapshots:
        iso_today = today.isoformat()
        snap_today = sum_snapshots(session, platform, iso_today, iso_today)
        snap_total = sum_snapshots(
            session,
            platform,
            date_from.isoformat() if date_from else None,
            date_to.isoformat() if date_to else None,
        )

    return (
        build_aggregate(leads_today, ads_today, snap_today),
        build_aggregate(leads_total, ads_total, snap_total),
    )
