"""LeadBoard — Daily Series Engine.

Per-day spend (from ad-spend rows) left-joined with per-day lead counts
(from the lead table), plus the best / worst / biggest-spend days used by
the dashboard cards.
"""

from collections import Counter, defaultdict
from datetime import date, datetime, time, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func
from sqlmodel import Session, select

from leadboard.analyzer.kpi_engine import cost_per_lead, cost_per_result
from leadboard.core.logging import get_logger
from leadboard.core.timeutil import today_local
from leadboard.models.analysis_models import DailyPoint, PeriodTotals
from leadboard.models.store_models import AdSpend, WhatsappLead

logger = get_logger("analyzer.daily")

DEFAULT_DAYS = 90
MAX_DAYS = 365


def clamp_days(raw: Optional[str]) -> int:
    """Parse ``days``; non-numeric → 90, then bound to 1–365."""
    try:
        days = int(str(raw).strip()) if raw is not None else DEFAULT_DAYS
    except ValueError:
        days = DEFAULT_DAYS
    if days == 0:
        days = DEFAULT_DAYS
    return min(MAX_DAYS, max(1, days))


def merge_daily(
    spend_by_date: Dict[str, float], leads_by_date: Dict[str, int]
) -> List[DailyPoint]:
    """Merge both maps by date; absent values are zero."""
    merged: Dict[str, Dict[str, float]] = defaultdict(lambda: {"spend": 0.0, "leads": 0})
    for day, spend in spend_by_date.items():
        merged[day]["spend"] = float(spend or 0)
    for day, leads in leads_by_date.items():
        merged[day]["leads"] = int(leads or 0)

    return [
        DailyPoint(
            date=day,
            spend=agg["spend"],
            leads=int(agg["leads"]),
            cpl=cost_per_lead(agg["spend"], agg["leads"]),
        )
        for day, agg in sorted(merged.items())
    ]


def _spend_by_date(session: Session, since: date) -> Dict[str, float]:
    rows = session.exec(
        select(AdSpend.spend_date, func.coalesce(func.sum(AdSpend.spend), 0))
        .where(AdSpend.spend_date >= since)
        .group_by(AdSpend.spend_date)
    ).all()
    return {d.isoformat(): float(total) for d, total in rows}


def lead_dates(
    session: Session,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> List[datetime]:
    """Timestamps of attributed leads (non-null source_id) in [start, end)."""
    query = select(WhatsappLead.created_at).where(WhatsappLead.source_id.is_not(None))
    if start is not None:
        query = query.where(WhatsappLead.created_at >= start)
    if end is not None:
        query = query.where(WhatsappLead.created_at < end)
    return list(session.exec(query).all())


def compute_daily_series(
    session: Session, days: int, today: Optional[date] = None
) -> List[DailyPoint]:
    """Daily spend / leads / CPL for the trailing ``days`` days."""
    today = today or today_local()
    since = today - timedelta(days=days)
    spend = _spend_by_date(session, since)
    counts = Counter(
        ts.date().isoformat()
        for ts in lead_dates(session, start=datetime.combine(since, time.min))
    )
    daily = merge_daily(spend, dict(counts))
    logger.info(f"Computed daily series: {len(daily)} days (lookback {days})")
    return daily


# ── Dashboard rankings ──


def filter_range(daily: Iterable[DailyPoint], bounds: Optional[Tuple[date, date]]) -> List[DailyPoint]:
    if bounds is None:
        return list(daily)
    start, end = bounds[0].isoformat(), bounds[1].isoformat()
    return [d for d in daily if start <= d.date[:10] <= end]


def best_day(daily: List[DailyPoint]) -> Optional[DailyPoint]:
    """Lowest CPL among days with leads; earliest wins ties."""
    candidates = [d for d in daily if d.leads > 0 and d.cpl is not None]
    if not candidates:
        return None
    return min(candidates, key=lambda d: d.cpl)


def worst_day(daily: List[DailyPoint]) -> Optional[DailyPoint]:
    """Highest CPL among days with leads; earliest wins ties."""
    candidates = [d for d in daily if d.leads > 0 and d.cpl is not None]
    if not candidates:
        return None
    return max(candidates, key=lambda d: d.cpl)


def max_spend_day(daily: List[DailyPoint]) -> Optional[DailyPoint]:
    if not daily:
        return None
    return max(daily, key=lambda d: d.spend)


def period_totals(daily: List[DailyPoint]) -> PeriodTotals:
    spend = sum(d.spend for d in daily)
    leads = sum(d.leads for d in daily)
    return PeriodTotals(spend=spend, leads=leads, cost_per_result=cost_per_result(spend, leads))
