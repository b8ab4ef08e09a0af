"""LeadBoard — Breakdown Engine.

Groups ad-spend rows by campaign, ad set or ad name and attributes leads to
those groups through a soft join: a lead belongs to a group when an
ad-spend row with the lead's (source_id, date) carries the group's name.
There is no foreign key, so unmatched leads are simply not counted.
"""

from collections import defaultdict
from datetime import date, datetime, time
from typing import Dict, Iterable, List, Optional, Set, Tuple

from sqlmodel import Session, select

from leadboard.analyzer.kpi_engine import cpc, cpm, ctr
from leadboard.core.logging import get_logger
from leadboard.core.timeutil import next_day
from leadboard.models.analysis_models import BreakdownItem, Champions, InsightDetailResponse
from leadboard.models.store_models import AdSpend, WhatsappLead

logger = get_logger("analyzer.breakdown")

LEVEL_COLUMNS = {
    "campaign": "campaign_name",
    "adset": "adset_name",
    "ad": "ad_name",
}
NOT_APPLICABLE = "N/A"

LeadKey = Tuple[str, date]


def group_name(row: AdSpend, level: str) -> str:
    return (getattr(row, LEVEL_COLUMNS[level]) or "").strip()


def breakdown_by_level(
    ad_rows: Iterable[AdSpend], lead_keys: Iterable[LeadKey], level: str
) -> List[BreakdownItem]:
    """Aggregate ad rows per level name and count attributed leads.

    ``lead_keys`` are (source_id, lead date) pairs; each distinct pair counts
    once per group it matches. Ordered by spend desc, then name.
    """
    if level not in LEVEL_COLUMNS:
        raise ValueError(f"Unsupported level: {level}")

    totals: Dict[str, Dict[str, float]] = defaultdict(
        lambda: {"spend": 0.0, "impressions": 0, "clicks": 0}
    )
    names_by_key: Dict[LeadKey, Set[str]] = defaultdict(set)

    for row in ad_rows:
        name = group_name(row, level)
        if not name:
            continue
        agg = totals[name]
        agg["spend"] += float(row.spend or 0)
        agg["impressions"] += int(row.impressions or 0)
        agg["clicks"] += int(row.link_clicks or 0)
        if row.source_id:
            names_by_key[(str(row.source_id), row.spend_date)].add(name)

    matched: Dict[str, Set[LeadKey]] = defaultdict(set)
    for key in set(lead_keys):
        for name in names_by_key.get(key, ()):
            matched[name].add(key)

    items = [
        BreakdownItem(
            id=name,
            name=name,
            quantity=len(matched.get(name, ())),
            spend=agg["spend"],
            impressions=int(agg["impressions"]),
            clicks=int(agg["clicks"]),
        )
        for name, agg in totals.items()
    ]
    items.sort(key=lambda i: (-i.spend, i.name))
    return items


def choose_champion(items: Iterable[BreakdownItem]) -> str:
    """Name with the lowest spend per lead; ties go to more leads."""
    with_leads = [i for i in items if i.quantity > 0]
    if not with_leads:
        return NOT_APPLICABLE
    best = min(with_leads, key=lambda i: (i.spend / i.quantity, -i.quantity))
    return best.name.strip() or NOT_APPLICABLE


def load_ad_rows(
    session: Session, date_from: Optional[date] = None, date_to: Optional[date] = None
) -> List[AdSpend]:
    query = select(AdSpend)
    if date_from is not None:
        query = query.where(AdSpend.spend_date >= date_from)
    if date_to is not None:
        query = query.where(AdSpend.spend_date <= date_to)
    return list(session.exec(query).all())


def load_lead_keys(
    session: Session, date_from: Optional[date] = None, date_to: Optional[date] = None
) -> Set[LeadKey]:
    """Distinct (source_id, date) pairs of attributed leads in the range."""
    query = select(WhatsappLead.source_id, WhatsappLead.created_at).where(
        WhatsappLead.source_id.is_not(None)
    )
    if date_from is not None:
        query = query.where(WhatsappLead.created_at >= datetime.combine(date_from, time.min))
    if date_to is not None:
        query = query.where(
            WhatsappLead.created_at < datetime.combine(next_day(date_to), time.min)
        )
    return {(str(sid), created.date()) for sid, created in session.exec(query).all()}


def compute_breakdown(
    session: Session,
    level: str,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> List[BreakdownItem]:
    items = breakdown_by_level(
        load_ad_rows(session, date_from, date_to),
        load_lead_keys(session, date_from, date_to),
        level,
    )
    logger.info(f"Computed {len(items)} {level} groups")
    return items


def compute_champions(
    session: Session, date_from: Optional[date] = None, date_to: Optional[date] = None
) -> Champions:
    ad_rows = load_ad_rows(session, date_from, date_to)
    keys = load_lead_keys(session, date_from, date_to)
    return Champions(
        creative=choose_champion(breakdown_by_level(ad_rows, keys, "ad")),
        campaign=choose_champion(breakdown_by_level(ad_rows, keys, "campaign")),
        adset=choose_champion(breakdown_by_level(ad_rows, keys, "adset")),
    )


def compute_item_detail(
    session: Session,
    level: str,
    item_id: str,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> InsightDetailResponse:
    """Metrics for a single named group, with derived rates."""
    ad_rows = [
        r for r in load_ad_rows(session, date_from, date_to)
        if group_name(r, level) == item_id.strip()
    ]
    items = breakdown_by_level(ad_rows, load_lead_keys(session, date_from, date_to), level)
    conversions = sum(int(r.conversations_started or 0) for r in ad_rows)
    item = items[0] if items else BreakdownItem(id=item_id, name=item_id)
    return InsightDetailResponse(
        level=level,
        id=item_id,
        spend=item.spend,
        impressions=item.impressions,
        clicks=item.clicks,
        leads=item.quantity,
        conversions=conversions,
        ctr=ctr(item.clicks, item.impressions),
        cpc=cpc(item.spend, item.clicks),
        cpm=cpm(item.spend, item.impressions),
        date_from=date_from.isoformat() if date_from else None,
        date_to=date_to.isoformat() if date_to else None,
    )
