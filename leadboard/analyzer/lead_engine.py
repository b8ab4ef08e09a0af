"""LeadBoard — Lead Listing.

Attributed leads (non-null ``source_id``) with the campaign, ad set and ad
names of the ad-spend row sharing their (source_id, date). A key matching
rows with different names is ambiguous and left unattributed.
"""

from collections import defaultdict
from datetime import date
from typing import Dict, List, Optional, Set, Tuple

from sqlmodel import Session, select

from leadboard.analyzer.breakdown_engine import load_ad_rows
from leadboard.analyzer.periods import count_by_field
from leadboard.core.timeutil import REGIONAL_TZ, day_window, next_day
from leadboard.models.analysis_models import LeadItem
from leadboard.models.store_models import AdSpend, WhatsappLead

AdNames = Tuple[Optional[str], Optional[str], Optional[str]]
COUNT_FIELDS = ("campaign", "adset", "creative")


def ad_names_by_key(ad_rows: List[AdSpend]) -> Dict[Tuple[str, date], Optional[AdNames]]:
    """(source_id, date) → (campaign, adset, ad) names, None when ambiguous."""
    seen: Dict[Tuple[str, date], Set[AdNames]] = defaultdict(set)
    for row in ad_rows:
        if row.source_id:
            seen[(str(row.source_id), row.spend_date)].add(
                (row.campaign_name, row.adset_name, row.ad_name)
            )
    return {key: next(iter(names)) if len(names) == 1 else None for key, names in seen.items()}


def list_leads(
    session: Session,
    platform: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> List[LeadItem]:
    """Leads in the inclusive regional date range, newest first."""
    query = select(WhatsappLead).where(WhatsappLead.source_id.is_not(None))
    if date_from is not None:
        query = query.where(WhatsappLead.created_at >= day_window(date_from)[0])
    if date_to is not None:
        query = query.where(WhatsappLead.created_at < day_window(next_day(date_to))[0])
    if platform:
        query = query.where(WhatsappLead.platform == platform)
    leads = session.exec(query.order_by(WhatsappLead.created_at.desc())).all()

    names = ad_names_by_key(load_ad_rows(session, date_from, date_to))
    items = []
    for lead in leads:
        campaign, adset, creative = (
            names.get((str(lead.source_id), lead.created_at.date())) or (None, None, None)
        )
        items.append(
            LeadItem(
                name=lead.name,
                last_name=lead.last_name,
                created_at=lead.created_at.replace(tzinfo=REGIONAL_TZ).isoformat(),
                source_id=lead.source_id,
                ctwaclid=lead.ctwaclid,
                platform=lead.platform,
                message=lead.message,
                cta=lead.cta,
                source_url=lead.source_url,
                campaign=campaign,
                adset=adset,
                creative=creative,
            )
        )
    return items


def lead_counts(items: List[LeadItem]) -> Dict[str, List[dict]]:
    return {field: count_by_field(getattr(i, field) for i in items) for field in COUNT_FIELDS}
