"""LeadBoard — Meta Ads Sync.

Pulls day-granular insights for the trailing window and refreshes the
``meta`` snapshot rows with spend and lead totals. Off unless
``META_SYNC_ENABLED`` is set; ad-level spend rows are loaded by an external
job.
"""

from datetime import timedelta
from typing import Any, Dict, List, Optional

from sqlmodel import Session

from leadboard.config import Settings, settings as default_settings
from leadboard.connectors.meta.client import INSIGHT_LEVEL_FIELDS, MetaClient
from leadboard.connectors.meta.transformer import normalize_insights_for_db
from leadboard.core.logging import get_logger
from leadboard.core.timeutil import today_local
from leadboard.ingest.writer import upsert_daily_totals

logger = get_logger("meta.sync")

DEFAULT_LEVELS = "campaign,adset,ad,platform"
DEFAULT_SYNC_DAYS = 30
SNAPSHOT_PLATFORM = "meta"
SNAPSHOT_SOURCE = "meta_api"


class MetaSyncDisabled(Exception):
    """Raised when the ads sync is switched off."""


def parse_levels(raw: Optional[str]) -> List[str]:
    """Comma list → known insight levels, in request order."""
    requested = [p.strip() for p in (raw or DEFAULT_LEVELS).split(",")]
    return [p for p in dict.fromkeys(requested) if p in INSIGHT_LEVEL_FIELDS or p == "platform"]


def parse_sync_days(raw: Optional[str]) -> int:
    try:
        days = int(str(raw).strip()) if raw else DEFAULT_SYNC_DAYS
    except ValueError:
        days = DEFAULT_SYNC_DAYS
    return min(365, max(1, days))


async def run_meta_sync(
    session: Session,
    levels: Optional[str] = None,
    days: Optional[str] = None,
    campaign_range: str = "lifetime",
    client: Optional[MetaClient] = None,
    cfg: Optional[Settings] = None,
) -> Dict[str, Any]:
    """Fetch insights per level and store campaign-level daily totals.

    Totals come from the campaign level only, so adset and ad rows never
    double-count spend.
    """
    cfg = cfg or default_settings
    if not cfg.meta_sync_enabled:
        raise MetaSyncDisabled("Meta sync is not enabled.")

    window = parse_sync_days(days)
    until = today_local()
    since = until - timedelta(days=window - 1)
    wanted = parse_levels(levels)

    owns_client = client is None
    client = client or MetaClient()
    fetched: Dict[str, int] = {}
    totals: List[Dict[str, Any]] = []
    try:
        for level in wanted:
            if level == "platform":
                rows = await client.get_platform_insights(since.isoformat(), until.isoformat())
            else:
                rows = await client.get_insights(level, since.isoformat(), until.isoformat())
            fetched[level] = len(rows)
            if level == "campaign":
                totals = normalize_insights_for_db(rows)["daily_totals"]
    finally:
        if owns_client:
            await client.close()

    try:
        stored = upsert_daily_totals(session, SNAPSHOT_PLATFORM, totals, SNAPSHOT_SOURCE)
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"Meta sync stored {stored} daily totals ({since} → {until})")
    return {
        "ok": True,
        "levels": wanted,
        "fetched": fetched,
        "snapshots_upserted": stored,
        "date_from": since.isoformat(),
        "date_to": until.isoformat(),
        "campaign_range": campaign_range,
    }
