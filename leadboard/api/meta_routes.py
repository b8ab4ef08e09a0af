"""LeadBoard — Meta Routes.

Account budget straight from the Graph API, spend breakdowns from the
ad-spend table, and the sync triggers.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from leadboard.analyzer.breakdown_engine import (
    LEVEL_COLUMNS,
    compute_breakdown,
    compute_item_detail,
)
from leadboard.api.deps import require_database, require_ingestion_key
from leadboard.config import settings
from leadboard.connectors.meta.client import MetaAPIError, MetaClient
from leadboard.connectors.meta.sync import MetaSyncDisabled, run_meta_sync
from leadboard.connectors.meta.transformer import build_budget, parse_balance_override
from leadboard.connectors.whatsapp.sync import WhatsAppSyncError, run_whatsapp_sync
from leadboard.core.logging import get_logger
from leadboard.core.throttle import try_acquire
from leadboard.core.timeutil import parse_date
from leadboard.database import get_session
from leadboard.models.analysis_models import (
    BudgetResponse,
    InsightDetailResponse,
    InsightsResponse,
)

logger = get_logger("api.meta")

router = APIRouter(prefix="/meta", tags=["Meta"])

SYNC_NOW_THROTTLE = "meta_sync_now"
SYNC_DISABLED_MESSAGE = "Meta sync is disabled. Set META_SYNC_ENABLED to turn it on."


# ── Budget ──


@router.get("/budget", response_model=BudgetResponse)
async def get_budget():
    """Ad account budget in major units, with the available balance derived."""
    token = settings.meta_access_token.strip()
    account = settings.meta_ad_account_id.strip()
    if not token or not account:
        raise HTTPException(
            status_code=503,
            detail="Meta Ads credentials not configured (META_ACCESS_TOKEN, META_AD_ACCOUNT_ID).",
        )

    client = MetaClient(access_token=token, ad_account_id=account)
    try:
        raw = await client.get_ad_account_budget()
    except MetaAPIError as e:
        raise HTTPException(status_code=500, detail=str(e))
    finally:
        await client.close()

    return build_budget(raw, parse_balance_override(settings.meta_available_balance_override))


# ── Breakdowns ──


@router.get("/insights", response_model=InsightsResponse)
async def get_insights(
    level: str = Query("campaign", description="campaign | adset | ad"),
    date_from: Optional[str] = Query(None, description="YYYY-MM-DD"),
    date_to: Optional[str] = Query(None, description="YYYY-MM-DD"),
    objective: str = Query("ENGAGEMENT"),
    status: str = Query("ACTIVE"),
    session: Session = Depends(get_session),
):
    """Spend and attributed leads grouped by campaign, ad set or ad name.

    Store errors and unknown levels yield an empty list.
    """
    level = level.lower()
    response = InsightsResponse(
        level=level,
        date_from=date_from,
        date_to=date_to,
        objective=objective.upper(),
        status=status.upper(),
    )
    if level not in LEVEL_COLUMNS:
        return response
    try:
        response.items = compute_breakdown(
            session, level, parse_date(date_from), parse_date(date_to)
        )
    except SQLAlchemyError as e:
        session.rollback()
        logger.warning(f"Insights unavailable: {e}", extra={"endpoint": "/api/meta/insights"})
    return response


@router.get("/insights/detail", response_model=InsightDetailResponse)
async def get_insight_detail(
    level: str = Query("campaign"),
    id: Optional[str] = Query(None, description="Campaign, ad set or ad name"),
    date_from: Optional[str] = Query(None),
    date_to: Optional[str] = Query(None),
    session: Session = Depends(get_session),
):
    """Totals and CTR / CPC / CPM for one breakdown group."""
    if not id or not id.strip():
        raise HTTPException(status_code=400, detail="Missing id.")
    level = level.lower()
    if level not in LEVEL_COLUMNS:
        raise HTTPException(status_code=400, detail=f"Unsupported level: {level}")
    try:
        return compute_item_detail(
            session, level, id.strip(), parse_date(date_from), parse_date(date_to)
        )
    except SQLAlchemyError as e:
        logger.error(f"Insight detail failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))


# ── Sync ──


@router.post("/sync", dependencies=[Depends(require_ingestion_key)])
async def sync_meta(
    levels: Optional[str] = Query(None),
    days: Optional[str] = Query(None),
    campaign_range: str = Query("lifetime"),
    session: Session = Depends(get_session),
):
    """Pull Meta insights into the snapshot table (501 while disabled)."""
    try:
        return await run_meta_sync(session, levels, days, campaign_range)
    except MetaSyncDisabled:
        raise HTTPException(status_code=501, detail=SYNC_DISABLED_MESSAGE)
    except (MetaAPIError, SQLAlchemyError) as e:
        logger.error(f"Meta sync failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/sync-now")
async def sync_now(
    levels: Optional[str] = Query(None),
    days: Optional[str] = Query(None),
    campaign_range: str = Query("lifetime"),
    session: Session = Depends(get_session),
):
    """Run the ads sync and then the messaging sync for today.

    At most once per ``SYNC_MIN_INTERVAL_SECONDS`` across all instances.
    """
    require_database()
    try:
        acquired = try_acquire(session, SYNC_NOW_THROTTLE, settings.sync_min_interval_seconds)
    except SQLAlchemyError as e:
        logger.error(f"Sync throttle unavailable: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    if not acquired:
        raise HTTPException(
            status_code=429,
            detail="Sync recently triggered. Please wait a minute and try again.",
        )

    try:
        meta = await run_meta_sync(session, levels, days, campaign_range)
    except MetaSyncDisabled:
        meta = {"ok": False, "disabled": True, "error": SYNC_DISABLED_MESSAGE}
    except (MetaAPIError, SQLAlchemyError) as e:
        logger.error(f"Meta sync failed: {e}", extra={"endpoint": "/api/meta/sync-now"})
        raise HTTPException(status_code=500, detail=str(e))

    try:
        whatsapp = await run_whatsapp_sync(session)
    except WhatsAppSyncError as e:
        whatsapp = {"error": str(e), "phone_id": e.phone_id}
    except SQLAlchemyError as e:
        logger.error(f"WhatsApp sync failed: {e}", extra={"endpoint": "/api/meta/sync-now"})
        whatsapp = {"error": str(e)}

    return {"meta": meta, "whatsapp": whatsapp}
