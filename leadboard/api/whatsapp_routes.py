"""LeadBoard — WhatsApp Routes."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from leadboard.api.deps import require_ingestion_key
from leadboard.config import settings
from leadboard.connectors.meta.client import MetaAPIError
from leadboard.connectors.whatsapp.client import WhatsAppClient
from leadboard.connectors.whatsapp.sync import WhatsAppSyncError, run_whatsapp_sync
from leadboard.core.logging import get_logger
from leadboard.core.timeutil import parse_date
from leadboard.database import get_session

logger = get_logger("api.whatsapp")

router = APIRouter(prefix="/whatsapp", tags=["WhatsApp"])


@router.post("/sync", dependencies=[Depends(require_ingestion_key)])
async def sync_whatsapp(
    date: Optional[str] = Query(None, description="Regional day, YYYY-MM-DD (default today)"),
    session: Session = Depends(get_session),
):
    """Pull one day of inbound messages and upsert them as leads."""
    day = None
    if date and date.strip():
        day = parse_date(date)
        if day is None:
            raise HTTPException(status_code=400, detail="date must be in YYYY-MM-DD format.")
    try:
        return await run_whatsapp_sync(session, day)
    except WhatsAppSyncError as e:
        detail = {"error": str(e), "phone_id": e.phone_id} if e.phone_id else str(e)
        raise HTTPException(status_code=e.status_code, detail=detail)
    except SQLAlchemyError as e:
        logger.error(f"WhatsApp sync store error: {e}", extra={"endpoint": "/api/whatsapp/sync"})
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/test")
async def discover_whatsapp():
    """Find the WhatsApp business account and phone number ids for setup."""
    token = settings.meta_access_token.strip()
    if not token:
        raise HTTPException(status_code=500, detail="META_ACCESS_TOKEN not set")
    if not settings.meta_ad_account_id.strip():
        raise HTTPException(status_code=500, detail="META_AD_ACCOUNT_ID not set")

    client = WhatsAppClient(access_token=token, ad_account_id=settings.meta_ad_account_id.strip())
    try:
        result = await client.discover()
    except MetaAPIError as e:
        raise HTTPException(status_code=500, detail=str(e))
    finally:
        await client.close()

    if not result["ok"] and "ad_account" in result:
        return JSONResponse(status_code=404, content=result)
    return result
