"""LeadBoard — WhatsApp Lead Sync.

Pulls the day's inbound messages for each configured business phone number
and upserts them as leads. Attribution comes from the click-to-WhatsApp
referral: its ``source_id`` when present, else the ad id encoded in the
``ctwa_clid`` token.
"""

import base64
import json
from datetime import date
from typing import Any, Dict, List, Optional

from sqlmodel import Session

from leadboard.config import Settings, settings as default_settings
from leadboard.connectors.meta.client import MetaAPIError
from leadboard.connectors.whatsapp.client import WhatsAppClient
from leadboard.core.logging import get_logger
from leadboard.core.timeutil import day_unix_bounds, iso_utc_from_unix, today_local
from leadboard.ingest.writer import LeadRow, upsert_leads

logger = get_logger("whatsapp.sync")

UNKNOWN_CONTACT = "Desconhecido"
LEAD_PLATFORM = "meta"
LEAD_SOURCE = "whatsapp_api"
TRANSACTION_PREFIX = "wa"


class WhatsAppSyncError(Exception):
    """Raised when the sync cannot run or a phone number fails."""

    def __init__(self, message: str, status_code: int = 500, phone_id: Optional[str] = None):
        self.status_code = status_code
        self.phone_id = phone_id
        super().__init__(message)


def decode_referral_token(token: Optional[str]) -> Dict[str, Optional[str]]:
    """Decode a base64 JSON ``ctwa_clid`` into ad / ad set / campaign ids.

    Undecodable tokens yield all-null ids.
    """
    ids: Dict[str, Optional[str]] = {"ad_id": None, "adset_id": None, "campaign_id": None}
    if not token:
        return ids
    try:
        parsed = json.loads(base64.b64decode(token).decode("utf-8"))
    except (ValueError, TypeError):
        return ids
    if not isinstance(parsed, dict):
        return ids
    for key in ids:
        value = parsed.get(key)
        ids[key] = str(value) if value else None
    return ids


def _text(value: Any) -> Optional[str]:
    return str(value) if value not in (None, "") else None


def _message_time(msg: Dict[str, Any]) -> int:
    try:
        return int(msg.get("timestamp") or 0)
    except (TypeError, ValueError):
        return 0


def leads_from_messages(
    messages: List[Dict[str, Any]],
    contacts: List[Dict[str, Any]],
    start_unix: int,
    end_unix: int,
) -> List[LeadRow]:
    """Turn one phone number's messages inside [start, end] into lead rows."""
    names = {
        c.get("wa_id") or "": (c.get("profile") or {}).get("name") or UNKNOWN_CONTACT
        for c in contacts
    }
    rows = []
    for msg in messages:
        sent_at = _message_time(msg)
        if sent_at < start_unix or sent_at > end_unix:
            continue

        referral = msg.get("referral") or {}
        token = _text(referral.get("ctwa_clid"))
        ids = decode_referral_token(token)
        rows.append(
            LeadRow(
                platform=LEAD_PLATFORM,
                lead_name=names.get(msg.get("from") or "", UNKNOWN_CONTACT),
                message_at=iso_utc_from_unix(sent_at),
                source_id=_text(referral.get("source_id")) or ids["ad_id"],
                ad_id=ids["ad_id"],
                campaign_id=ids["campaign_id"],
                adset_id=ids["adset_id"],
                message=(msg.get("text") or {}).get("body"),
                source_url=_text(referral.get("source_url")),
                ctwaclid=token,
                source=LEAD_SOURCE,
            )
        )
    return rows


def check_config(cfg: Settings) -> None:
    if not cfg.meta_access_token.strip():
        raise WhatsAppSyncError("META_ACCESS_TOKEN not set")
    if not cfg.whatsapp_business_account_id.strip():
        raise WhatsAppSyncError("WHATSAPP_BUSINESS_ACCOUNT_ID not set")
    if not cfg.whatsapp_phone_number_id_1.strip():
        raise WhatsAppSyncError("WHATSAPP_PHONE_NUMBER_ID_1 not set")


async def run_whatsapp_sync(
    session: Session,
    day: Optional[date] = None,
    client: Optional[WhatsAppClient] = None,
    cfg: Optional[Settings] = None,
) -> Dict[str, Any]:
    """Sync one regional day (default today) and return ``{ok, inserted, date}``.

    A failure on any phone number aborts the whole sync before anything is
    written.
    """
    cfg = cfg or default_settings
    check_config(cfg)
    day = day or today_local()
    start_unix, end_unix = day_unix_bounds(day)

    owns_client = client is None
    client = client or WhatsAppClient(access_token=cfg.meta_access_token.strip())
    rows: List[LeadRow] = []
    try:
        for phone_id in cfg.whatsapp_phone_ids:
            try:
                payload = await client.get_phone_messages(phone_id)
            except MetaAPIError as e:
                logger.error(f"WhatsApp fetch failed: {e}", extra={"phone_id": phone_id})
                raise WhatsAppSyncError(str(e), phone_id=phone_id) from e
            found = leads_from_messages(
                payload["messages"], payload["contacts"], start_unix, end_unix
            )
            logger.info(f"{len(found)} messages in window", extra={"phone_id": phone_id})
            rows.extend(found)
    finally:
        if owns_client:
            await client.close()

    if not rows:
        return {"ok": True, "inserted": 0, "date": day.isoformat()}

    try:
        inserted = upsert_leads(session, rows, TRANSACTION_PREFIX)
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"WhatsApp sync stored {inserted} leads for {day.isoformat()}")
    return {"ok": True, "inserted": inserted, "date": day.isoformat()}
