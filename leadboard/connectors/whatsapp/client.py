"""LeadBoard — WhatsApp Cloud API Client.

Shares transport, auth and error mapping with the Graph API ads client;
only the WhatsApp edges live here.
"""

from typing import Any, Dict, List, Optional

from leadboard.connectors.meta.client import META_BASE, MetaAPIError, MetaClient
from leadboard.core.logging import get_logger

logger = get_logger("whatsapp.client")

PHONE_MESSAGE_FIELDS = (
    "messages{id,from,timestamp,type,text,context,referral},contacts{wa_id,profile}"
)
WABA_EDGES = ("client_whatsapp_business_accounts", "owned_whatsapp_business_accounts")
PHONE_NUMBER_FIELDS = "id,display_phone_number,verified_name,quality_rating"


class WhatsAppClient(MetaClient):
    """Reads recent messages and discovers phone number ids."""

    async def get_phone_messages(self, phone_id: str) -> Dict[str, Any]:
        """Recent ``messages`` and ``contacts`` of one business phone number."""
        body = await self._request(
            "GET", f"{META_BASE}/{phone_id}", {"fields": PHONE_MESSAGE_FIELDS}
        )
        return {
            "messages": body.get("messages") or [],
            "contacts": body.get("contacts") or [],
        }

    async def get_phone_numbers(self, waba_id: str) -> List[Dict[str, Any]]:
        body = await self._request(
            "GET", f"{META_BASE}/{waba_id}/phone_numbers", {"fields": PHONE_NUMBER_FIELDS}
        )
        return [
            {
                "phone_number_id": p.get("id"),
                "display_phone_number": p.get("display_phone_number"),
                "verified_name": p.get("verified_name"),
                "quality_rating": p.get("quality_rating"),
            }
            for p in body.get("data") or []
        ]

    async def discover(self) -> Dict[str, Any]:
        """Find the business account's WABA and its phone numbers.

        Client-shared accounts are tried before owned ones. Each failed
        attempt is reported rather than raised.
        """
        account = await self.get_account_business()
        business_id = (account.get("business") or {}).get("id")
        if not business_id:
            return {"ok": False, "error": "No business ID found in ad account", "ad_account": account}

        attempts: List[Dict[str, Optional[str]]] = []
        for edge in WABA_EDGES:
            try:
                body = await self._request("GET", f"{META_BASE}/{business_id}/{edge}")
                wabas = body.get("data") or []
                if not wabas:
                    attempts.append({"method": edge, "error": "no accounts"})
                    continue
                waba_id = wabas[0].get("id")
                attempts.append({"method": edge, "waba_id": waba_id})
                return {
                    "ok": True,
                    "waba_id": waba_id,
                    "business_id": business_id,
                    "phone_numbers": await self.get_phone_numbers(waba_id),
                }
            except MetaAPIError as e:
                logger.warning(f"WABA lookup via {edge} failed: {e}")
                attempts.append({"method": edge, "error": str(e)})

        return {
            "ok": False,
            "business_id": business_id,
            "attempts": attempts,
            "message": (
                "Could not detect WhatsApp phone numbers. Set WHATSAPP_BUSINESS_ACCOUNT_ID, "
                "WHATSAPP_PHONE_NUMBER_ID_1 and WHATSAPP_PHONE_NUMBER_ID_2 manually."
            ),
        }
