"""LeadBoard — Meta Graph API Client.

Handles authentication, error mapping and pagination. Calls are not retried:
a failed request surfaces as a single MetaAPIError.
"""

import json
from typing import Any, Dict, List, Optional

import httpx

from leadboard.config import settings
from leadboard.core.logging import get_logger

logger = get_logger("meta.client")

META_BASE = f"{settings.meta_base_url}/{settings.meta_api_version}"
RATE_LIMIT_ERROR_CODE = 613

INSIGHT_LEVEL_FIELDS = {
    "campaign": "campaign_id,campaign_name,date_start,date_stop,spend,impressions,clicks,actions",
    "adset": "campaign_id,adset_id,adset_name,date_start,date_stop,spend,impressions,clicks,actions",
    "ad": "campaign_id,adset_id,ad_id,ad_name,date_start,date_stop,spend,impressions,clicks,actions",
}
PLATFORM_INSIGHT_FIELDS = "campaign_id,date_start,date_stop,spend,impressions,clicks,actions"
CAMPAIGN_FIELDS = "id,name,status,objective,created_time"
ADSET_FIELDS = "id,name,status,campaign_id,created_time"
AD_FIELDS = "id,name,status,adset_id,campaign_id,created_time"
BUDGET_FIELDS = "amount_spent,balance,spend_cap,currency,is_prepay_account"
FUNDING_FIELDS = "funding_source_details{AMOUNT,TYPE,DISPLAY_AMOUNT}"


class MetaAPIError(Exception):
    """Raised when Meta API returns an error."""

    def __init__(self, message: str, status_code: int = 0, error_code: int = 0):
        self.status_code = status_code
        self.error_code = error_code
        super().__init__(message)


def ensure_act_prefix(account_id: str) -> str:
    account_id = str(account_id).strip()
    return account_id if account_id.startswith("act_") else f"act_{account_id}"


class MetaClient:
    """Async HTTP client for the Meta Graph API (ads and WhatsApp edges)."""

    def __init__(
        self,
        access_token: str | None = None,
        ad_account_id: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.access_token = access_token or settings.meta_access_token
        self.ad_account_id = ad_account_id or settings.meta_ad_account_id
        self._client: Optional[httpx.AsyncClient] = http_client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=30.0)
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    @property
    def act_id(self) -> str:
        return ensure_act_prefix(self.ad_account_id)

    # ── Core Request Method ──

    async def _request(
        self,
        method: str,
        url: str,
        params: Dict[str, Any] | None = None,
    ) -> Dict[str, Any]:
        """Make one request and map any failure to MetaAPIError."""
        request_url = httpx.URL(url)
        params = dict(params or {})
        if "access_token" not in request_url.params:
            params["access_token"] = self.access_token
        # merge into the URL so a "next" link keeps its cursor
        if params:
            request_url = request_url.copy_merge_params(params)

        client = await self._get_client()
        try:
            resp = await client.request(method, request_url)
        except httpx.RequestError as e:
            raise MetaAPIError(f"Connection failed: {e}") from e

        try:
            body = resp.json()
        except ValueError:
            body = {}
        error = body.get("error") if isinstance(body, dict) else None

        if resp.status_code >= 400:
            error = error or {}
            message = error.get("message") or f"HTTP {resp.status_code}"
            error_code = error.get("code", 0) or 0
            if resp.status_code in (401, 403):
                logger.error(
                    f"Token or permission error: {message}",
                    extra={"status_code": resp.status_code},
                )
            if resp.status_code == 429 or error_code == RATE_LIMIT_ERROR_CODE:
                logger.error(
                    f"Rate limit exceeded: {message}",
                    extra={"status_code": resp.status_code},
                )
            raise MetaAPIError(message, resp.status_code, error_code)

        if error:
            raise MetaAPIError(
                error.get("message") or "Meta API error",
                resp.status_code,
                error.get("code", 0) or 0,
            )
        return body

    # ── Pagination ──

    async def _paginated_get(
        self,
        url: str,
        params: Dict[str, Any] | None = None,
        max_pages: int = 50,
    ) -> List[Dict[str, Any]]:
        """Fetch every page of an edge, following ``paging.next``."""
        all_data: List[Dict[str, Any]] = []
        current_url = url

        for page in range(max_pages):
            # "next" already carries the query string
            result = await self._request("GET", current_url, params if page == 0 else None)
            all_data.extend(result.get("data") or [])
            next_url = (result.get("paging") or {}).get("next")
            if not next_url:
                break
            current_url = next_url
        else:
            logger.warning(f"Stopped after {max_pages} pages of {url}")

        logger.info(f"Fetched {len(all_data)} records from {url}")
        return all_data

    # ── Accounts & Budget ──

    async def get_ad_accounts(self) -> List[Dict[str, Any]]:
        """Configured account, or every account the token can see."""
        if self.ad_account_id and self.ad_account_id.strip():
            return [{"id": self.act_id, "name": None}]
        result = await self._request("GET", f"{META_BASE}/me/adaccounts", {"fields": "id,name"})
        return [{"id": a.get("id"), "name": a.get("name")} for a in result.get("data") or []]

    async def get_ad_account_budget(self) -> Dict[str, Any]:
        """Raw budget fields; monetary values are in minor units (cents).

        ``funding_source_details`` needs the MANAGE permission, so the call is
        repeated without it when the first attempt is refused.
        """
        url = f"{META_BASE}/{self.act_id}"
        try:
            return await self._request("GET", url, {"fields": f"{BUDGET_FIELDS},{FUNDING_FIELDS}"})
        except MetaAPIError as e:
            logger.warning(f"Budget with funding source failed ({e}); retrying without it")
            return await self._request("GET", url, {"fields": BUDGET_FIELDS})

    async def get_account_business(self) -> Dict[str, Any]:
        return await self._request("GET", f"{META_BASE}/{self.act_id}", {"fields": "id,name,business"})

    # ── Structure ──

    async def get_campaigns(self) -> List[Dict[str, Any]]:
        data = await self._paginated_get(
            f"{META_BASE}/{self.act_id}/campaigns", {"fields": CAMPAIGN_FIELDS}
        )
        return [
            {
                "id": c.get("id"),
                "account_id": self.act_id,
                "name": c.get("name") or "",
                "status": c.get("status") or "UNKNOWN",
                "objective": c.get("objective"),
                "created_time": c.get("created_time"),
            }
            for c in data
        ]

    async def get_adsets(self) -> List[Dict[str, Any]]:
        data = await self._paginated_get(
            f"{META_BASE}/{self.act_id}/adsets", {"fields": ADSET_FIELDS}
        )
        return [
            {
                "id": a.get("id"),
                "campaign_id": a.get("campaign_id"),
                "account_id": self.act_id,
                "name": a.get("name") or "",
                "status": a.get("status") or "UNKNOWN",
                "created_time": a.get("created_time"),
            }
            for a in data
        ]

    async def get_ads(self) -> List[Dict[str, Any]]:
        data = await self._paginated_get(
            f"{META_BASE}/{self.act_id}/ads", {"fields": AD_FIELDS}
        )
        return [
            {
                "id": a.get("id"),
                "ad_set_id": a.get("adset_id"),
                "campaign_id": a.get("campaign_id"),
                "account_id": self.act_id,
                "name": a.get("name") or "",
                "status": a.get("status") or "UNKNOWN",
                "created_time": a.get("created_time"),
            }
            for a in data
        ]

    # ── Insights ──

    async def get_insights(self, level: str, since: str, until: str) -> List[Dict[str, Any]]:
        """Day-granular insight rows for campaign, adset or ad level."""
        if level not in INSIGHT_LEVEL_FIELDS:
            raise ValueError(f"Unsupported insights level: {level}")
        params = {
            "level": level,
            "time_increment": "1",
            "time_range": json.dumps({"since": since, "until": until}),
            "fields": INSIGHT_LEVEL_FIELDS[level],
        }
        data = await self._paginated_get(f"{META_BASE}/{self.act_id}/insights", params)
        id_key = f"{level}_id"
        return [r for r in data if r.get(id_key) and r.get("date_start")]

    async def get_platform_insights(self, since: str, until: str) -> List[Dict[str, Any]]:
        """Campaign insights broken down by publisher platform."""
        params = {
            "level": "campaign",
            "time_increment": "1",
            "time_range": json.dumps({"since": since, "until": until}),
            "fields": PLATFORM_INSIGHT_FIELDS,
            "breakdowns": "publisher_platform",
        }
        data = await self._paginated_get(f"{META_BASE}/{self.act_id}/insights", params)
        return [r for r in data if r.get("publisher_platform") and r.get("date_start")]
