"""LeadBoard — Meta Response Parsing.

Turns heterogeneous Graph API payloads into plain numbers: action counters,
funding-source amounts, DB-ready insight rows and the account budget.
"""

import math
import re
from collections import defaultdict
from typing import Any, Dict, List, Optional

from leadboard.models.analysis_models import BudgetResponse

# Several historical tag variants, summed to survive taxonomy changes
CONVERSATION_STARTED_ACTIONS = {
    "onsite_conversion.messaging_conversation_started_7d",
    "messaging_conversation_started_7d",
    "onsite_conversion.messaging_conversation_started",
    "messaging_conversation_started",
}
# funding_source_details TYPE: 2 = FACEBOOK_WALLET, 20 = STORED_BALANCE
WALLET_FUNDING_TYPES = {2, 20}
MINOR_UNITS = 100


def _safe_float(value: Any) -> float:
    """Safely convert a value to float."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def _safe_int(value: Any) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return int(_safe_float(value))


def _action_type(action: Dict[str, Any]) -> str:
    return (action.get("action_type") or "").lower()


def parse_lead_count(actions: Any) -> int:
    if not isinstance(actions, list):
        return 0
    for action in actions:
        if _action_type(action) == "lead":
            return _safe_int(action.get("value"))
    return 0


def parse_conversion_value(actions: Any) -> float:
    """Value of the first purchase-like action."""
    if not isinstance(actions, list):
        return 0.0
    for action in actions:
        tag = _action_type(action)
        if "purchase" in tag or "omni_purchase" in tag:
            return _safe_float(action.get("value"))
    return 0.0


def parse_conversation_starts(actions: Any) -> int:
    if not isinstance(actions, list):
        return 0
    return sum(
        _safe_int(a.get("value"))
        for a in actions
        if _action_type(a) in CONVERSATION_STARTED_ACTIONS
    )


def _parse_display_amount(display: Any) -> Optional[int]:
    """Localized display amount ("1.234,56" or "1,234.56") → cents."""
    text = re.sub(r"\s", "", str(display))
    text = re.sub(r"[^\d,.\-]", "", text)
    if not text:
        return None
    if re.search(r",\d{1,2}$", text):
        text = text.replace(".", "").replace(",", ".")
    else:
        text = text.replace(",", "")
    try:
        units = float(text)
    except ValueError:
        return None
    return round(units * MINOR_UNITS) if math.isfinite(units) else None


def parse_funding_source_amount(details: Any) -> Optional[float]:
    """Wallet balance in cents from ``funding_source_details`` (object or list)."""
    if isinstance(details, dict):
        items = [details]
    elif isinstance(details, list):
        items = [d for d in details if isinstance(d, dict)]
    else:
        return None

    for item in items:
        raw_type = item.get("TYPE", item.get("type"))
        try:
            funding_type = int(raw_type)
        except (TypeError, ValueError):
            continue
        if funding_type not in WALLET_FUNDING_TYPES:
            continue

        amount = item.get("AMOUNT", item.get("amount"))
        if amount is None or amount == "":
            display = item.get("DISPLAY_AMOUNT", item.get("display_amount"))
            if display not in (None, ""):
                cents = _parse_display_amount(display)
                if cents is not None:
                    return float(cents)
            continue
        try:
            value = float(amount)
        except (TypeError, ValueError):
            continue
        if math.isfinite(value):
            return value
    return None


def normalize_insights_for_db(rows: List[Dict[str, Any]]) -> Dict[str, List[Dict[str, Any]]]:
    """Insight rows → per-row DB shape plus per-date totals."""
    insights: List[Dict[str, Any]] = []
    by_date: Dict[str, Dict[str, float]] = defaultdict(
        lambda: {"spend": 0.0, "leads": 0, "impressions": 0, "clicks": 0}
    )

    for row in rows:
        campaign_id = str(row.get("campaign_id") or "").strip()
        metric_date = (row.get("date_start") or row.get("date_stop") or "")[:10]
        if not campaign_id or not metric_date:
            continue

        spend = _safe_float(row.get("spend"))
        impressions = _safe_int(row.get("impressions") or 0)
        clicks = _safe_int(row.get("clicks") or 0)
        actions = row.get("actions")
        leads = parse_lead_count(actions)

        insights.append(
            {
                "campaign_id": campaign_id,
                "ad_set_id": (row.get("adset_id") or "").strip(),
                "ad_id": (row.get("ad_id") or "").strip(),
                "metric_date": metric_date,
                "spend": spend,
                "impressions": impressions,
                "clicks": clicks,
                "leads": leads,
                "whatsapp_conversations": parse_conversation_starts(actions),
                "conversions": parse_conversion_value(actions),
            }
        )

        totals = by_date[metric_date]
        totals["spend"] += spend
        totals["leads"] += leads
        totals["impressions"] += impressions
        totals["clicks"] += clicks

    daily_totals = [{"metric_date": d, **agg} for d, agg in by_date.items()]
    return {"insights": insights, "daily_totals": daily_totals}


def parse_balance_override(raw: Optional[str]) -> Optional[float]:
    """Manual available-balance override, in major units ("3025" or "3025,50")."""
    if raw is None or not raw.strip():
        return None
    try:
        value = float(raw.strip().replace(",", "."))
    except ValueError:
        return None
    if not math.isfinite(value) or value < 0:
        return None
    return value


def _optional_number(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def build_budget(raw: Dict[str, Any], override: Optional[float] = None) -> BudgetResponse:
    """Convert a raw account payload into display units and derive availability.

    ``balance`` is the bill amount due, not available credit; it is only the
    last resort for ``available``.
    """
    amount_spent = _safe_float(raw.get("amount_spent")) / MINOR_UNITS
    balance = _optional_number(raw.get("balance"))
    spend_cap = _optional_number(raw.get("spend_cap"))
    funding = parse_funding_source_amount(raw.get("funding_source_details"))

    balance = balance / MINOR_UNITS if balance is not None else None
    spend_cap = spend_cap / MINOR_UNITS if spend_cap is not None else None
    from_funding = funding / MINOR_UNITS if funding is not None else None

    remaining_from_cap = (
        max(0.0, spend_cap - amount_spent) if spend_cap is not None and spend_cap > 0 else None
    )

    if override is not None:
        available = override
    elif remaining_from_cap is not None:
        available = remaining_from_cap
    elif from_funding is not None:
        available = from_funding
    else:
        available = balance

    return BudgetResponse(
        amount_spent=amount_spent,
        balance=balance,
        spend_cap=spend_cap,
        currency=raw.get("currency") or "BRL",
        is_prepay_account=raw.get("is_prepay_account") is True,
        funding_source_amount=from_funding,
        available=available,
    )
