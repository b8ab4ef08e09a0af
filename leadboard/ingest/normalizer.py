"""LeadBoard — Ingestion Record Normalizer.

Validates and coerces inbound payloads from the automation tool into
canonical records before anything touches the database. A batch is
accepted whole or rejected whole.
"""

import math
import re
from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel

from leadboard.core.timeutil import parse_timestamp

DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
MEASURE_FIELDS = ("spend", "leads", "opportunities", "sales_count", "revenue")


class IngestValidationError(ValueError):
    """Raised when an inbound record fails validation."""


class UtmEntry(BaseModel):
    utm_campaign: str
    leads: float


class LeadMessage(BaseModel):
    lead_name: str
    message_at: str
    ad_creative: Optional[str] = None
    campaign_name: Optional[str] = None
    audience: Optional[str] = None


class CanonicalRecord(BaseModel):
    """One validated ingestion record."""

    source: str
    metric_date: str
    platform: str
    spend: float = 0.0
    leads: float = 0.0
    opportunities: float = 0.0
    sales_count: float = 0.0
    revenue: float = 0.0
    utm_breakdown: List[UtmEntry] = []
    lead_messages: List[LeadMessage] = []


def normalize_number(value: Any, field: str) -> float:
    """Coerce a JSON value to a finite float; missing counts as zero."""
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            raise IngestValidationError(f"Invalid number for {field}.")
    elif isinstance(value, str):
        text = value.strip()
        try:
            number = float(text) if text else 0.0
        except ValueError:
            raise IngestValidationError(f"Invalid number for {field}.")
    else:
        raise IngestValidationError(f"Invalid number for {field}.")
    if not math.isfinite(number):
        raise IngestValidationError(f"Invalid number for {field}.")
    return number


def _is_valid_date(value: Any) -> bool:
    if not isinstance(value, str) or not DATE_RE.match(value):
        return False
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        return False
    return True


def _nonblank(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _optional_str(value: Any) -> Optional[str]:
    return value.strip() if isinstance(value, str) else None


def _normalize_utm(items: Any) -> List[UtmEntry]:
    if not isinstance(items, list):
        return []
    entries = []
    for item in items:
        if not isinstance(item, dict) or not _nonblank(item.get("utm_campaign")):
            continue
        entries.append(
            UtmEntry(
                utm_campaign=item["utm_campaign"].strip(),
                leads=normalize_number(item.get("leads"), "utm_breakdown.leads"),
            )
        )
    return entries


def _normalize_messages(items: Any) -> List[LeadMessage]:
    if not isinstance(items, list):
        return []
    messages = []
    for item in items:
        if not isinstance(item, dict):
            continue
        if not (_nonblank(item.get("lead_name")) and _nonblank(item.get("message_at"))):
            continue
        try:
            parse_timestamp(item["message_at"])
        except ValueError:
            raise IngestValidationError("lead_messages.message_at must be an ISO 8601 timestamp.")
        messages.append(
            LeadMessage(
                lead_name=item["lead_name"].strip(),
                message_at=item["message_at"].strip(),
                ad_creative=_optional_str(item.get("ad_creative")),
                campaign_name=_optional_str(item.get("campaign_name")),
                audience=_optional_str(item.get("audience")),
            )
        )
    return messages


def normalize_record(record: Any) -> CanonicalRecord:
    """Validate one raw record and return its canonical form."""
    if not isinstance(record, dict):
        raise IngestValidationError("Record must be an object.")
    if not _is_valid_date(record.get("metric_date")):
        raise IngestValidationError("metric_date must be in YYYY-MM-DD format.")
    if not _nonblank(record.get("platform")):
        raise IngestValidationError("platform is required.")

    source = record.get("source")
    measures = {f: normalize_number(record.get(f), f) for f in MEASURE_FIELDS}

    return CanonicalRecord(
        source=source.strip() if _nonblank(source) else "unknown",
        metric_date=record["metric_date"],
        platform=record["platform"].strip(),
        utm_breakdown=_normalize_utm(record.get("utm_breakdown")),
        lead_messages=_normalize_messages(record.get("lead_messages")),
        **measures,
    )


def extract_records(body: Any) -> List[Any]:
    """Unwrap a body that is a record, an array, or ``{"records": [...]}``."""
    if isinstance(body, list):
        return body
    if isinstance(body, dict) and isinstance(body.get("records"), list):
        return body["records"]
    return [body]


def normalize_batch(body: Any) -> List[CanonicalRecord]:
    """Normalize every record in a body; any failure rejects the batch."""
    raw_records = extract_records(body)
    if not raw_records:
        raise IngestValidationError("No records found.")
    return [normalize_record(item) for item in raw_records]
