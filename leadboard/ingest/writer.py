"""LeadBoard — Idempotent Upsert Writer.

Writes canonical records into ingestion_jobs, metric_snapshots, utm_metrics
and whatsapp_leads using the dialect's INSERT ... ON CONFLICT DO UPDATE.
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel
from sqlalchemy.dialects import postgresql, sqlite
from sqlmodel import Session

from leadboard.core.identity import lead_phone_hash, transaction_id
from leadboard.core.logging import get_logger
from leadboard.core.timeutil import parse_timestamp
from leadboard.ingest.normalizer import CanonicalRecord
from leadboard.models.store_models import (
    IngestionJob,
    MetricSnapshot,
    UtmMetric,
    WhatsappLead,
)

logger = get_logger("ingest.writer")

# Columns refreshed when a lead with the same identity hash arrives again.
# Message body, CTA and URL keep their first-written values.
LEAD_CONFLICT_COLUMNS = ("created_at", "source_id", "name")


class IngestResult(BaseModel):
    job_id: str
    metrics_upserted: int = 0
    utm_upserted: int = 0
    leads_upserted: int = 0


class LeadRow(BaseModel):
    """A lead ready to be upserted, from ingestion or messaging sync."""

    platform: str
    lead_name: str
    message_at: str
    source_id: Optional[str] = None
    ad_id: Optional[str] = None
    campaign_id: Optional[str] = None
    adset_id: Optional[str] = None
    message: Optional[str] = None
    cta: Optional[str] = None
    source_url: Optional[str] = None
    ctwaclid: Optional[str] = None
    source: Optional[str] = None


def dialect_insert(session: Session):
    """Pick the dialect insert that supports ON CONFLICT."""
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise RuntimeError(f"Upsert not supported for dialect {dialect!r}")


def _upsert(
    session: Session,
    model: Any,
    values: Dict[str, Any],
    conflict_cols: List[str],
    update_cols: List[str],
) -> None:
    insert = dialect_insert(session)
    stmt = insert(model).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=conflict_cols,
        set_={col: stmt.excluded[col] for col in update_cols},
    )
    session.connection().execute(stmt)


def upsert_snapshot(session: Session, record: CanonicalRecord, now: datetime) -> None:
    _upsert(
        session,
        MetricSnapshot,
        {
            "metric_date": record.metric_date,
            "platform": record.platform,
            "spend": record.spend,
            "leads": record.leads,
            "opportunities": record.opportunities,
            "sales_count": record.sales_count,
            "revenue": record.revenue,
            "source": record.source,
            "updated_at": now,
        },
        ["metric_date", "platform"],
        ["spend", "leads", "opportunities", "sales_count", "revenue", "source", "updated_at"],
    )


def upsert_utm_rows(session: Session, record: CanonicalRecord, now: datetime) -> int:
    for entry in record.utm_breakdown:
        _upsert(
            session,
            UtmMetric,
            {
                "metric_date": record.metric_date,
                "platform": record.platform,
                "utm_campaign": entry.utm_campaign,
                "leads": entry.leads,
                "source": record.source,
                "updated_at": now,
            },
            ["metric_date", "platform", "utm_campaign"],
            ["leads", "source", "updated_at"],
        )
    return len(record.utm_breakdown)


def upsert_leads(session: Session, rows: List[LeadRow], prefix: str) -> int:
    """Upsert lead rows keyed by identity hash. Does not commit."""
    now = datetime.now(timezone.utc)
    for row in rows:
        phone = lead_phone_hash(row.platform, row.lead_name, row.message_at)
        _upsert(
            session,
            WhatsappLead,
            {
                "phone": phone,
                "transaction_id": transaction_id(prefix, phone),
                "created_at": parse_timestamp(row.message_at),
                "source_id": row.source_id,
                "name": row.lead_name,
                "platform": row.platform,
                "ad_id": row.ad_id,
                "campaign_id": row.campaign_id,
                "adset_id": row.adset_id,
                "message": row.message,
                "cta": row.cta,
                "source_url": row.source_url,
                "ctwaclid": row.ctwaclid,
                "source": row.source,
                "updated_at": now,
            },
            ["phone"],
            list(LEAD_CONFLICT_COLUMNS),
        )
    return len(rows)


def lead_rows_from_record(record: CanonicalRecord) -> List[LeadRow]:
    """Map a record's lead messages to lead rows.

    Ingested leads are stored unattributed: ``source_id`` stays null so they
    never count in the ad aggregates. Creative, campaign and audience names
    are kept only in the ingestion job payload.
    """
    return [
        LeadRow(
            platform=record.platform,
            lead_name=msg.lead_name,
            message_at=msg.message_at,
            source=record.source,
        )
        for msg in record.lead_messages
    ]


def write_batch(
    session: Session, records: List[CanonicalRecord], raw_body: Any
) -> IngestResult:
    """Persist a normalized batch in one transaction.

    The audit row reflects the raw body. On any failure everything written
    by this call is rolled back and the error re-raised.
    """
    now = datetime.now(timezone.utc)
    try:
        job = IngestionJob(
            source=records[0].source if records else "unknown",
            payload=json.dumps(raw_body),
            status="received",
        )
        session.add(job)
        session.flush()
        if not job.id:
            raise RuntimeError("Failed to insert ingestion_jobs row.")

        utm_count = 0
        lead_count = 0
        for record in records:
            upsert_snapshot(session, record, now)
            utm_count += upsert_utm_rows(session, record, now)
        for record in records:
            lead_count += upsert_leads(session, lead_rows_from_record(record), "ingest")

        job.status = "processed"
        session.add(job)
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(
        f"Ingested {len(records)} records ({utm_count} utm, {lead_count} leads)",
        extra={"job_id": job.id},
    )
    return IngestResult(
        job_id=job.id,
        metrics_upserted=len(records),
        utm_upserted=utm_count,
        leads_upserted=lead_count,
    )


def upsert_daily_totals(
    session: Session, platform: str, totals: List[Dict[str, Any]], source: str
) -> int:
    """Refresh spend and leads of snapshot rows from API daily totals.

    Other snapshot measures keep whatever ingestion last wrote. Does not
    commit.
    """
    now = datetime.now(timezone.utc)
    for day in totals:
        _upsert(
            session,
            MetricSnapshot,
            {
                "metric_date": day["metric_date"],
                "platform": platform,
                "spend": float(day.get("spend") or 0),
                "leads": float(day.get("leads") or 0),
                "source": source,
                "updated_at": now,
            },
            ["metric_date", "platform"],
            ["spend", "leads", "source", "updated_at"],
        )
    return len(totals)
