"""LeadBoard — Relational Store Models.

All tables live under one optional schema namespace (``DB_SCHEMA``).
"""

from datetime import date, datetime, timezone
from typing import Optional
from uuid import uuid4

from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field, UniqueConstraint

from leadboard.config import settings

# SQLite has no schemas; DB_SCHEMA only applies to PostgreSQL
_USES_SCHEMA = not settings.effective_database_url.startswith("sqlite")
SCHEMA_ARGS = {"schema": settings.db_schema if _USES_SCHEMA else None}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IngestionJob(SQLModel, table=True):
    """Audit record of one inbound batch.

    Only the status transition received → processed is ever written after
    the insert.
    """

    __tablename__ = "ingestion_jobs"
    __table_args__ = SCHEMA_ARGS

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    source: str = Field(default="unknown")
    payload: str = Field(description="Raw request body as JSON")
    status: str = Field(default="received", description="received | processed")
    created_at: datetime = Field(default_factory=_utcnow)


class MetricSnapshot(SQLModel, table=True):
    """One aggregate row per (metric_date, platform)."""

    __tablename__ = "metric_snapshots"
    __table_args__ = (
        UniqueConstraint("metric_date", "platform", name="uq_metric_snapshot"),
        SCHEMA_ARGS,
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    metric_date: str = Field(index=True, description="YYYY-MM-DD")
    platform: str = Field(index=True)
    spend: float = 0.0
    leads: float = 0.0
    opportunities: float = 0.0
    sales_count: float = 0.0
    revenue: float = 0.0
    source: str = Field(default="unknown")
    updated_at: datetime = Field(default_factory=_utcnow)


class UtmMetric(SQLModel, table=True):
    """Lead count per (metric_date, platform, utm_campaign)."""

    __tablename__ = "utm_metrics"
    __table_args__ = (
        UniqueConstraint("metric_date", "platform", "utm_campaign", name="uq_utm_metric"),
        SCHEMA_ARGS,
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    metric_date: str = Field(index=True, description="YYYY-MM-DD")
    platform: str = Field(index=True)
    utm_campaign: str
    leads: float = 0.0
    source: str = Field(default="unknown")
    updated_at: datetime = Field(default_factory=_utcnow)


class WhatsappLead(SQLModel, table=True):
    """One inbound lead message.

    ``phone`` is the identity hash, not a real number. Only rows with a
    ``source_id`` (the ad id) count as leads in the aggregates.
    """

    __tablename__ = "whatsapp_leads"
    __table_args__ = SCHEMA_ARGS

    phone: str = Field(primary_key=True, max_length=15)
    transaction_id: str
    created_at: datetime = Field(
        index=True, sa_type=DateTime, description="Message time, naive regional"
    )
    source_id: Optional[str] = Field(default=None, index=True)
    name: Optional[str] = None
    last_name: Optional[str] = None
    platform: Optional[str] = Field(default=None, index=True)
    ad_id: Optional[str] = None
    campaign_id: Optional[str] = None
    adset_id: Optional[str] = None
    message: Optional[str] = None
    cta: Optional[str] = None
    source_url: Optional[str] = None
    ctwaclid: Optional[str] = None
    source: Optional[str] = None
    updated_at: datetime = Field(default_factory=_utcnow)


class AdSpend(SQLModel, table=True):
    """Daily ad-level spend, populated by an external job.

    Read-only from this service's point of view.
    """

    __tablename__ = "facebook_ads"
    __table_args__ = SCHEMA_ARGS

    id: Optional[int] = Field(default=None, primary_key=True)
    source_id: Optional[str] = Field(default=None, index=True, description="Meta ad id")
    spend_date: date = Field(index=True)
    campaign_name: Optional[str] = None
    adset_name: Optional[str] = None
    ad_name: Optional[str] = None
    spend: float = 0.0
    impressions: int = 0
    link_clicks: int = 0
    conversations_started: int = 0


class SyncThrottle(SQLModel, table=True):
    """Last trigger time of a rate-limited action, shared by all instances."""

    __tablename__ = "sync_throttle"
    __table_args__ = SCHEMA_ARGS

    name: str = Field(primary_key=True)
    last_triggered_at: datetime = Field(sa_type=DateTime, description="Naive UTC")
