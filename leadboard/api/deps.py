"""LeadBoard — Shared Route Dependencies."""

from typing import Optional

from fastapi import Header, HTTPException

from leadboard.config import settings


def require_ingestion_key(
    x_ingestion_key: Optional[str] = Header(default=None, alias="x-ingestion-key"),
) -> None:
    """Check the shared secret, when one is configured."""
    expected = settings.ingestion_secret
    if not expected:
        return
    if (x_ingestion_key or "").strip() != expected:
        raise HTTPException(status_code=401, detail="Unauthorized.")


def require_database() -> None:
    if not settings.database_configured:
        raise HTTPException(status_code=503, detail="Database connection is not configured.")
