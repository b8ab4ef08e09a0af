"""LeadBoard — Central Configuration via Pydantic Settings."""

import os
from typing import Optional
from urllib.parse import quote_plus

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env file."""

    # ── Database ──
    database_url: str = ""
    db_host: str = ""
    db_port: int = 5432
    db_name: str = ""
    db_user: str = ""
    db_password: str = ""
    db_schema: Optional[str] = None  # e.g. rastreio_whats on PostgreSQL
    sqlite_fallback: bool = True

    # ── Ingestion ──
    ingestion_api_key: str = ""
    meta_sync_secret: str = ""

    # ── Meta API ──
    meta_access_token: str = ""
    meta_ad_account_id: str = ""
    meta_api_version: str = "v21.0"
    meta_base_url: str = "https://graph.facebook.com"
    meta_available_balance_override: str = ""
    meta_sync_enabled: bool = False

    # ── WhatsApp Cloud API ──
    whatsapp_business_account_id: str = ""
    whatsapp_phone_number_id_1: str = ""
    whatsapp_phone_number_id_2: str = ""

    # ── App ──
    log_level: str = "INFO"
    scheduler_enabled: bool = True
    whatsapp_sync_minutes: int = 15
    sync_min_interval_seconds: int = 60

    @property
    def has_discrete_db_config(self) -> bool:
        return bool(self.db_host and self.db_name and self.db_user and self.db_password)

    @property
    def database_configured(self) -> bool:
        """True when a real database is set, or the SQLite fallback is allowed."""
        return bool(self.database_url) or self.has_discrete_db_config or self.sqlite_fallback

    @property
    def effective_database_url(self) -> str:
        """Return the configured PostgreSQL URL, otherwise fall back to SQLite."""
        if self.database_url:
            # Heroku-style scheme is not accepted by SQLAlchemy
            if self.database_url.startswith("postgres://"):
                return "postgresql://" + self.database_url[len("postgres://"):]
            return self.database_url
        if self.has_discrete_db_config:
            return (
                f"postgresql://{quote_plus(self.db_user)}:"
                f"{quote_plus(self.db_password)}@{self.db_host}:{self.db_port}/{self.db_name}"
            )
        # Vercel has a read-only filesystem; use /tmp for SQLite
        if os.environ.get("VERCEL"):
            return "sqlite:////tmp/leadboard.db"
        return "sqlite:///./leadboard.db"

    @property
    def ingestion_secret(self) -> str:
        """Shared secret for ingestion and sync triggers (first one set wins)."""
        return (self.ingestion_api_key or self.meta_sync_secret).strip()

    @property
    def whatsapp_phone_ids(self) -> list[str]:
        ids = [self.whatsapp_phone_number_id_1, self.whatsapp_phone_number_id_2]
        return [i.strip() for i in ids if i and i.strip()]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
