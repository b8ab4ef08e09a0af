"""LeadBoard — Scheduler Jobs.

APScheduler interval job that keeps today's WhatsApp leads current.
"""

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlmodel import Session

from leadboard.config import settings
from leadboard.connectors.whatsapp.sync import run_whatsapp_sync
from leadboard.database import engine
from leadboard.core.logging import get_logger

logger = get_logger("scheduler")

scheduler = AsyncIOScheduler()


async def whatsapp_sync_job():
    """Sync today's inbound messages."""
    logger.info("Scheduled WhatsApp sync starting...")
    try:
        with Session(engine) as session:
            result = await run_whatsapp_sync(session)
        logger.info(f"Scheduled WhatsApp sync complete: {result['inserted']} leads")
    except Exception as e:
        logger.error(f"Scheduled WhatsApp sync failed: {e}")


def start_scheduler():
    """Configure and start the scheduler."""
    if not settings.scheduler_enabled:
        logger.info("Scheduler disabled via config")
        return
    if not settings.whatsapp_phone_ids:
        logger.info("Scheduler idle: no WhatsApp phone number configured")
        return

    scheduler.add_job(
        whatsapp_sync_job,
        "interval",
        minutes=settings.whatsapp_sync_minutes,
        id="whatsapp_sync",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    scheduler.start()
    logger.info(f"Scheduler started. WhatsApp sync every {settings.whatsapp_sync_minutes} min")


def stop_scheduler():
    """Shutdown the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
