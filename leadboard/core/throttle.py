"""LeadBoard — Store-backed Trigger Throttle.

A named action may fire at most once per interval across every running
instance. The claim is a single conditional UPDATE, so two instances racing
for the same slot cannot both win.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import update
from sqlmodel import Session

from leadboard.core.logging import get_logger
from leadboard.ingest.writer import dialect_insert
from leadboard.models.store_models import SyncThrottle

logger = get_logger("core.throttle")

NEVER = datetime(1970, 1, 1)


def _utcnow_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def try_acquire(
    session: Session, name: str, min_interval_seconds: int, now: Optional[datetime] = None
) -> bool:
    """Claim ``name`` if it last fired at least ``min_interval_seconds`` ago.

    Times are naive UTC. Commits on both outcomes.
    """
    now = now or _utcnow_naive()
    insert = dialect_insert(session)
    seed = insert(SyncThrottle).values(name=name, last_triggered_at=NEVER)
    session.connection().execute(seed.on_conflict_do_nothing(index_elements=["name"]))

    cutoff = now - timedelta(seconds=min_interval_seconds)
    result = session.connection().execute(
        update(SyncThrottle)
        .where(SyncThrottle.name == name)
        .where(SyncThrottle.last_triggered_at <= cutoff)
        .values(last_triggered_at=now)
    )
    session.commit()

    acquired = result.rowcount == 1
    if not acquired:
        logger.info(f"Throttled {name}: fired less than {min_interval_seconds}s ago")
    return acquired
