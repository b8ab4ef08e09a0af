from datetime import datetime, timedelta, timezone

from leadboard.core.throttle import try_acquire
from leadboard.models.store_models import SyncThrottle

NOW = datetime(2024, 5, 1, 12, 0, 0)


def test_first_trigger_is_allowed(session):
    assert try_acquire(session, "sync", 60, now=NOW) is True


def test_second_trigger_inside_interval_is_refused(session):
    assert try_acquire(session, "sync", 60, now=NOW)
    assert try_acquire(session, "sync", 60, now=NOW + timedelta(seconds=59)) is False
    assert try_acquire(session, "sync", 60, now=NOW + timedelta(seconds=60)) is True


def test_names_are_independent(session):
    assert try_acquire(session, "a", 60, now=NOW)
    assert try_acquire(session, "b", 60, now=NOW)


def test_refusal_keeps_previous_timestamp(session):
    assert try_acquire(session, "sync", 60, now=NOW)
    assert not try_acquire(session, "sync", 60, now=NOW + timedelta(seconds=30))
    # still measured from NOW, not from the refused attempt
    assert try_acquire(session, "sync", 60, now=NOW + timedelta(seconds=61))


def test_default_clock_stores_naive_utc(session):
    assert try_acquire(session, "sync", 60)

    row = session.get(SyncThrottle, "sync")
    assert row.last_triggered_at.tzinfo is None
    assert abs(row.last_triggered_at - datetime.now(timezone.utc).replace(tzinfo=None)) < timedelta(minutes=1)
