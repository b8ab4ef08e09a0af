"""LeadBoard — Dashboard Periods.

Date ranges for the dashboard's period selectors and the lead modal's
filters. All dates are regional.
"""

from collections import Counter
from datetime import date, timedelta
from typing import Iterable, List, Optional, Tuple

from leadboard.core.timeutil import today_local

EMPTY_LABEL = "--"


def general_period_range(
    period: Optional[str], today: Optional[date] = None
) -> Optional[Tuple[date, date]]:
    """Range for a card period; None means "all loaded days".

    Unknown periods fall back to the last 3 days.
    """
    if not period or period == "all":
        return None
    today = today or today_local()
    if period == "este_mes":
        return today.replace(day=1), today
    if period == "14dias":
        return today - timedelta(days=13), today
    if period == "7dias":
        return today - timedelta(days=6), today
    return today - timedelta(days=2), today


def lead_period_range(
    period: Optional[str], today: Optional[date] = None
) -> Optional[Tuple[date, date]]:
    """Range for a lead-modal period; None for "maximo" (no filter)."""
    if not period or period == "maximo":
        return None
    today = today or today_local()
    if period == "hoje":
        return today, today
    if period == "ontem":
        yesterday = today - timedelta(days=1)
        return yesterday, yesterday
    if period == "3dias":
        return today - timedelta(days=2), today
    if period == "7dias":
        return today - timedelta(days=6), today
    raise ValueError(f"Unknown lead period: {period}")


def count_by_field(values: Iterable[Optional[str]]) -> List[dict]:
    """Lead counts per label, blanks grouped as "--", most frequent first."""
    counts = Counter((v or "").strip() or EMPTY_LABEL for v in values)
    return [
        {"name": name, "quantity": qty}
        for name, qty in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
    ]
