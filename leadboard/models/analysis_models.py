"""LeadBoard — API Response Schemas."""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel


# ─────────────────────────────────────────────
# DAILY SERIES
# ─────────────────────────────────────────────


class DailyPoint(BaseModel):
    """Spend and leads for one calendar day."""

    date: str
    spend: float = 0.0
    leads: int = 0
    cpl: Optional[float] = None


class DailySeriesResponse(BaseModel):
    daily: List[DailyPoint] = []


# ─────────────────────────────────────────────
# PERIOD SUMMARY
# ─────────────────────────────────────────────


class PeriodAggregate(BaseModel):
    """Totals for one window ("today" or the whole range)."""

    spend: float = 0.0
    leads: float = 0.0
    opportunities: float = 0.0
    sales_count: float = 0.0
    revenue: float = 0.0
    cost_per_result: float = 0.0
    impressions: float = 0.0
    inline_link_clicks: float = 0.0
    actions: float = 0.0


class MetricsResponse(BaseModel):
    today: PeriodAggregate = PeriodAggregate()
    total: PeriodAggregate = PeriodAggregate()
    platform: str = "meta"
    date_from: Optional[str] = None
    date_to: Optional[str] = None
    objective: str = "ENGAGEMENT"
    status: str = "ACTIVE"


# ─────────────────────────────────────────────
# BREAKDOWNS
# ─────────────────────────────────────────────


class BreakdownItem(BaseModel):
    """One campaign / ad set / ad group."""

    id: str
    name: str
    quantity: int = 0
    spend: float = 0.0
    impressions: int = 0
    clicks: int = 0


class InsightsResponse(BaseModel):
    level: str
    items: List[BreakdownItem] = []
    date_from: Optional[str] = None
    date_to: Optional[str] = None
    objective: str = "ENGAGEMENT"
    status: str = "ACTIVE"


class InsightDetailResponse(BaseModel):
    level: str
    id: str
    spend: float = 0.0
    impressions: int = 0
    clicks: int = 0
    leads: int = 0
    conversions: int = 0
    ctr: float = 0.0
    cpc: float = 0.0
    cpm: float = 0.0
    date_from: Optional[str] = None
    date_to: Optional[str] = None


class Champions(BaseModel):
    """Lowest-CPL group per level ("N/A" when no group has leads)."""

    creative: str = "N/A"
    campaign: str = "N/A"
    adset: str = "N/A"


# ─────────────────────────────────────────────
# LEADS
# ─────────────────────────────────────────────


class LeadItem(BaseModel):
    name: Optional[str] = None
    last_name: Optional[str] = None
    created_at: str
    source_id: Optional[str] = None
    ctwaclid: Optional[str] = None
    platform: Optional[str] = None
    message: Optional[str] = None
    cta: Optional[str] = None
    source_url: Optional[str] = None
    campaign: Optional[str] = None
    adset: Optional[str] = None
    creative: Optional[str] = None


class LeadsResponse(BaseModel):
    date: str
    platform: str
    period: Optional[str] = None
    total_conversations: int = 0
    items: List[LeadItem] = []
    counts: Dict[str, List[Dict[str, Any]]] = {}


# ─────────────────────────────────────────────
# BUDGET
# ─────────────────────────────────────────────


class BudgetResponse(BaseModel):
    """Ad account budget in major currency units."""

    amount_spent: float = 0.0
    balance: Optional[float] = None
    spend_cap: Optional[float] = None
    currency: str = "BRL"
    is_prepay_account: bool = False
    funding_source_amount: Optional[float] = None
    available: Optional[float] = None


# ─────────────────────────────────────────────
# DASHBOARD
# ─────────────────────────────────────────────


class PeriodTotals(BaseModel):
    spend: float = 0.0
    leads: int = 0
    cost_per_result: float = 0.0


class DashboardOverview(BaseModel):
    """Everything the dashboard cards need for one period."""

    period: str
    date_from: Optional[str] = None
    date_to: Optional[str] = None
    daily: List[DailyPoint] = []
    best_day: Optional[DailyPoint] = None
    worst_day: Optional[DailyPoint] = None
    max_spend_day: Optional[DailyPoint] = None
    totals: PeriodTotals = PeriodTotals()
    champions: Champions = Champions()
