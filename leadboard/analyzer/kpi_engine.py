"""LeadBoard — KPI Engine.

Derived ratios shared by the aggregation endpoints:
CPL, CTR, CPC, CPM and cost per result.
"""

from typing import Optional


def cost_per_lead(spend: float, leads: float) -> Optional[float]:
    """Spend / leads, or None when there are no leads."""
    return spend / leads if leads > 0 else None


def cost_per_result(spend: float, results: float) -> float:
    return spend / results if results > 0 else 0.0


def ctr(clicks: float, impressions: float) -> float:
    """Click-through rate in percent."""
    return round(clicks / impressions * 100, 4) if impressions > 0 else 0.0


def cpc(spend: float, clicks: float) -> float:
    return round(spend / clicks, 4) if clicks > 0 else 0.0


def cpm(spend: float, impressions: float) -> float:
    """Cost per thousand impressions."""
    return round(spend / impressions * 1000, 4) if impressions > 0 else 0.0
