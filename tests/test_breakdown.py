from datetime import date, datetime

import pytest

from leadboard.analyzer.breakdown_engine import (
    breakdown_by_level,
    choose_champion,
    compute_champions,
    compute_item_detail,
)
from leadboard.models.analysis_models import BreakdownItem
from leadboard.models.store_models import AdSpend, WhatsappLead

MAY_1 = date(2024, 5, 1)
MAY_2 = date(2024, 5, 2)


def _ad(source_id, day, campaign, spend, adset="Set", ad="Ad", impressions=0, clicks=0):
    return AdSpend(
        source_id=source_id,
        spend_date=day,
        campaign_name=campaign,
        adset_name=adset,
        ad_name=ad,
        spend=spend,
        impressions=impressions,
        link_clicks=clicks,
    )


def test_champion_is_lowest_cost_per_lead():
    items = [
        BreakdownItem(id="A", name="A", spend=100, quantity=10),
        BreakdownItem(id="B", name="B", spend=40, quantity=8),
    ]
    assert choose_champion(items) == "B"


def test_champion_tie_goes_to_more_leads():
    items = [
        BreakdownItem(id="A", name="A", spend=50, quantity=5),
        BreakdownItem(id="B", name="B", spend=100, quantity=10),
    ]
    assert choose_champion(items) == "B"


def test_no_leads_means_no_champion():
    assert choose_champion([BreakdownItem(id="A", name="A", spend=10)]) == "N/A"
    assert choose_champion([]) == "N/A"


def test_breakdown_groups_by_name_and_counts_soft_join():
    rows = [
        _ad("ad1", MAY_1, " Spring ", 30, impressions=100, clicks=4),
        _ad("ad2", MAY_1, "Spring", 20, impressions=50, clicks=1),
        _ad("ad3", MAY_1, "Summer", 70),
        _ad("ad4", MAY_1, "   ", 5),
    ]
    keys = {("ad1", MAY_1), ("ad2", MAY_1), ("ad1", MAY_2), ("missing", MAY_1)}

    items = breakdown_by_level(rows, keys, "campaign")

    assert [i.name for i in items] == ["Summer", "Spring"]
    spring = items[1]
    assert spring.spend == 50
    assert spring.impressions == 150
    assert spring.clicks == 5
    # the ad1 lead on May 2 has no ad row that day
    assert spring.quantity == 2
    assert items[0].quantity == 0


def test_equal_spend_orders_by_name():
    rows = [_ad("a", MAY_1, "Beta", 10), _ad("b", MAY_1, "Alpha", 10)]
    assert [i.name for i in breakdown_by_level(rows, [], "campaign")] == ["Alpha", "Beta"]


def test_unknown_level_raises():
    with pytest.raises(ValueError):
        breakdown_by_level([], [], "account")


def _lead(phone, source_id, created_at):
    return WhatsappLead(phone=phone, transaction_id=f"t-{phone}", source_id=source_id, created_at=created_at)


def test_champions_and_detail_from_store(session):
    session.add_all(
        [
            _ad("ad1", MAY_1, "Spring", 100, adset="S1", ad="Creative A", impressions=1000, clicks=50),
            _ad("ad2", MAY_1, "Summer", 40, adset="S2", ad="Creative B", impressions=400, clicks=10),
            _lead("p1", "ad1", datetime(2024, 5, 1, 9)),
            _lead("p2", "ad2", datetime(2024, 5, 1, 10)),
            _lead("p3", "ad2", datetime(2024, 5, 1, 23, 59)),
            _lead("p4", "ad2", datetime(2024, 5, 2, 0, 1)),
        ]
    )
    session.commit()

    champions = compute_champions(session, MAY_1, MAY_1)
    assert champions.campaign == "Summer"
    assert champions.adset == "S2"
    assert champions.creative == "Creative B"

    detail = compute_item_detail(session, "campaign", "Spring", MAY_1, MAY_1)
    assert detail.spend == 100
    assert detail.leads == 1
    assert detail.ctr == 5.0
    assert detail.cpc == 2.0
    assert detail.cpm == 100.0


def test_detail_for_unknown_name_is_zeroed(session):
    detail = compute_item_detail(session, "ad", "Nothing")
    assert detail.spend == 0
    assert detail.leads == 0
    assert detail.ctr == 0.0
