from datetime import date, datetime

from sqlalchemy import column

import leadboard.analyzer.summary_engine as summary_engine
from leadboard.analyzer.summary_engine import compute_summary, sum_ad_column
from leadboard.models.store_models import AdSpend, WhatsappLead

DAY = date(2024, 5, 1)


def _seed(session):
    session.add_all(
        [
            AdSpend(source_id="ad1", spend_date=DAY, spend=30, impressions=1000, link_clicks=5, conversations_started=3),
            AdSpend(source_id="ad2", spend_date=DAY, spend=20, impressions=500, link_clicks=2, conversations_started=2),
            WhatsappLead(phone="p1", transaction_id="t1", source_id="ad1", created_at=datetime(2024, 5, 1, 9)),
            WhatsappLead(phone="p2", transaction_id="t2", source_id=None, created_at=datetime(2024, 5, 1, 10)),
        ]
    )
    session.commit()


def test_today_and_total_from_ad_rows(session):
    _seed(session)
    today, total = compute_summary(session, DAY, date_from=DAY, date_to=DAY)

    assert today.spend == 50.0
    assert today.leads == 1
    assert total.impressions == 1500
    assert total.inline_link_clicks == 7
    assert total.actions == 5
    assert total.cost_per_result == 10.0


def test_failing_column_reads_zero_and_others_survive(session, monkeypatch):
    _seed(session)
    monkeypatch.setitem(summary_engine.AD_COLUMNS, "impressions", column("no_such_column"))

    assert sum_ad_column(session, "impressions", DAY, DAY) == 0.0

    _, total = compute_summary(session, DAY, date_from=DAY, date_to=DAY)
    assert total.impressions == 0.0
    assert total.spend == 50.0
    assert total.inline_link_clicks == 7
    assert total.actions == 5
    assert total.leads == 1
