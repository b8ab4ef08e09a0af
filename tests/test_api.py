import uuid
from datetime import date, datetime

from sqlmodel import Session, select

from leadboard.models.store_models import AdSpend, IngestionJob, MetricSnapshot, WhatsappLead

SCENARIO = {"metric_date": "2024-05-01", "platform": "meta", "spend": "150.5", "leads": 3}


# ── Ingestion ──


def test_ingest_scenario(client, engine):
    resp = client.post("/api/ingest", json=SCENARIO)

    assert resp.status_code == 200
    body = resp.json()
    assert body["ok"] is True
    assert body["metrics_upserted"] == 1
    assert body["utm_upserted"] == 0
    uuid.UUID(body["job_id"])

    with Session(engine) as session:
        snapshot = session.exec(select(MetricSnapshot)).one()
    assert (snapshot.metric_date, snapshot.platform, snapshot.spend, snapshot.leads) == (
        "2024-05-01",
        "meta",
        150.5,
        3.0,
    )


def test_ingest_requires_key_when_configured(client, clean_settings, monkeypatch):
    monkeypatch.setattr(clean_settings, "ingestion_api_key", "s3cret")

    assert client.post("/api/ingest", json=SCENARIO).status_code == 401
    wrong = client.post("/api/ingest", json=SCENARIO, headers={"x-ingestion-key": "nope"})
    assert wrong.status_code == 401
    assert wrong.json()["detail"] == "Unauthorized."
    ok = client.post("/api/ingest", json=SCENARIO, headers={"x-ingestion-key": "s3cret"})
    assert ok.status_code == 200


def test_ingest_rejects_bad_json(client):
    resp = client.post(
        "/api/ingest", content="{not json", headers={"content-type": "application/json"}
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Invalid JSON body."


def test_ingest_bad_date_writes_nothing(client, engine):
    body = {"records": [SCENARIO, {"metric_date": "2024-13-40", "platform": "meta"}]}
    resp = client.post("/api/ingest", json=body)

    assert resp.status_code == 400
    assert resp.json()["detail"] == "metric_date must be in YYYY-MM-DD format."
    with Session(engine) as session:
        assert session.exec(select(MetricSnapshot)).all() == []
        assert session.exec(select(IngestionJob)).all() == []


def test_ingest_rejects_oversized_number(client, engine):
    resp = client.post(
        "/api/ingest",
        content='{"metric_date":"2024-05-01","platform":"meta","spend":1' + "0" * 400 + "}",
        headers={"content-type": "application/json"},
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Invalid number for spend."
    with Session(engine) as session:
        assert session.exec(select(MetricSnapshot)).all() == []


def test_ingest_without_database(client, clean_settings, monkeypatch):
    monkeypatch.setattr(clean_settings, "sqlite_fallback", False)
    monkeypatch.setattr(clean_settings, "database_url", "")
    monkeypatch.setattr(clean_settings, "db_host", "")
    resp = client.post("/api/ingest", json=SCENARIO)
    assert resp.status_code == 503
    assert resp.json()["detail"] == "Database connection is not configured."


# ── Cross-cutting ──


def test_responses_are_not_cacheable(client):
    assert client.get("/health").headers["cache-control"] == "no-store, max-age=0"
    assert client.get("/api/metrics/daily").headers["cache-control"] == "no-store, max-age=0"
    assert client.post("/api/meta/sync").headers["cache-control"] == "no-store, max-age=0"


def test_connection_test(client):
    resp = client.get("/api/db/connection-test")
    assert resp.json() == {"postgres": {"ok": True, "configured": True}}


# ── Leads ──


def _seed_leads(engine):
    with Session(engine) as session:
        session.add_all(
            [
                AdSpend(
                    source_id="ad1",
                    spend_date=date(2024, 5, 1),
                    campaign_name="Spring",
                    adset_name="Women 25-34",
                    ad_name="Video A",
                    spend=40,
                ),
                AdSpend(source_id="ad2", spend_date=date(2024, 5, 1), campaign_name="X", spend=1),
                AdSpend(source_id="ad2", spend_date=date(2024, 5, 1), campaign_name="Y", spend=1),
                WhatsappLead(
                    phone="p1",
                    transaction_id="t1",
                    source_id="ad1",
                    name="Ana",
                    platform="meta",
                    created_at=datetime(2024, 5, 1, 10),
                ),
                WhatsappLead(
                    phone="p2",
                    transaction_id="t2",
                    source_id="ad2",
                    name="Bia",
                    platform="meta",
                    created_at=datetime(2024, 5, 1, 11),
                ),
                WhatsappLead(
                    phone="p3",
                    transaction_id="t3",
                    source_id=None,
                    name="Caio",
                    platform="meta",
                    created_at=datetime(2024, 5, 1, 12),
                ),
                WhatsappLead(
                    phone="p4",
                    transaction_id="t4",
                    source_id="ad1",
                    name="Duda",
                    platform="google",
                    created_at=datetime(2024, 5, 2, 9),
                ),
            ]
        )
        session.commit()


def test_leads_for_a_day(client, engine):
    _seed_leads(engine)
    body = client.get("/api/leads", params={"platform": "meta", "date": "2024-05-01"}).json()

    assert body["date"] == "2024-05-01"
    assert body["platform"] == "meta"
    assert body["total_conversations"] == 2
    bia, ana = body["items"]
    assert ana["name"] == "Ana"
    assert ana["campaign"] == "Spring"
    assert ana["adset"] == "Women 25-34"
    assert ana["creative"] == "Video A"
    assert ana["created_at"] == "2024-05-01T10:00:00-03:00"
    # two differently named ad rows share Bia's key
    assert bia["campaign"] is None
    assert body["counts"]["campaign"] == [
        {"name": "--", "quantity": 1},
        {"name": "Spring", "quantity": 1},
    ]


def test_all_leads_any_platform(client, engine):
    _seed_leads(engine)
    body = client.get("/api/leads", params={"platform": "all", "date": "all"}).json()
    assert body["date"] == "all"
    assert body["platform"] == "all"
    assert [i["name"] for i in body["items"]] == ["Duda", "Bia", "Ana"]


def test_leads_rejects_bad_filters(client):
    assert client.get("/api/leads", params={"period": "semana"}).status_code == 400
    assert client.get("/api/leads", params={"date": "01/05/2024"}).status_code == 400


# ── Metrics ──


def test_metrics_only_meta(client):
    resp = client.get("/api/metrics", params={"platform": "google"})
    assert resp.status_code == 400


def test_metrics_totals(client, engine):
    _seed_leads(engine)
    body = client.get(
        "/api/metrics",
        params={"date_from": "2024-05-01", "date_to": "2024-05-01", "objective": "all", "status": "all"},
    ).json()
    assert body["objective"] == "ALL"
    assert body["total"]["leads"] == 2
    assert body["total"]["spend"] == 42


def test_daily_metrics_shape(client, engine):
    _seed_leads(engine)
    body = client.get("/api/metrics/daily", params={"days": "400"}).json()
    assert "daily" in body
    for point in body["daily"]:
        assert set(point) == {"date", "spend", "leads", "cpl"}


def test_dashboard_overview(client, engine):
    _seed_leads(engine)
    body = client.get("/api/dashboard/overview", params={"period": "all"}).json()
    assert body["period"] == "all"
    assert body["date_from"] is None
    assert set(body["champions"]) == {"creative", "campaign", "adset"}


# ── Meta ──


def test_budget_needs_credentials(client):
    resp = client.get("/api/meta/budget")
    assert resp.status_code == 503


def test_insights_breakdown(client, engine):
    _seed_leads(engine)
    body = client.get(
        "/api/meta/insights",
        params={"level": "campaign", "date_from": "2024-05-01", "date_to": "2024-05-01"},
    ).json()
    assert body["level"] == "campaign"
    assert body["items"][0]["name"] == "Spring"
    assert body["items"][0]["quantity"] == 1
    assert client.get("/api/meta/insights", params={"level": "account"}).json()["items"] == []


def test_insight_detail_requires_id(client):
    resp = client.get("/api/meta/insights/detail", params={"level": "campaign"})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Missing id."


def test_meta_sync_disabled(client):
    assert client.post("/api/meta/sync").status_code == 501


def test_sync_now_is_throttled(client):
    first = client.post("/api/meta/sync-now")
    assert first.status_code == 200
    body = first.json()
    assert body["meta"]["disabled"] is True
    assert body["whatsapp"]["error"] == "META_ACCESS_TOKEN not set"

    second = client.post("/api/meta/sync-now")
    assert second.status_code == 429
    assert second.json()["detail"] == "Sync recently triggered. Please wait a minute and try again."


def test_whatsapp_sync_validates_date(client):
    assert client.post("/api/whatsapp/sync", params={"date": "tomorrow"}).status_code == 400


def test_whatsapp_sync_reports_missing_config(client):
    resp = client.post("/api/whatsapp/sync", params={"date": "2024-05-01"})
    assert resp.status_code == 500
    assert resp.json()["detail"] == "META_ACCESS_TOKEN not set"
