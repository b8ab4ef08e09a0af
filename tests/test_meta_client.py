import asyncio

import httpx
import pytest

from leadboard.connectors.meta.client import MetaAPIError, MetaClient, ensure_act_prefix


def _client(mock_http, handler):
    return MetaClient(access_token="tok", ad_account_id="123", http_client=mock_http(handler))


def test_act_prefix():
    assert ensure_act_prefix("123") == "act_123"
    assert ensure_act_prefix(" act_123 ") == "act_123"


def test_pagination_follows_next_links(mock_http):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url)
        assert request.url.params["access_token"] == "tok"
        if request.url.params.get("after") == "p2":
            return httpx.Response(200, json={"data": [{"id": "2", "name": "B"}]})
        return httpx.Response(
            200,
            json={
                "data": [{"id": "1", "name": "A"}],
                "paging": {"next": "https://graph.facebook.com/v21.0/act_123/campaigns?after=p2&access_token=tok"},
            },
        )

    campaigns = asyncio.run(_client(mock_http, handler).get_campaigns())
    assert [c["id"] for c in campaigns] == ["1", "2"]
    assert campaigns[0]["account_id"] == "act_123"
    assert len(seen) == 2
    assert seen[0].path.endswith("/act_123/campaigns")
    assert "fields" in seen[0].params
    assert seen[1].params["after"] == "p2"
    assert "fields" not in seen[1].params


def test_pagination_stops_at_page_cap(mock_http):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(
            200,
            json={
                "data": [{"id": str(len(calls))}],
                "paging": {"next": "https://graph.facebook.com/v21.0/act_123/campaigns?after=same"},
            },
        )

    client = _client(mock_http, handler)
    rows = asyncio.run(client._paginated_get("https://graph.facebook.com/v21.0/act_123/campaigns", max_pages=3))
    assert len(calls) == 3
    assert [r["id"] for r in rows] == ["1", "2", "3"]
    assert all(c.url.params["access_token"] == "tok" for c in calls)


def test_http_error_maps_to_meta_error(mock_http):
    def handler(request):
        return httpx.Response(400, json={"error": {"message": "Invalid OAuth token", "code": 190}})

    with pytest.raises(MetaAPIError) as exc:
        asyncio.run(_client(mock_http, handler).get_account_business())
    assert exc.value.status_code == 400
    assert exc.value.error_code == 190
    assert "Invalid OAuth token" in str(exc.value)


def test_error_body_with_ok_status_still_raises(mock_http):
    def handler(request):
        return httpx.Response(200, json={"error": {"message": "Rate limited", "code": 613}})

    with pytest.raises(MetaAPIError) as exc:
        asyncio.run(_client(mock_http, handler).get_account_business())
    assert exc.value.error_code == 613


def test_requests_are_not_retried(mock_http):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(429, json={"error": {"message": "Too many calls"}})

    with pytest.raises(MetaAPIError):
        asyncio.run(_client(mock_http, handler).get_account_business())
    assert len(calls) == 1


def test_budget_retries_without_funding_source(mock_http):
    requested_fields = []

    def handler(request):
        fields = request.url.params["fields"]
        requested_fields.append(fields)
        if "funding_source_details" in fields:
            return httpx.Response(403, json={"error": {"message": "Needs MANAGE"}})
        return httpx.Response(200, json={"amount_spent": "32000", "spend_cap": "50000"})

    raw = asyncio.run(_client(mock_http, handler).get_ad_account_budget())
    assert raw["spend_cap"] == "50000"
    assert len(requested_fields) == 2
    assert "funding_source_details" not in requested_fields[1]


def test_insights_drop_rows_without_level_id(mock_http):
    def handler(request):
        assert request.url.params["level"] == "adset"
        assert request.url.params["time_increment"] == "1"
        return httpx.Response(
            200,
            json={
                "data": [
                    {"adset_id": "s1", "date_start": "2024-05-01", "spend": "1"},
                    {"adset_id": "", "date_start": "2024-05-01", "spend": "2"},
                    {"adset_id": "s2"},
                ]
            },
        )

    rows = asyncio.run(_client(mock_http, handler).get_insights("adset", "2024-05-01", "2024-05-02"))
    assert [r["adset_id"] for r in rows] == ["s1"]


def test_unknown_insights_level(mock_http):
    with pytest.raises(ValueError):
        asyncio.run(_client(mock_http, lambda r: httpx.Response(200, json={})).get_insights("x", "a", "b"))


def test_configured_account_skips_lookup(mock_http):
    def handler(request):
        raise AssertionError("no request expected")

    accounts = asyncio.run(_client(mock_http, handler).get_ad_accounts())
    assert accounts == [{"id": "act_123", "name": None}]


def test_accounts_listed_when_none_configured(mock_http):
    def handler(request):
        assert request.url.path.endswith("/me/adaccounts")
        return httpx.Response(200, json={"data": [{"id": "act_9", "name": "Main"}]})

    client = MetaClient(access_token="tok", ad_account_id=" ", http_client=mock_http(handler))
    assert asyncio.run(client.get_ad_accounts()) == [{"id": "act_9", "name": "Main"}]


def test_adsets_and_ads_are_mapped(mock_http):
    def handler(request):
        if request.url.path.endswith("/adsets"):
            return httpx.Response(200, json={"data": [{"id": "s1", "campaign_id": "c1", "name": "Set"}]})
        return httpx.Response(
            200, json={"data": [{"id": "a1", "adset_id": "s1", "campaign_id": "c1", "status": "ACTIVE"}]}
        )

    client = _client(mock_http, handler)
    adsets = asyncio.run(client.get_adsets())
    ads = asyncio.run(client.get_ads())
    assert adsets[0]["campaign_id"] == "c1"
    assert adsets[0]["status"] == "UNKNOWN"
    assert ads[0]["ad_set_id"] == "s1"
    assert ads[0]["name"] == ""
