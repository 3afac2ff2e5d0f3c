# tests/test_odata_client.py
import asyncio
import logging
from datetime import date

import httpx
import pytest

from covid_odata.infra.client import odata_client
from covid_odata.infra.client.odata_client import (
    ApiConnectionError,
    ApiError,
    ApiTimeoutError,
    ClientConfig,
    CovidApiClient,
    MockDataEnabled,
    build_url,
)
from covid_odata.main import app


def make_client(handler, **overrides) -> CovidApiClient:
    config = ClientConfig(
        base_url="http://api.test/odata",
        batch_size=2,
        max_concurrent=2,
        chunk_delay=0,
        use_mock_data=False,
    )
    for key, value in overrides.items():
        setattr(config, key, value)
    return CovidApiClient(config, transport=httpx.MockTransport(handler))


def paged_handler(total, requests_seen, fail_skips=()):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/odata/Cases/$count":
            return httpx.Response(200, text=str(total))
        params = request.url.params
        skip, top = int(params["$skip"]), int(params["$top"])
        requests_seen.append((skip, top))
        assert params["$expand"] == "Region"
        assert params["$orderby"] == "Id"
        if skip in fail_skips:
            return httpx.Response(500, json={"error": {"code": "", "message": "boom"}})
        rows = [{"Id": i, "Region": {"Name": "US", "Id": 1}} for i in range(skip + 1, min(skip + top, total) + 1)]
        return httpx.Response(200, json={"value": rows})

    return handler


async def test_get_all_cases_fetches_every_page_in_order():
    seen = []
    api = make_client(paged_handler(5, seen))

    result = await api.get_all_cases()

    assert [row["Id"] for row in result["value"]] == [1, 2, 3, 4, 5]
    assert sorted(seen) == [(0, 2), (2, 2), (4, 1)]


async def test_failed_batch_is_skipped_and_reported(caplog):
    seen = []
    api = make_client(paged_handler(5, seen, fail_skips=(2,)))

    with caplog.at_level(logging.WARNING):
        result = await api.get_all_cases()

    assert [row["Id"] for row in result["value"]] == [1, 2, 5]
    assert len(seen) == 3
    assert "Failed batch numbers: 2" in caplog.text


async def test_invalid_page_payload_counts_as_failure():
    def handler(request):
        if request.url.path.endswith("$count"):
            return httpx.Response(200, text="1")
        return httpx.Response(200, json={"unexpected": True})

    result = await make_client(handler).get_all_cases()
    assert result == {"value": []}


async def test_empty_table_skips_paging():
    seen = []
    result = await make_client(paged_handler(0, seen)).get_all_cases()
    assert result == {"value": []}
    assert seen == []


async def test_http_error_status():
    api = make_client(lambda request: httpx.Response(503))
    with pytest.raises(ApiError) as exc:
        await api.api_call("/Regions")
    assert exc.value.message == "HTTP error! status: 503"
    assert exc.value.code == "API_ERROR"


async def test_timeout_and_connection_errors():
    def timeout(request):
        raise httpx.ReadTimeout("too slow", request=request)

    def refused(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(ApiTimeoutError) as exc:
        await make_client(timeout).api_call("/Regions")
    assert exc.value.code == "TIMEOUT_ERROR"

    with pytest.raises(ApiConnectionError) as exc:
        await make_client(refused).get_count()
    assert exc.value.code == "CONNECTION_ERROR"


async def test_mock_mode_bypasses_network():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={})

    with pytest.raises(MockDataEnabled):
        await make_client(handler, use_mock_data=True).api_call("/Regions")
    assert calls == []


async def test_count_must_be_an_integer():
    api = make_client(lambda request: httpx.Response(200, text="<html>"))
    with pytest.raises(ApiError, match="Invalid count response"):
        await api.get_count()


async def test_daily_increase_by_country():
    captured = {}

    def handler(request):
        captured["filter"] = request.url.params["$filter"]
        return httpx.Response(200, json={"value": [
            {"RecordedDate": "2021-01-08", "ConfirmedCases": 100},
            {"RecordedDate": "2021-01-09", "ConfirmedCases": 150},
            {"RecordedDate": "2021-01-10", "ConfirmedCases": 140},
        ]})

    result = await make_client(handler).get_daily_increase_by_country(
        "Cote d'Ivoire", days=7, today=date(2021, 1, 10)
    )

    assert result == [
        {"date": "2021-01-09", "daily_increase": 50},
        {"date": "2021-01-10", "daily_increase": 0},
    ]
    assert captured["filter"] == (
        "Region/Name eq 'Cote d''Ivoire' and RecordedDate ge 2021-01-03 and RecordedDate le 2021-01-10"
    )


async def test_in_flight_requests_never_exceed_max_concurrent():
    state = {"in_flight": 0, "peak": 0}

    async def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("$count"):
            return httpx.Response(200, text="7")
        state["in_flight"] += 1
        state["peak"] = max(state["peak"], state["in_flight"])
        await asyncio.sleep(0.01)
        state["in_flight"] -= 1
        skip = int(request.url.params["$skip"])
        return httpx.Response(200, json={"value": [{"Id": skip + 1, "Region": {"Name": "US", "Id": 1}}]})

    result = await make_client(handler, batch_size=1, max_concurrent=3).get_all_cases()

    assert [row["Id"] for row in result["value"]] == [1, 2, 3, 4, 5, 6, 7]
    assert state["peak"] == 3


async def test_chunk_delay_only_between_rounds(monkeypatch):
    events = []
    real_sleep = asyncio.sleep

    async def fake_sleep(delay, *args, **kwargs):
        if delay:
            events.append(("sleep", delay))
        await real_sleep(0)

    monkeypatch.setattr(odata_client.asyncio, "sleep", fake_sleep)

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("$count"):
            return httpx.Response(200, text="5")
        skip = int(request.url.params["$skip"])
        events.append(("get", skip))
        return httpx.Response(200, json={"value": [{"Id": skip + 1, "Region": {"Name": "US", "Id": 1}}]})

    await make_client(handler, batch_size=1, max_concurrent=2, chunk_delay=0.25).get_all_cases()

    rounds, current = [], []
    for kind, value in events:
        if kind == "sleep":
            assert value == 0.25
            rounds.append(sorted(current))
            current = []
        else:
            current.append(value)
    rounds.append(sorted(current))
    assert rounds == [[0, 1], [2, 3], [4]]


async def test_non_json_body_is_an_api_error():
    api = make_client(lambda request: httpx.Response(200, text="<html>"))
    with pytest.raises(ApiError, match="Invalid JSON response") as exc:
        await api.api_call("/Regions")
    assert exc.value.code == "API_ERROR"


async def test_ampersand_in_region_name_stays_inside_filter():
    captured = {}

    def handler(request):
        captured.update(request.url.params)
        return httpx.Response(200, json={"value": []})

    await make_client(handler).get_daily_increase_by_country("Trinidad & Tobago", today=date(2021, 1, 10))

    assert captured["$filter"] == (
        "Region/Name eq 'Trinidad & Tobago' and RecordedDate ge 2021-01-03 and RecordedDate le 2021-01-10"
    )
    assert captured["$expand"] == "Region"
    assert captured["$orderby"] == "RecordedDate asc"
    assert " Tobago'" not in captured


def test_build_url_quotes_each_value():
    assert build_url("/Regions") == "/Regions"
    assert build_url("/Cases", {"$filter": "Name eq 'A & B'", "$top": 1}) == (
        "/Cases?$filter=Name%20eq%20'A%20%26%20B'&$top=1"
    )


class TestAgainstLiveApp:
    """The client talking to the real ASGI app over the seeded database."""

    @pytest.fixture
    def api(self, client):
        config = ClientConfig(
            base_url="http://test/odata",
            batch_size=3,
            max_concurrent=1,
            chunk_delay=0,
            use_mock_data=False,
        )
        return CovidApiClient(config, transport=httpx.ASGITransport(app=app))

    async def test_get_all_cases(self, api):
        result = await api.get_all_cases()
        assert [row["Id"] for row in result["value"]] == [1, 2, 3, 4, 5, 6, 7]
        assert result["value"][0]["Region"] == {"Name": "US", "Id": 1}

    async def test_count_with_filter(self, api):
        assert await api.get_count("Cases", filter="Region/Name eq 'US'") == 3

    async def test_dates_and_totals(self, api):
        assert await api.get_dates() == ["2021-01-01", "2021-01-02", "2021-01-03"]
        totals = await api.get_global_totals()
        assert totals == {
            "RecordedDate": "2021-01-03",
            "TotalConfirmed": 140,
            "TotalRecovered": 70,
            "TotalDeaths": 7,
        }

    async def test_regions_sorted_by_name(self, api):
        payload = await api.get_regions()
        assert [r["Name"] for r in payload["value"]] == ["Brazil", "Cote d'Ivoire", "India", "US"]
