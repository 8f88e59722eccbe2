from datetime import datetime, timezone

import httpx
import pytest

from poolwatch.clients.rest import RestLogStore, format_in_list
from poolwatch.core.config import OrchestratorConfig, RestStoreConfig
from poolwatch.core.errors import QueryRejected, StoreUnavailable
from poolwatch.core.models import FilterState
from poolwatch.orchestration.orchestrator import QueryOrchestrator

ROW = {
    "id": 7,
    "network": "base",
    "exchange": "aerodrome",
    "block_number": 12345,
    "strategy": "aerodrome",
    "transaction_hash": "0xb0b",
    "transaction_index": 3,
    "log_index": 1,
    "removed": False,
    "created_at": "2024-05-01T12:00:00+00:00",
}


def make_store(handler) -> RestLogStore:
    config = RestStoreConfig(url="https://example.supabase.co/rest/v1/", api_key="anon-key")
    return RestLogStore(config, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_query_is_rendered_as_postgrest_params() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[ROW])

    store = make_store(handler)
    since = datetime(2024, 5, 1, tzinfo=timezone.utc)
    rows = await (
        store.select("logs")
        .equals("network", "base")
        .equals("removed", False)
        .substring_match("transaction_hash", "ab")
        .greater_or_equal("created_at", since)
        .in_("transaction_hash", ["0xA", "0xB"])
        .order("created_at", ascending=False)
        .execute()
    )
    await store.aclose()

    assert rows == [ROW]
    (request,) = seen
    assert request.url.path == "/rest/v1/logs"
    assert request.url.params.multi_items() == [
        ("select", "*"),
        ("network", "eq.base"),
        ("removed", "eq.false"),
        ("transaction_hash", "ilike.*ab*"),
        ("created_at", "gte.2024-05-01T00:00:00Z"),
        ("transaction_hash", 'in.("0xA","0xB")'),
        ("order", "created_at.desc"),
    ]
    assert request.headers["apikey"] == "anon-key"
    assert request.headers["authorization"] == "Bearer anon-key"


@pytest.mark.asyncio
async def test_column_projection_and_not_null() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[])

    store = make_store(handler)
    await store.select("logs", ["transaction_hash"]).not_null("transaction_hash").execute()
    await store.aclose()

    assert seen[0].url.params.multi_items() == [
        ("select", "transaction_hash"),
        ("transaction_hash", "not.is.null"),
    ]


@pytest.mark.asyncio
async def test_empty_membership_skips_the_request() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    store = make_store(handler)
    assert await store.select("logs").in_("transaction_hash", []).execute() == []
    await store.aclose()


@pytest.mark.asyncio
async def test_client_error_is_query_rejected() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            400,
            json={"code": "42703", "message": "column logs.nope does not exist", "details": None, "hint": None},
        )

    store = make_store(handler)
    with pytest.raises(QueryRejected) as exc_info:
        await store.select("logs").equals("nope", 1).execute()
    await store.aclose()

    assert exc_info.value.code == "42703"
    assert "does not exist" in str(exc_info.value)


@pytest.mark.asyncio
async def test_server_error_is_unavailable() -> None:
    store = make_store(lambda request: httpx.Response(503, text="upstream down"))
    with pytest.raises(StoreUnavailable):
        await store.select("logs").execute()
    await store.aclose()


@pytest.mark.asyncio
async def test_transport_error_is_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    store = make_store(handler)
    with pytest.raises(StoreUnavailable):
        await store.select("logs").execute()
    await store.aclose()


@pytest.mark.asyncio
async def test_orchestrator_over_rest_store() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        select = request.url.params["select"]
        if select == "transaction_hash":
            return httpx.Response(200, json=[{"transaction_hash": "0xb0b"}, {"transaction_hash": "0xb0b"}])
        if select in ("network", "strategy"):
            return httpx.Response(200, json=[{select: "base"}, {select: None}])
        return httpx.Response(200, json=[ROW, {**ROW, "log_index": 2}])

    store = make_store(handler)
    orchestrator = QueryOrchestrator(store, OrchestratorConfig(timeout_s=5))
    logs = await orchestrator.refresh(FilterState(show_duplicates=True))
    await store.aclose()

    assert [log.log_index for log in logs] == [1, 2]
    assert logs[0].created_at == datetime(2024, 5, 1, 12, tzinfo=timezone.utc)
    assert orchestrator.network_options == ["base"]
    assert orchestrator.strategy_options == ["base"]


def test_in_list_quotes_items() -> None:
    assert format_in_list(['a"b', "c,d"]) == '("a\\"b","c,d")'


@pytest.mark.asyncio
async def test_undecodable_body_is_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, headers={"Content-Encoding": "gzip"}, stream=httpx.ByteStream(b"not-gzip"))

    store = make_store(handler)
    orchestrator = QueryOrchestrator(store, OrchestratorConfig(timeout_s=5))
    with pytest.raises(StoreUnavailable, match="DecodingError"):
        await store.select("logs").execute()

    await orchestrator.refresh(FilterState())
    await store.aclose()

    assert orchestrator.error is not None
    assert orchestrator.error.kind == "StoreUnavailable"


@pytest.mark.asyncio
async def test_substring_pattern_is_matched_literally() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[])

    store = make_store(handler)
    await store.select("logs").substring_match("transaction_hash", "a_b%").execute()
    await store.aclose()

    assert seen[0].url.params["transaction_hash"] == "ilike.*a\\_b\\%*"
