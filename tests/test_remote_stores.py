from __future__ import annotations

from decimal import Decimal

import anyio
import httpx
import orjson
import pytest
from botocore.exceptions import ClientError

from truebid.db.dynamodb.errors import DdbThrottled, DdbValidation
from truebid.db.dynamodb.retry import RetryPolicy, ddb_call, map_ddb_error
from truebid.domain.models import ProposalSummary
from truebid.storage.dynamo_remote_store import DynamoRemoteStore, proposal_key, summary_from_item
from truebid.storage.errors import RemoteStoreError, RemoteUnavailable
from truebid.storage.http_remote_store import HttpRemoteStore
from truebid.storage.remote_store import MemoryRemoteStore, RemoteStore


class FakeTable:
    table_name = "truebid-test"

    def __init__(self, items=None, error=None):
        self.items: dict[tuple[str, str], dict] = dict(items or {})
        self.error = error
        self.calls: list[dict] = []

    def get_item(self, *, key):
        if self.error:
            raise self.error
        return self.items.get((key["pk"], key["sk"]))

    def update_item(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        key = kwargs["key"]
        item = dict(self.items.get((key["pk"], key["sk"])) or key)
        names = kwargs["expression_attribute_names"]
        values = kwargs["expression_attribute_values"]
        for nk, attr in names.items():
            item[attr] = values[":v" + nk[2:]]
        self.items[(key["pk"], key["sk"])] = item
        return item


def _summary(**kw) -> ProposalSummary:
    base = {
        "title": "Cloud Ops",
        "solicitation": "SOL-1",
        "client": "VA",
        "contractType": "ffp",
        "dueDate": "2026-04-01",
        "totalValue": 1234.567,
        "teamSize": 3,
        "periodOfPerformance": "1 Base + 2 OYs",
        "progress": 70,
    }
    base.update(kw)
    return ProposalSummary(**base)


def test_stores_satisfy_protocol():
    assert isinstance(MemoryRemoteStore(), RemoteStore)
    assert isinstance(DynamoRemoteStore(table_factory=FakeTable), RemoteStore)
    assert isinstance(HttpRemoteStore(base_url="http://api.test"), RemoteStore)


def test_dynamo_fetch_returns_none_for_missing_item():
    async def _run():
        store = DynamoRemoteStore(table_factory=FakeTable)
        assert await store.fetch("nope") is None

    anyio.run(_run)


def test_dynamo_update_writes_summary_attributes():
    async def _run():
        table = FakeTable()
        store = DynamoRemoteStore(table_factory=lambda: table)

        out = await store.update("p1", _summary())

        call = table.calls[0]
        assert call["key"] == proposal_key("p1") == {"pk": "PROPOSAL#p1", "sk": "PROFILE"}
        assert call["update_expression"].startswith("SET ")
        assert "updatedAt = :u" in call["update_expression"]
        assert "entityType = if_not_exists(entityType, :e)" in call["update_expression"]
        stored = table.items[("PROPOSAL#p1", "PROFILE")]
        assert stored["totalValue"] == Decimal("1234.57")
        assert stored["agency"] == "VA"
        assert stored["periodOfPerformance"] == {"display": "1 Base + 2 OYs"}
        assert out.client == "VA"
        assert out.totalValue == pytest.approx(1234.57)

        fetched = await store.fetch("p1")
        assert fetched == out

    anyio.run(_run)


def test_dynamo_errors_become_remote_errors():
    async def _run():
        throttled = DdbThrottled(message="slow down", retryable=True)
        store = DynamoRemoteStore(table_factory=lambda: FakeTable(error=throttled))
        with pytest.raises(RemoteUnavailable) as ei:
            await store.fetch("p1")
        assert ei.value.retryable is True
        assert ei.value.operation == "fetch"

        bad = DdbValidation(message="bad request")
        store = DynamoRemoteStore(table_factory=lambda: FakeTable(error=bad))
        with pytest.raises(RemoteStoreError) as ei2:
            await store.update("p1", _summary())
        assert not isinstance(ei2.value, RemoteUnavailable)

    anyio.run(_run)


def test_summary_from_item_accepts_legacy_shapes():
    s = summary_from_item(
        {"title": "T", "agency": "DOE", "contractType": "weird", "totalValue": Decimal("10.5"), "periodOfPerformance": "1 Base Year"}
    )
    assert s.client == "DOE"
    assert s.contractType == "tm"
    assert s.totalValue == 10.5
    assert s.periodOfPerformance == "1 Base Year"


def _client_error(code: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}, "ResponseMetadata": {"RequestId": "req-1"}}, "UpdateItem")


def test_map_ddb_error_classifies_client_errors():
    throttled = map_ddb_error(operation="GetItem", table_name="t", key=None, exc=_client_error("ThrottlingException"))
    assert isinstance(throttled, DdbThrottled)
    assert throttled.retryable is True
    assert throttled.aws_request_id == "req-1"

    invalid = map_ddb_error(operation="GetItem", table_name="t", key=None, exc=_client_error("ValidationException"))
    assert isinstance(invalid, DdbValidation)
    assert invalid.retryable is False


def test_ddb_call_retries_throttling_then_succeeds(monkeypatch):
    import truebid.db.dynamodb.retry as retry_mod

    monkeypatch.setattr(retry_mod.time, "sleep", lambda _s: None)
    attempts = {"n": 0}

    def _op():
        attempts["n"] += 1
        if attempts["n"] < 3:
            raise _client_error("ProvisionedThroughputExceededException")
        return "ok"

    assert ddb_call("GetItem", _op, retry_policy=RetryPolicy(max_attempts=4)) == "ok"
    assert attempts["n"] == 3


def test_ddb_call_does_not_retry_validation_errors(monkeypatch):
    import truebid.db.dynamodb.retry as retry_mod

    monkeypatch.setattr(retry_mod.time, "sleep", lambda _s: None)
    attempts = {"n": 0}

    def _op():
        attempts["n"] += 1
        raise _client_error("ValidationException")

    with pytest.raises(DdbValidation):
        ddb_call("GetItem", _op)
    assert attempts["n"] == 1


# --- HTTP ---


def _http_store(handler) -> HttpRemoteStore:
    return HttpRemoteStore(base_url="http://api.test/", transport=httpx.MockTransport(handler))


def test_http_fetch_parses_proposal_envelope():
    async def _run():
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/proposals/p1"
            return httpx.Response(
                200,
                json={"proposal": {"title": "Bid", "client": "NASA", "periodOfPerformance": {"display": "1 Base Year"}}},
            )

        s = await _http_store(handler).fetch("p1")
        assert s.title == "Bid"
        assert s.client == "NASA"
        assert s.periodOfPerformance == "1 Base Year"

    anyio.run(_run)


def test_http_fetch_404_is_not_found():
    async def _run():
        s = await _http_store(lambda _r: httpx.Response(404, json={"error": "nope"})).fetch("p1")
        assert s is None

    anyio.run(_run)


def test_http_update_puts_summary():
    async def _run():
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["body"] = orjson.loads(request.content)
            return httpx.Response(200, json={"proposal": seen["body"]})

        out = await _http_store(handler).update("p1", _summary(title="Saved"))
        assert seen["method"] == "PUT"
        assert seen["body"]["title"] == "Saved"
        assert seen["body"]["teamSize"] == 3
        assert out.title == "Saved"

    anyio.run(_run)


def test_http_errors_are_typed():
    async def _run():
        with pytest.raises(RemoteUnavailable):
            await _http_store(lambda _r: httpx.Response(503)).fetch("p1")
        with pytest.raises(RemoteUnavailable):
            await _http_store(lambda _r: httpx.Response(429)).update("p1", _summary())

        with pytest.raises(RemoteStoreError) as ei:
            await _http_store(lambda _r: httpx.Response(400)).update("p1", _summary())
        assert not ei.value.retryable

        def unreachable(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(RemoteUnavailable):
            await _http_store(unreachable).fetch("p1")

    anyio.run(_run)


def test_http_store_requires_base_url():
    with pytest.raises(ValueError):
        HttpRemoteStore(base_url="")
