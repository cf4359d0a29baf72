"""Tests for the registry poller, including the poll-to-score pipeline."""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from domatrend.schemas.registry import PollResult, RegistryEventPayload
from domatrend.services import event_store
from domatrend.services.onchain import OnChainAggregator
from domatrend.services.registry_client import RegistryClient, RegistryUnavailableError
from domatrend.services.search_signals import SearchSignalProvider
from domatrend.services.trend_scorer import TrendScorer
from domatrend.services.usage import UsageCounter
from domatrend.worker.poller import RegistryPoller


def _payload(unique_id, name="demo.eth", event_id=1, price=None):
    data = {"txHash": f"0x{event_id:04x}", "networkId": "eip155:97476"}
    if price is not None:
        data["payment"] = {"price": price}
    return {
        "id": event_id,
        "type": "NAME_TOKEN_MINTED",
        "name": name,
        "uniqueId": unique_id,
        "eventData": data,
    }


def _poll_result(*raw, last_id=None):
    return PollResult(
        events=[RegistryEventPayload.model_validate(r) for r in raw],
        last_id=last_id,
    )


def _mock_scorer():
    scorer = MagicMock()
    scorer.update_trend_score = AsyncMock()
    return scorer


async def test_end_to_end_poll_then_score_without_double_counting(settings, session_factory, session, clock):
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append((request.method, request.url.path))
        if request.url.path == "/v1/poll":
            return httpx.Response(
                200,
                json={"events": [_payload("E1", price="0.05")], "lastId": 1, "hasMoreEvents": False},
            )
        return httpx.Response(200)

    registry = RegistryClient(
        settings,
        http_client=httpx.AsyncClient(base_url=settings.registry_api_base, transport=httpx.MockTransport(handler)),
    )
    search = SearchSignalProvider(settings, UsageCounter(session_factory, clock=clock), clock=clock)
    onchain = OnChainAggregator(settings, session_factory, clock=clock)
    scorer = TrendScorer(settings, session_factory, search, onchain, clock=clock)
    poller = RegistryPoller(settings, session_factory, registry, scorer, clock=clock)

    first = await poller.record_poll_cycle()

    assert first["inserted"] == 1
    assert first["acknowledged"] == 1
    assert ("POST", "/v1/poll/ack/1") in requests
    events = await event_store.by_domain(session, "demo.eth")
    assert len(events) == 1
    assert events[0].price == 0.05

    score = await scorer.update_trend_score("demo.eth", force_update=True)
    # 0.4*min(100, 1*10) + 0.4*(1/30*100) + 0.2*min(100, 0.05*10)
    assert score.breakdown.on_chain_activity == pytest.approx(4 + 0.4 * 100 / 30 + 0.1)

    requests.clear()
    second = await poller.record_poll_cycle()

    assert second["inserted"] == 0
    assert second["duplicates"] == 1
    assert second["acknowledged"] is None
    assert ("POST", "/v1/poll/ack/1") not in requests
    rescored = await scorer.update_trend_score("demo.eth", force_update=True)
    assert rescored.breakdown.on_chain_activity == score.breakdown.on_chain_activity

    await registry.close()
    await search.close()


async def test_events_without_unique_id_are_skipped(settings, session_factory, session, clock):
    registry = AsyncMock()
    registry.poll.return_value = _poll_result(_payload(None, event_id=3), last_id=3)
    scorer = _mock_scorer()
    poller = RegistryPoller(settings, session_factory, registry, scorer, clock=clock)

    stats = await poller.record_poll_cycle()

    assert stats["skipped"] == 1
    assert stats["inserted"] == 0
    registry.ack.assert_not_awaited()
    scorer.update_trend_score.assert_not_awaited()
    assert await event_store.recent(session) == []


async def test_ack_uses_highest_event_id(settings, session_factory, clock):
    registry = AsyncMock()
    registry.poll.return_value = _poll_result(
        _payload("A", event_id=7), _payload("B", name="b.eth", event_id=9), _payload("C", event_id=8), last_id=5
    )
    scorer = _mock_scorer()
    poller = RegistryPoller(settings, session_factory, registry, scorer, clock=clock)

    stats = await poller.record_poll_cycle()

    registry.ack.assert_awaited_once_with(9)
    assert stats["acknowledged"] == 9
    assert stats["domains_updated"] == 2
    called = [c.args[0] for c in scorer.update_trend_score.await_args_list]
    assert called == ["demo.eth", "b.eth"]
    for c in scorer.update_trend_score.await_args_list:
        assert c.kwargs == {"force_update": False}


async def test_ack_failure_is_swallowed(settings, session_factory, clock):
    registry = AsyncMock()
    registry.poll.return_value = _poll_result(_payload("E1"))
    registry.ack.side_effect = RegistryUnavailableError("timeout")
    scorer = _mock_scorer()
    poller = RegistryPoller(settings, session_factory, registry, scorer, clock=clock)

    stats = await poller.record_poll_cycle()

    assert stats["inserted"] == 1
    assert stats["acknowledged"] is None
    scorer.update_trend_score.assert_awaited_once()


async def test_per_domain_score_failure_does_not_abort_batch(settings, session_factory, clock):
    registry = AsyncMock()
    registry.poll.return_value = _poll_result(_payload("A", name="a.eth"), _payload("B", name="b.eth", event_id=2))
    scorer = _mock_scorer()
    scorer.update_trend_score.side_effect = [RuntimeError("boom"), None]
    poller = RegistryPoller(settings, session_factory, registry, scorer, clock=clock)

    stats = await poller.record_poll_cycle()

    assert scorer.update_trend_score.await_count == 2
    assert stats["domains_updated"] == 1


async def test_registry_outage_ends_cycle_quietly(settings, session_factory, clock):
    registry = AsyncMock()
    registry.poll.side_effect = RegistryUnavailableError("connection refused")
    poller = RegistryPoller(settings, session_factory, registry, _mock_scorer(), clock=clock)

    stats = await poller.record_poll_cycle()

    assert stats["fetched"] == 0
    registry.ack.assert_not_awaited()


async def test_overlapping_cycle_is_skipped(settings, session_factory, clock):
    release = asyncio.Event()

    async def slow_poll(**kwargs):
        await release.wait()
        return PollResult()

    registry = AsyncMock()
    registry.poll.side_effect = slow_poll
    poller = RegistryPoller(settings, session_factory, registry, _mock_scorer(), clock=clock)

    running = asyncio.create_task(poller.record_poll_cycle())
    await asyncio.sleep(0)
    assert poller.running

    skipped = await poller.record_poll_cycle()
    release.set()
    completed = await running

    assert skipped is None
    assert completed["fetched"] == 0
    registry.poll.assert_awaited_once()


async def test_registry_client_parses_poll_payload(settings):
    body = {
        "events": [_payload("E1", price="not-a-number"), {"garbage": True}],
        "lastId": 1,
        "hasMoreEvents": True,
    }

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["Api-Key"] == "test-key"
        assert request.url.params["finalizedOnly"] == "true"
        return httpx.Response(200, content=json.dumps(body))

    client = RegistryClient(
        settings,
        http_client=httpx.AsyncClient(base_url=settings.registry_api_base, transport=httpx.MockTransport(handler)),
    )

    result = await client.poll(limit=10)

    assert [e.unique_id for e in result.events] == ["E1"]
    assert result.last_id == 1
    assert result.has_more_events
    await client.close()


async def test_registry_client_wraps_server_errors(settings):
    client = RegistryClient(
        settings,
        http_client=httpx.AsyncClient(
            base_url=settings.registry_api_base, transport=httpx.MockTransport(lambda r: httpx.Response(502))
        ),
    )

    with pytest.raises(RegistryUnavailableError):
        await client.ack(5)
    assert await client.get_domain_by_name("demo.eth") is None
    await client.close()


async def test_storage_error_on_one_event_keeps_the_rest_of_the_batch(
    settings, session_factory, session, clock, monkeypatch
):
    real_append = event_store.append

    async def flaky_append(db, **kwargs):
        if kwargs["unique_id"] == "B":
            raise RuntimeError("value too long for type character varying(255)")
        return await real_append(db, **kwargs)

    monkeypatch.setattr(event_store, "append", flaky_append)
    registry = AsyncMock()
    registry.poll.return_value = _poll_result(
        _payload("A", name="a.eth", event_id=1), _payload("B", name="b.eth", event_id=2)
    )
    scorer = _mock_scorer()
    poller = RegistryPoller(settings, session_factory, registry, scorer, clock=clock)

    stats = await poller.record_poll_cycle()

    assert stats["inserted"] == 1
    assert stats["failed"] == 1
    assert await event_store.exists(session, "A")
    assert not await event_store.exists(session, "B")
    registry.ack.assert_awaited_once_with(2)
    scorer.update_trend_score.assert_awaited_once_with("a.eth", force_update=False)


async def test_unknown_event_type_is_stored_within_column_width(settings, session_factory, session, clock):
    raw = _payload("U1")
    raw["type"] = "SOME_FUTURE_REGISTRY_EVENT_TYPE_WITH_A_VERY_LONG_NAME"
    registry = AsyncMock()
    registry.poll.return_value = _poll_result(raw)
    poller = RegistryPoller(settings, session_factory, registry, _mock_scorer(), clock=clock)

    stats = await poller.record_poll_cycle()

    assert stats["inserted"] == 1
    stored = await event_store.by_domain(session, "demo.eth")
    assert stored[0].event_type == raw["type"][:40]
