"""Tests for on-chain metrics aggregation."""

from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from domatrend.schemas.registry import DomainInfo
from domatrend.services import domains, event_store
from domatrend.services.onchain import OnChainAggregator, aggregate_events


def _event(clock, tx_hash=None, network_id=None, price=None, days_ago=1, domain_name="demo.eth"):
    return SimpleNamespace(
        domain_name=domain_name,
        tx_hash=tx_hash,
        network_id=network_id,
        price=price,
        observed_at=clock() - timedelta(days=days_ago),
    )


def test_aggregate_events(clock):
    events = [
        _event(clock, tx_hash="0x1", price=1.0),
        _event(clock, tx_hash="0x2", price=3.0),
        _event(clock, network_id="eip155:1", days_ago=40),
        _event(clock),
    ]

    metrics = aggregate_events("demo.eth", events, now=clock(), liquidity_window_days=30)

    assert metrics.transaction_count == 4
    # 0x1, 0x2, eip155:1, demo.eth
    assert metrics.unique_owners == 4
    assert metrics.average_price == 2.0
    assert metrics.liquidity == pytest.approx(10.0)
    assert 0 < metrics.rarity <= 100


def test_aggregate_no_events(clock):
    metrics = aggregate_events("demo.eth", [], now=clock())

    assert metrics.transaction_count == 0
    assert metrics.unique_owners == 0
    assert metrics.average_price == 0.0
    assert metrics.liquidity == 0.0


async def _store(session, unique_id, domain_name, observed_at, price=None):
    await event_store.append(
        session,
        unique_id=unique_id,
        event_type="NAME_TOKEN_MINTED",
        domain_name=domain_name,
        observed_at=observed_at,
        price=price,
    )


async def test_exact_domain_events_preferred(settings, session_factory, session, clock):
    await _store(session, "E1", "demo.eth", clock(), price=0.05)
    await _store(session, "E2", "demo.doma", clock())
    aggregator = OnChainAggregator(settings, session_factory, clock=clock)

    metrics = await aggregator.get_metrics("demo.eth")

    assert metrics.transaction_count == 1
    assert metrics.average_price == 0.05


async def test_keyword_fallback_when_no_exact_events(settings, session_factory, session, clock):
    await _store(session, "E1", "demo.doma", clock())
    await _store(session, "E2", "sub.demo.io", clock())
    await _store(session, "E3", "other.eth", clock())
    aggregator = OnChainAggregator(settings, session_factory, clock=clock)

    metrics = await aggregator.get_metrics("demo.eth")

    assert metrics.transaction_count == 2


async def test_domain_snapshot_fetched_once_from_registry(settings, session_factory, session, clock):
    registry = AsyncMock()
    registry.get_domain_by_name.return_value = DomainInfo(
        name="demo.eth", owner="0xabc", claim_status="CLAIMED", network_id="eip155:97476"
    )
    aggregator = OnChainAggregator(settings, session_factory, registry=registry, clock=clock)

    await aggregator.get_metrics("demo.eth")
    await aggregator.get_metrics("demo.eth")

    registry.get_domain_by_name.assert_awaited_once_with("demo.eth")
    record = await domains.get_domain(session, "demo.eth")
    assert record.owner == "0xabc"


async def test_registry_miss_is_not_fatal(settings, session_factory, clock):
    registry = AsyncMock()
    registry.get_domain_by_name.return_value = None
    aggregator = OnChainAggregator(settings, session_factory, registry=registry, clock=clock)

    metrics = await aggregator.get_metrics("ghost.eth")

    assert metrics.transaction_count == 0
