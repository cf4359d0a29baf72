"""Tests for score normalisation, weighting and confidence."""

from datetime import datetime, timedelta, timezone

import pytest

from domatrend.schemas.score import ScoreBreakdown
from domatrend.schemas.signals import OnChainMetrics, SearchMetrics
from domatrend.services.scoring import (
    build_breakdown,
    calculate_confidence,
    calculate_on_chain_activity,
    calculate_weighted_score,
    count_data_points,
    normalize_search_volume,
    normalize_trend_direction,
)

NOW = datetime(2025, 10, 1, tzinfo=timezone.utc)


def _search(volume=50.0, trend=0.0, queries=0, end=NOW):
    return SearchMetrics(
        volume=volume,
        trend=trend,
        related_queries=[f"q{i}" for i in range(queries)],
        time_range_start=end - timedelta(days=30),
        time_range_end=end,
    )


def test_weighted_score_is_deterministic():
    breakdown = ScoreBreakdown(search_volume=80, trend_direction=60, on_chain_activity=50, rarity=40)

    # 0.30*80 + 0.25*60 + 0.25*50 + 0.20*40
    assert calculate_weighted_score(breakdown) == 59.5
    assert calculate_weighted_score(breakdown) == calculate_weighted_score(breakdown.model_copy())


def test_weighted_score_rounds_to_two_decimals():
    breakdown = ScoreBreakdown(search_volume=33.333, trend_direction=10, on_chain_activity=0, rarity=0)
    assert calculate_weighted_score(breakdown) == 12.5


def test_normalisation():
    assert normalize_search_volume(100) == pytest.approx(10.0)
    assert normalize_search_volume(5000) == 100.0
    assert normalize_trend_direction(-1) == 0.0
    assert normalize_trend_direction(0) == 50.0
    assert normalize_trend_direction(1) == 100.0


def test_on_chain_activity_formula():
    metrics = OnChainMetrics(transaction_count=1, unique_owners=1, average_price=0.05, liquidity=0, rarity=50)
    # 0.4*min(100, 10) + 0.4*0 + 0.2*min(100, 0.5)
    assert calculate_on_chain_activity(metrics) == pytest.approx(4.1)

    saturated = OnChainMetrics(transaction_count=500, average_price=1e6, liquidity=100)
    assert calculate_on_chain_activity(saturated) == 100.0


@pytest.mark.parametrize(
    "search,onchain",
    [
        (_search(volume=0, trend=-1), OnChainMetrics()),
        (_search(volume=100, trend=1, queries=5), OnChainMetrics(transaction_count=10**6, average_price=1e9, liquidity=100, rarity=100)),
    ],
)
def test_components_and_score_stay_in_bounds(search, onchain):
    breakdown = build_breakdown(search, onchain)
    for value in breakdown.model_dump().values():
        assert 0 <= value <= 100
    assert 0 <= calculate_weighted_score(breakdown) <= 100
    assert 0 <= calculate_confidence(search, onchain, NOW) <= 1


def test_confidence_increments_and_cap():
    rich_search = _search(queries=5)
    rich_chain = OnChainMetrics(transaction_count=6, unique_owners=3)

    assert calculate_confidence(_search(end=NOW - timedelta(days=8)), OnChainMetrics(), NOW) == 0.5
    assert calculate_confidence(_search(), OnChainMetrics(), NOW) == 0.6
    assert calculate_confidence(rich_search, rich_chain, NOW) == 1.0


def test_data_points():
    assert count_data_points(_search(queries=3), OnChainMetrics(transaction_count=4)) == 7
