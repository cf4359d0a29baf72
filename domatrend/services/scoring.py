"""Trend score composition.

Normalizes each signal onto a 0-100 component and combines them with
fixed weights. The final score depends on the breakdown alone, so a
stored score can always be recomputed from its stored components.
"""

from datetime import datetime

from domatrend.clock import as_utc
from domatrend.schemas.score import ScoreBreakdown
from domatrend.schemas.signals import OnChainMetrics, SearchMetrics

WEIGHTS: dict[str, float] = {
    "search_volume": 0.30,
    "trend_direction": 0.25,
    "on_chain_activity": 0.25,
    "rarity": 0.20,
}

BASE_CONFIDENCE = 0.5
# Signal recency below this many days earns a confidence bonus
RECENT_SIGNAL_DAYS = 7


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def normalize_search_volume(volume: float) -> float:
    return _clamp(volume / 1000 * 100)


def normalize_trend_direction(trend: float) -> float:
    """Map trend in [-1, 1] onto 0-100 (0 = collapsing, 50 = flat, 100 = surging)."""
    return _clamp((trend + 1) / 2 * 100)


def calculate_on_chain_activity(metrics: OnChainMetrics) -> float:
    transaction_score = min(100.0, metrics.transaction_count * 10)
    price_score = min(100.0, metrics.average_price * 10)
    return _clamp(transaction_score * 0.4 + metrics.liquidity * 0.4 + price_score * 0.2)


def build_breakdown(search: SearchMetrics, onchain: OnChainMetrics) -> ScoreBreakdown:
    return ScoreBreakdown(
        search_volume=normalize_search_volume(search.volume),
        trend_direction=normalize_trend_direction(search.trend),
        on_chain_activity=calculate_on_chain_activity(onchain),
        rarity=_clamp(onchain.rarity),
    )


def calculate_weighted_score(breakdown: ScoreBreakdown) -> float:
    score = (
        breakdown.search_volume * WEIGHTS["search_volume"]
        + breakdown.trend_direction * WEIGHTS["trend_direction"]
        + breakdown.on_chain_activity * WEIGHTS["on_chain_activity"]
        + breakdown.rarity * WEIGHTS["rarity"]
    )
    return round(_clamp(score), 2)


def calculate_confidence(search: SearchMetrics, onchain: OnChainMetrics, now: datetime) -> float:
    """Confidence in [0.5, 1.0] from data richness and signal recency."""
    confidence = BASE_CONFIDENCE
    if len(search.related_queries) > 3:
        confidence += 0.1
    if onchain.transaction_count > 5:
        confidence += 0.2
    if onchain.unique_owners > 2:
        confidence += 0.1

    age_days = (now - as_utc(search.time_range_end)).total_seconds() / 86400.0
    if age_days < RECENT_SIGNAL_DAYS:
        confidence += 0.1

    return round(min(1.0, confidence), 4)


def count_data_points(search: SearchMetrics, onchain: OnChainMetrics) -> int:
    return len(search.related_queries) + onchain.transaction_count
