"""Search-signal provider: Google Trends interest via SerpApi.

Lookup order for a domain's keyword:
  1. live TTL cache entry -> returned as-is (no external call, no quota)
  2. provider disabled / mock mode / no credential -> synthetic metrics (cached)
  3. daily quota exhausted -> heuristic fallback, no external call
  4. live call under timeout -> mapped metrics (cached, usage incremented)
  5. any live failure -> synthetic metrics (cached)

get_metrics never raises for provider-side problems; the scorer always
receives a usable SearchMetrics value.
"""

import asyncio
import math
from datetime import datetime, timedelta
from typing import Any, Optional

import httpx
import structlog

from domatrend.clock import Clock, utcnow
from domatrend.config import Settings
from domatrend.metrics import search_signal_lookups
from domatrend.schemas.signals import SearchMetrics
from domatrend.services.domain_analysis import (
    analyze_geographic_data,
    analyze_search_volume,
    analyze_trend_direction,
    extract_keyword,
    generate_related_queries,
)
from domatrend.services.ttl_cache import TTLCache
from domatrend.services.usage import QuotaExceededError, UsageCounter

log = structlog.get_logger(__name__)

SERVICE_NAME = "serpapi-google-trends"
MAX_RELATED_QUERIES = 5
# Fewer points than this cannot be split into two meaningful halves
MIN_TREND_POINTS = 4


class SearchSignalError(Exception):
    """Raised when the live search-trend call fails or returns an unusable payload."""
    pass


def _stable_hash(value: str) -> int:
    """31-multiplier string hash, stable across processes (unlike hash())."""
    h = 0
    for ch in value:
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    return h


def _to_number(value: Any) -> Optional[float]:
    if isinstance(value, list):
        value = value[0] if value else None
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _average(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def calculate_trend(values: list[float]) -> float:
    """Relative change of the second half's mean over the first half's, clipped to [-1, 1]."""
    if len(values) < MIN_TREND_POINTS:
        return 0.0
    half = len(values) // 2
    first_avg = _average(values[:half])
    second_avg = _average(values[len(values) - half:])
    if first_avg == 0:
        return 0.0
    return max(-1.0, min(1.0, (second_avg - first_avg) / first_avg))


def calculate_volume(values: list[float], averages: Any) -> float:
    """Provider-reported average when present, else mean of the series; clamped to 0-100."""
    reported = None
    if isinstance(averages, list) and averages and isinstance(averages[0], dict):
        reported = _to_number(averages[0].get("value"))
    if reported:
        volume = round(reported)
    elif values:
        volume = round(_average(values))
    else:
        volume = 0
    return float(max(0, min(100, volume)))


def extract_related_queries(payload: dict) -> list[str]:
    related = payload.get("related_queries")
    if not isinstance(related, dict):
        return []
    items = related.get("rising") or related.get("top") or []
    if not isinstance(items, list):
        return []
    queries = [
        str(item["query"])
        for item in items
        if isinstance(item, dict) and item.get("query")
    ]
    return queries[:MAX_RELATED_QUERIES]


def extract_geo_data(payload: dict) -> dict[str, float]:
    by_region = payload.get("interest_by_region")
    if not isinstance(by_region, dict):
        return {}
    region_data = by_region.get("map_data") or by_region.get("geo_map_data")
    if not isinstance(region_data, list):
        return {}

    geo: dict[str, float] = {}
    for item in region_data:
        if not isinstance(item, dict):
            continue
        region = item.get("geo_name") or item.get("location") or item.get("name")
        value = item.get("value")
        if value is None:
            value = item.get("extracted_value")
        number = _to_number(value)
        if region and number is not None:
            geo[str(region)] = number
    return geo


def map_trends_payload(payload: Any, start: datetime, end: datetime) -> SearchMetrics:
    """Map a raw Google Trends payload into SearchMetrics.

    Every field is optional in the payload; missing or malformed parts
    default to empty. A payload that is not a JSON object is rejected.
    """
    if not isinstance(payload, dict):
        raise SearchSignalError("search-trend payload is not an object")
    if payload.get("error"):
        raise SearchSignalError(f"search-trend provider error: {payload['error']}")

    interest = payload.get("interest_over_time")
    if not isinstance(interest, dict):
        interest = {}
    timeline = interest.get("timeline_data")
    if not isinstance(timeline, list):
        timeline = []

    values: list[float] = []
    for point in timeline:
        if not isinstance(point, dict):
            continue
        point_values = point.get("values")
        if not isinstance(point_values, list) or not point_values:
            continue
        first = point_values[0] if isinstance(point_values[0], dict) else {}
        raw = first.get("extracted_value")
        if raw is None:
            raw = first.get("value")
        number = _to_number(raw)
        values.append(number if number is not None else 0.0)

    return SearchMetrics(
        volume=calculate_volume(values, interest.get("averages")),
        trend=calculate_trend(values),
        related_queries=extract_related_queries(payload),
        geographic_data=extract_geo_data(payload),
        time_range_start=start,
        time_range_end=end,
    )


class SearchSignalProvider:
    """Search-interest metrics per keyword, cached and quota-limited.

    Owns the TTL cache; the usage counter is shared with anything else that
    calls the same external service.
    """

    def __init__(
        self,
        settings: Settings,
        usage: UsageCounter,
        cache: Optional[TTLCache[SearchMetrics]] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Clock = utcnow,
    ) -> None:
        self.settings = settings
        self.usage = usage
        self.cache = cache or TTLCache(settings.serpapi_cache_ttl_minutes * 60)
        self.client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(settings.serpapi_timeout, connect=5.0)
        )
        self._clock = clock

        log.info(
            "search_signal_provider_initialized",
            enabled=settings.serpapi_enabled,
            use_mock=settings.serpapi_use_mock,
            cache_ttl_minutes=settings.serpapi_cache_ttl_minutes,
            daily_limit=settings.serpapi_daily_limit,
            api_key_configured=bool(settings.serpapi_api_key),
        )

    @property
    def live_enabled(self) -> bool:
        s = self.settings
        return s.serpapi_enabled and not s.serpapi_use_mock and bool(s.serpapi_api_key)

    def _time_range(self) -> tuple[datetime, datetime]:
        end = self._clock()
        return end - timedelta(days=self.settings.trend_analysis_days), end

    async def get_metrics(self, domain_name: str) -> SearchMetrics:
        keyword = extract_keyword(domain_name)

        cached = self.cache.get(keyword)
        if cached is not None:
            search_signal_lookups.labels(source="cache").inc()
            log.debug("search_signal_cache_hit", keyword=keyword)
            return cached

        if not self.live_enabled:
            log.info("search_signal_mock_mode", domain=domain_name, keyword=keyword)
            metrics = self.synthetic_metrics(keyword)
            self.cache.set(keyword, metrics)
            search_signal_lookups.labels(source="synthetic").inc()
            return metrics

        try:
            async with self.usage.guard(SERVICE_NAME, self.settings.serpapi_daily_limit) as record_usage:
                metrics = await self._fetch_live(keyword)
                await record_usage()
        except QuotaExceededError as exc:
            log.warning("search_signal_quota_exhausted", keyword=keyword, reason=str(exc))
            search_signal_lookups.labels(source="fallback").inc()
            return self.fallback_metrics(domain_name)
        except (SearchSignalError, httpx.HTTPError, asyncio.TimeoutError, ValueError) as exc:
            log.warning("search_signal_live_failed", keyword=keyword, error=str(exc) or type(exc).__name__)
            metrics = self.synthetic_metrics(keyword)
            self.cache.set(keyword, metrics)
            search_signal_lookups.labels(source="synthetic").inc()
            return metrics

        self.cache.set(keyword, metrics)
        search_signal_lookups.labels(source="live").inc()
        log.info(
            "search_signal_live_fetched",
            keyword=keyword,
            volume=metrics.volume,
            trend=metrics.trend,
            related_queries=len(metrics.related_queries),
        )
        return metrics

    async def _fetch_live(self, keyword: str) -> SearchMetrics:
        params = {
            "engine": "google_trends",
            "q": keyword,
            "data_type": "TIMESERIES",
            "api_key": self.settings.serpapi_api_key,
        }
        log.info("search_signal_request", keyword=keyword, timeout=self.settings.serpapi_timeout)
        resp = await asyncio.wait_for(
            self.client.get(self.settings.serpapi_base_url, params=params),
            timeout=self.settings.serpapi_timeout,
        )
        if resp.status_code == 429:
            raise SearchSignalError("search-trend provider rate limit reached")
        resp.raise_for_status()
        payload = resp.json()
        if not payload:
            raise SearchSignalError("search-trend provider returned no data payload")
        start, end = self._time_range()
        return map_trends_payload(payload, start, end)

    def synthetic_metrics(self, keyword: str) -> SearchMetrics:
        """Deterministic placeholder metrics seeded by the keyword."""
        h = _stable_hash(keyword)
        start, end = self._time_range()
        return SearchMetrics(
            volume=float(40 + h % 60),
            trend=max(-1.0, min(1.0, (h % 200) / 100 - 1)),
            related_queries=[
                f"{keyword} domain",
                f"{keyword} price",
                f"{keyword} web3",
                f"{keyword} market share",
                f"{keyword} analytics",
            ],
            geographic_data={
                "US": float(40 + h % 15),
                "UK": float(20 + h % 10),
                "DE": float(15 + h % 10),
                "SG": float(10 + h % 5),
                "JP": float(10 + h % 7),
            },
            time_range_start=start,
            time_range_end=end,
        )

    def fallback_metrics(self, domain_name: str) -> SearchMetrics:
        """Name-heuristic metrics for when the provider cannot be asked at all."""
        start, end = self._time_range()
        return SearchMetrics(
            volume=analyze_search_volume(domain_name),
            trend=analyze_trend_direction(domain_name),
            related_queries=generate_related_queries(domain_name),
            geographic_data=analyze_geographic_data(domain_name),
            time_range_start=start,
            time_range_end=end,
        )

    async def close(self) -> None:
        await self.client.aclose()
