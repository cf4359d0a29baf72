"""Prometheus metrics for the ingestion and scoring pipeline."""

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.responses import Response

poll_cycles = Counter(
    "domatrend_poll_cycles_total",
    "Registry polling cycles",
    ["outcome"],  # completed | empty | failed | skipped
)
events_ingested = Counter(
    "domatrend_events_ingested_total",
    "Registry events seen by the poller",
    ["result"],  # inserted | duplicate | skipped | failed
)
search_signal_lookups = Counter(
    "domatrend_search_signal_lookups_total",
    "Search-signal lookups by data source",
    ["source"],  # cache | live | synthetic | fallback
)
trend_score_requests = Counter(
    "domatrend_trend_score_requests_total",
    "Trend score requests",
    ["mode"],  # cached | recomputed
)
trend_score_duration = Histogram(
    "domatrend_trend_score_duration_seconds",
    "Trend score recompute latency",
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)
ai_enrichment_results = Counter(
    "domatrend_ai_enrichment_total",
    "AI enrichment outcomes",
    ["outcome"],  # generated | cached | unavailable | failed
)


async def metrics_endpoint() -> Response:
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
