"""Stale-score refresher.

Periodically force-recomputes trend scores that have aged past the
freshness window, oldest first, so trending lists do not serve week-old
numbers for domains nobody has asked about recently.
"""

import asyncio

import structlog

from domatrend.services.trend_scorer import TrendScorer

log = structlog.get_logger(__name__)


async def update_stale_scores(scorer: TrendScorer, limit: int = 100) -> int:
    """Recompute every stale score; returns how many were refreshed."""
    domains = await scorer.find_stale_domains(limit=limit)
    if not domains:
        log.debug("stale_scores_none")
        return 0

    log.info("stale_scores_found", count=len(domains))
    refreshed = 0
    for domain_name in domains:
        try:
            await scorer.update_trend_score(domain_name, force_update=True)
            refreshed += 1
        except Exception:
            log.error("stale_score_refresh_failed", domain=domain_name, exc_info=True)

    log.info("stale_scores_refreshed", refreshed=refreshed, total=len(domains))
    return refreshed


async def refresher_worker_loop(scorer: TrendScorer, interval: float) -> None:
    log.info("refresher_worker_started", interval_seconds=interval)

    # Initial delay; let the poller populate scores first
    await asyncio.sleep(60)

    while True:
        try:
            await update_stale_scores(scorer)
        except Exception:
            log.error("refresher_worker_error", exc_info=True)
        await asyncio.sleep(interval)
