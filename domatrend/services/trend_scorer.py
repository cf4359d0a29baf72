"""Trend scorer: freshness-gated recompute of per-domain trend scores.

A stored score younger than the freshness window is served as-is. A stale
or forced request recomputes from search and on-chain signals, upserts the
row, and hands AI enrichment to a background task the caller never awaits.

At most one recompute per domain is in flight: requests for the same name
queue on a per-name lock and re-check freshness once they acquire it.
"""

import asyncio
import time
import weakref
from datetime import datetime, timedelta
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from domatrend.clock import Clock, as_utc, utcnow
from domatrend.config import Settings
from domatrend.metrics import ai_enrichment_results, trend_score_duration, trend_score_requests
from domatrend.models import TrendScore
from domatrend.models.base import dialect_insert
from domatrend.schemas.score import AiInsightResult, TrendScoreResult
from domatrend.schemas.signals import OnChainMetrics, SearchMetrics
from domatrend.services import enrichment as insight_store
from domatrend.services.domains import validate_domain_name
from domatrend.services.enrichment import AiEnrichment
from domatrend.services.onchain import OnChainAggregator, aggregate_events
from domatrend.services.scoring import (
    build_breakdown,
    calculate_confidence,
    calculate_weighted_score,
    count_data_points,
)
from domatrend.services.search_signals import SearchSignalProvider

log = structlog.get_logger(__name__)


class TrendScorer:
    def __init__(
        self,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession],
        search: SearchSignalProvider,
        onchain: OnChainAggregator,
        enrichment: Optional[AiEnrichment] = None,
        clock: Clock = utcnow,
    ) -> None:
        self.settings = settings
        self._session_factory = session_factory
        self.search = search
        self.onchain = onchain
        self.enrichment = enrichment
        self._clock = clock
        # Entries vanish once no request holds or awaits the name's lock
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()
        # Strong references so fire-and-forget enrichment tasks are not GC'd
        self.background_tasks: set[asyncio.Task] = set()

    @property
    def freshness_window(self) -> timedelta:
        return timedelta(hours=self.settings.score_update_interval_hours)

    def is_fresh(self, last_updated: datetime) -> bool:
        return self._clock() - as_utc(last_updated) < self.freshness_window

    async def update_trend_score(self, domain_name: str, force_update: bool = False) -> TrendScoreResult:
        """Return the domain's trend score, recomputing it when stale or forced.

        Raises InvalidDomainNameError for syntactically invalid names; every
        other failure degrades to a best-effort score.
        """
        name = validate_domain_name(domain_name)
        lock = self._locks.get(name)
        if lock is None:
            lock = self._locks[name] = asyncio.Lock()

        async with lock:
            if not force_update:
                async with self._session_factory() as session:
                    row = await self._get_row(session, name)
                    if row is not None and self.is_fresh(row.last_updated):
                        insight = await self._fresh_insight(session, name)
                        trend_score_requests.labels(mode="cached").inc()
                        log.info("trend_score_cached", domain=name, score=row.score)
                        return TrendScoreResult.from_row(row, ai_analysis=insight)

            return await self._recompute(name, forced=force_update)

    async def _recompute(self, name: str, forced: bool) -> TrendScoreResult:
        started = time.perf_counter()
        log.info("trend_score_recompute_started", domain=name, forced=forced)

        search = await self.get_search_metrics(name)
        onchain = await self.get_onchain_metrics(name)
        result = self.calculate_trend_score(name, search, onchain)

        async with self._session_factory() as session:
            await self._save(session, result)
            result.ai_analysis = await self._fresh_insight(session, name)

        trend_score_duration.observe(time.perf_counter() - started)
        trend_score_requests.labels(mode="recomputed").inc()
        log.info(
            "trend_score_updated",
            domain=name,
            score=result.score,
            confidence=result.confidence,
            data_points=result.data_points,
        )

        self._schedule_enrichment(result, search, onchain)
        return result

    def calculate_trend_score(
        self, domain_name: str, search: SearchMetrics, onchain: OnChainMetrics
    ) -> TrendScoreResult:
        now = self._clock()
        breakdown = build_breakdown(search, onchain)
        return TrendScoreResult(
            domain_name=domain_name,
            score=calculate_weighted_score(breakdown),
            breakdown=breakdown,
            last_updated=now,
            data_points=count_data_points(search, onchain),
            confidence=calculate_confidence(search, onchain, now),
        )

    async def get_search_metrics(self, domain_name: str) -> SearchMetrics:
        """Search metrics that never raise; unexpected errors use the name heuristics."""
        try:
            return await self.search.get_metrics(domain_name)
        except Exception:
            log.error("search_signal_unexpected_error", domain=domain_name, exc_info=True)
            return self.search.fallback_metrics(domain_name)

    async def get_onchain_metrics(self, domain_name: str) -> OnChainMetrics:
        """On-chain metrics that never raise; storage errors yield zero activity."""
        try:
            return await self.onchain.get_metrics(domain_name)
        except Exception:
            log.error("onchain_metrics_unexpected_error", domain=domain_name, exc_info=True)
            return aggregate_events(domain_name, [], now=self._clock())

    async def get_top_trending_domains(self, limit: int = 10) -> list[TrendScoreResult]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(TrendScore).order_by(TrendScore.score.desc()).limit(limit)
            )
            return [TrendScoreResult.from_row(row) for row in result.scalars().all()]

    async def find_stale_domains(self, limit: int = 100) -> list[str]:
        """Domain names whose score is older than the freshness window, oldest first."""
        cutoff = self._clock() - self.freshness_window
        async with self._session_factory() as session:
            result = await session.execute(
                select(TrendScore.domain_name)
                .where(TrendScore.last_updated < cutoff)
                .order_by(TrendScore.last_updated.asc())
                .limit(limit)
            )
            return list(result.scalars().all())

    async def _get_row(self, session: AsyncSession, name: str) -> Optional[TrendScore]:
        result = await session.execute(
            select(TrendScore)
            .where(TrendScore.domain_name == name)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _save(self, session: AsyncSession, result: TrendScoreResult) -> None:
        b = result.breakdown
        values = {
            "score": result.score,
            "search_volume": b.search_volume,
            "trend_direction": b.trend_direction,
            "on_chain_activity": b.on_chain_activity,
            "rarity": b.rarity,
            "last_updated": result.last_updated,
            "data_points": result.data_points,
            "confidence": result.confidence,
        }
        stmt = dialect_insert(session, TrendScore).values(domain_name=result.domain_name, **values)
        stmt = stmt.on_conflict_do_update(index_elements=["domain_name"], set_=values)
        await session.execute(stmt)
        await session.commit()

    async def _fresh_insight(self, session: AsyncSession, name: str) -> Optional[AiInsightResult]:
        insight = await insight_store.get_insight(session, name)
        if insight is None:
            return None
        if not insight_store.is_insight_fresh(
            insight, self._clock(), self.settings.ai_insight_freshness_hours
        ):
            return None
        return insight_store.to_result(insight)

    def _schedule_enrichment(
        self, result: TrendScoreResult, search: SearchMetrics, onchain: OnChainMetrics
    ) -> None:
        if self.enrichment is None or not self.enrichment.enabled:
            return
        task = asyncio.create_task(self._enrich(result, search, onchain))
        self.background_tasks.add(task)
        task.add_done_callback(self.background_tasks.discard)

    async def _enrich(
        self, result: TrendScoreResult, search: SearchMetrics, onchain: OnChainMetrics
    ) -> None:
        name = result.domain_name
        try:
            if result.ai_analysis is not None:
                ai_enrichment_results.labels(outcome="cached").inc()
                log.debug("ai_insight_still_fresh", domain=name)
                return

            insight = await self.enrichment.generate(name, result, search, onchain)
            if insight is None:
                ai_enrichment_results.labels(outcome="unavailable").inc()
                return

            async with self._session_factory() as session:
                await insight_store.save_insight(session, name, result.score, insight, self._clock())
            ai_enrichment_results.labels(outcome="generated").inc()
        except Exception:
            ai_enrichment_results.labels(outcome="failed").inc()
            log.error("ai_enrichment_error", domain=name, exc_info=True)
