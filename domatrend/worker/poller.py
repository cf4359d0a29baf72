"""Registry poller: ingests finalized registry events into the event store.

Each cycle polls once, appends new events idempotently, acknowledges the
highest event id when anything new was stored, then triggers a non-forced
trend score recompute for every domain the batch touched. Cycles never
overlap: a tick that finds the previous cycle still running is skipped.
"""

import asyncio
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from domatrend.clock import Clock, utcnow
from domatrend.config import Settings
from domatrend.metrics import events_ingested, poll_cycles
from domatrend.models import RegistryEvent, RegistryEventType
from domatrend.schemas.registry import PollResult
from domatrend.services import event_store
from domatrend.services.event_store import AppendResult
from domatrend.services.registry_client import (
    RegistryClient,
    RegistryUnavailableError,
    extract_network_id,
    extract_price,
    extract_tx_hash,
)
from domatrend.services.trend_scorer import TrendScorer

log = structlog.get_logger(__name__)

_KNOWN_EVENT_TYPES = frozenset(t.value for t in RegistryEventType)
_EVENT_TYPE_MAX_LENGTH = RegistryEvent.__table__.c.event_type.type.length


def _ack_id(result: PollResult) -> Optional[int]:
    ids = [e.id for e in result.events if e.id is not None]
    return max(ids) if ids else result.last_id


class RegistryPoller:
    def __init__(
        self,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession],
        registry: RegistryClient,
        scorer: TrendScorer,
        clock: Clock = utcnow,
    ) -> None:
        self.settings = settings
        self._session_factory = session_factory
        self.registry = registry
        self.scorer = scorer
        self._clock = clock
        self._lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._lock.locked()

    async def record_poll_cycle(self) -> Optional[dict]:
        """Run one polling cycle; returns its stats, or None when skipped."""
        if self._lock.locked():
            poll_cycles.labels(outcome="skipped").inc()
            log.info("poll_cycle_skipped", reason="previous cycle still running")
            return None

        async with self._lock:
            return await self._run_cycle()

    async def _run_cycle(self) -> dict:
        stats = {
            "fetched": 0,
            "inserted": 0,
            "duplicates": 0,
            "skipped": 0,
            "failed": 0,
            "acknowledged": None,
            "domains_updated": 0,
        }

        try:
            result = await self.registry.poll(
                limit=self.settings.max_events_per_poll, finalized_only=True
            )
        except RegistryUnavailableError as exc:
            poll_cycles.labels(outcome="failed").inc()
            log.warning("registry_poll_failed", error=str(exc))
            return stats

        stats["fetched"] = len(result.events)
        if not result.events:
            poll_cycles.labels(outcome="empty").inc()
            log.debug("registry_poll_empty")
            return stats

        touched: list[str] = []
        async with self._session_factory() as session:
            for event in result.events:
                if not event.unique_id:
                    stats["skipped"] += 1
                    events_ingested.labels(result="skipped").inc()
                    log.warning("registry_event_missing_unique_id", event_id=event.id, domain=event.name)
                    continue

                if event.type not in _KNOWN_EVENT_TYPES:
                    log.warning("registry_event_unknown_type", unique_id=event.unique_id, event_type=event.type)

                try:
                    outcome = await event_store.append(
                        session,
                        unique_id=event.unique_id,
                        event_type=event.type[:_EVENT_TYPE_MAX_LENGTH],
                        domain_name=event.name,
                        observed_at=self._clock(),
                        price=extract_price(event),
                        tx_hash=extract_tx_hash(event),
                        network_id=extract_network_id(event),
                        registry_event_id=event.id,
                    )
                except Exception:
                    stats["failed"] += 1
                    events_ingested.labels(result="failed").inc()
                    log.error("registry_event_store_failed", unique_id=event.unique_id, domain=event.name, exc_info=True)
                    await session.rollback()
                    continue

                if outcome is AppendResult.ALREADY_EXISTS:
                    stats["duplicates"] += 1
                    events_ingested.labels(result="duplicate").inc()
                    continue

                stats["inserted"] += 1
                events_ingested.labels(result="inserted").inc()
                log.info(
                    "registry_event_stored",
                    unique_id=event.unique_id,
                    event_type=event.type,
                    domain=event.name,
                )
                if event.name not in touched:
                    touched.append(event.name)

        if stats["inserted"]:
            stats["acknowledged"] = await self._acknowledge(result)

        for domain_name in touched:
            try:
                await self.scorer.update_trend_score(domain_name, force_update=False)
                stats["domains_updated"] += 1
            except Exception:
                log.error("trend_score_update_failed", domain=domain_name, exc_info=True)

        poll_cycles.labels(outcome="completed").inc()
        log.info("poll_cycle_completed", **stats, has_more_events=result.has_more_events)
        return stats

    async def _acknowledge(self, result: PollResult) -> Optional[int]:
        ack_id = _ack_id(result)
        if ack_id is None:
            log.warning("registry_ack_skipped", reason="no event id in batch")
            return None
        try:
            await self.registry.ack(ack_id)
        except RegistryUnavailableError as exc:
            # Cursor stays put; the batch is redelivered and deduplicated by unique_id
            log.warning("registry_ack_failed", last_id=ack_id, error=str(exc))
            return None
        log.info("registry_ack_sent", last_id=ack_id)
        return ack_id


async def poll_worker_loop(poller: RegistryPoller, interval: float) -> None:
    """Background loop driving the poller on a fixed interval."""
    log.info("poll_worker_started", interval_seconds=interval)
    while True:
        try:
            await poller.record_poll_cycle()
        except Exception:
            poll_cycles.labels(outcome="failed").inc()
            log.error("poll_worker_error", exc_info=True)
        await asyncio.sleep(interval)
