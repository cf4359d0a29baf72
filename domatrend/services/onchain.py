"""On-chain metrics aggregation.

Derives activity metrics for a domain from the event store plus the
registry snapshot. Nothing here is persisted; metrics are recomputed on
every scoring run.

unique_owners counts distinct (tx_hash, else network_id, else domain
name) across events. Per-event owner addresses are not reported by the
registry, so this is an approximation of distinct participants, not a
wallet count.
"""

from typing import Optional, Sequence

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from domatrend.clock import Clock, utcnow
from domatrend.config import Settings
from domatrend.models import DomainRecord, RegistryEvent
from domatrend.schemas.signals import OnChainMetrics
from domatrend.services import domains as domain_store
from domatrend.services import event_store
from domatrend.services.domain_analysis import (
    calculate_domain_rarity,
    calculate_liquidity,
    extract_keyword,
)
from domatrend.services.registry_client import RegistryClient

log = structlog.get_logger(__name__)


def aggregate_events(
    domain_name: str,
    events: Sequence[RegistryEvent],
    *,
    now,
    liquidity_window_days: int = 30,
) -> OnChainMetrics:
    """Pure derivation of OnChainMetrics from already-loaded events."""
    prices = [e.price for e in events if e.price is not None]
    owners = {e.tx_hash or e.network_id or e.domain_name for e in events}

    return OnChainMetrics(
        transaction_count=len(events),
        unique_owners=len(owners),
        average_price=sum(prices) / len(prices) if prices else 0.0,
        liquidity=calculate_liquidity(
            (e.observed_at for e in events), now, liquidity_window_days
        ),
        rarity=calculate_domain_rarity(domain_name),
    )


class OnChainAggregator:
    def __init__(
        self,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession],
        registry: Optional[RegistryClient] = None,
        clock: Clock = utcnow,
    ) -> None:
        self.settings = settings
        self._session_factory = session_factory
        self.registry = registry
        self._clock = clock

    async def get_metrics(self, domain_name: str) -> OnChainMetrics:
        async with self._session_factory() as session:
            events = await event_store.by_domain(session, domain_name)
            if not events:
                keyword = extract_keyword(domain_name)
                log.info("onchain_keyword_fallback", domain=domain_name, keyword=keyword)
                events = await event_store.by_keyword(session, keyword)

            await self._ensure_domain_record(session, domain_name)

        metrics = aggregate_events(
            domain_name,
            events,
            now=self._clock(),
            liquidity_window_days=self.settings.liquidity_window_days,
        )
        log.info(
            "onchain_metrics_computed",
            domain=domain_name,
            transaction_count=metrics.transaction_count,
            unique_owners=metrics.unique_owners,
            average_price=metrics.average_price,
            liquidity=metrics.liquidity,
            rarity=metrics.rarity,
        )
        return metrics

    async def _ensure_domain_record(
        self, session: AsyncSession, domain_name: str
    ) -> Optional[DomainRecord]:
        """Load the local snapshot, fetching and storing it from the registry on first sight."""
        record = await domain_store.get_domain(session, domain_name)
        if record is not None or self.registry is None:
            return record

        info = await self.registry.get_domain_by_name(domain_name)
        if info is None:
            log.info("domain_not_in_registry", domain=domain_name)
            return None

        await domain_store.upsert_domain(session, info, self._clock())
        return await domain_store.get_domain(session, domain_name)
