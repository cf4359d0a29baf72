"""Daily external API usage counter.

Backed by the api_usage table (unique on service + day). Increments are a
single atomic upsert. guard() serialises check-call-increment per service
so concurrent callers cannot overshoot the daily ceiling.
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import date

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from domatrend.clock import Clock, utcnow
from domatrend.models import ApiUsage
from domatrend.models.base import dialect_insert

log = structlog.get_logger(__name__)


class QuotaExceededError(Exception):
    """Raised when a service has reached its daily request ceiling."""
    pass


class UsageCounter:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession], clock: Clock = utcnow):
        self._session_factory = session_factory
        self._clock = clock
        self._locks: dict[str, asyncio.Lock] = {}

    def today(self) -> date:
        return self._clock().date()

    async def get_count(self, service: str, day: date) -> int:
        async with self._session_factory() as session:
            result = await session.execute(
                select(ApiUsage.count).where(
                    ApiUsage.service == service, ApiUsage.usage_date == day
                )
            )
            return result.scalar_one_or_none() or 0

    async def increment(self, service: str, day: date) -> None:
        async with self._session_factory() as session:
            stmt = dialect_insert(session, ApiUsage).values(
                service=service, usage_date=day, count=1
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["service", "usage_date"],
                set_={"count": ApiUsage.count + 1},
            )
            await session.execute(stmt)
            await session.commit()

    @asynccontextmanager
    async def guard(self, service: str, daily_limit: int):
        """Hold the per-service lock while the caller makes one external call.

        Raises QuotaExceededError before yielding when today's count is at
        or over daily_limit. Yields a zero-argument coroutine function the
        caller awaits only after a successful call, to record the usage.
        """
        lock = self._locks.setdefault(service, asyncio.Lock())
        async with lock:
            day = self.today()
            used = await self.get_count(service, day)
            log.info("api_usage_check", service=service, date=day.isoformat(), usage=used, limit=daily_limit)
            if used >= daily_limit:
                raise QuotaExceededError(f"{service} daily request limit reached ({used}/{daily_limit})")

            async def record() -> None:
                await self.increment(service, day)
                log.info("api_usage_incremented", service=service, date=day.isoformat(), usage=used + 1)

            yield record
