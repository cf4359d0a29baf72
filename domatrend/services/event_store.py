"""Append-only registry event store.

Insertion is idempotent on the provider's unique_id: a duplicate append is
a no-op reported as ALREADY_EXISTS, never an error. Storage errors
propagate to the caller.
"""

import enum
from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from domatrend.clock import as_utc
from domatrend.models import DomainRecord, RegistryEvent, TrendScore
from domatrend.models.base import dialect_insert

log = structlog.get_logger(__name__)

DEFAULT_EVENT_LIMIT = 100


class AppendResult(str, enum.Enum):
    INSERTED = "inserted"
    ALREADY_EXISTS = "already_exists"


async def append(
    session: AsyncSession,
    *,
    unique_id: str,
    event_type: str,
    domain_name: str,
    observed_at: datetime,
    price: Optional[float] = None,
    tx_hash: Optional[str] = None,
    network_id: Optional[str] = None,
    registry_event_id: Optional[int] = None,
) -> AppendResult:
    """Insert one event unless its unique_id is already stored.

    Commits on insert so the write is durable before the caller moves on.
    """
    stmt = (
        dialect_insert(session, RegistryEvent)
        .values(
            unique_id=unique_id,
            registry_event_id=registry_event_id,
            event_type=event_type,
            domain_name=domain_name,
            price=price,
            tx_hash=tx_hash,
            network_id=network_id,
            observed_at=observed_at,
        )
        .on_conflict_do_nothing(index_elements=["unique_id"])
        .returning(RegistryEvent.id)
    )
    result = await session.execute(stmt)
    inserted_id = result.scalar_one_or_none()
    await session.commit()

    if inserted_id is None:
        return AppendResult.ALREADY_EXISTS
    return AppendResult.INSERTED


async def exists(session: AsyncSession, unique_id: str) -> bool:
    result = await session.execute(
        select(RegistryEvent.id).where(RegistryEvent.unique_id == unique_id).limit(1)
    )
    return result.scalar_one_or_none() is not None


async def by_domain(
    session: AsyncSession, domain_name: str, limit: int = DEFAULT_EVENT_LIMIT
) -> list[RegistryEvent]:
    """Events for an exact domain name, most recent first."""
    result = await session.execute(
        select(RegistryEvent)
        .where(RegistryEvent.domain_name == domain_name)
        .order_by(RegistryEvent.observed_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def by_keyword(
    session: AsyncSession, keyword: str, limit: int = DEFAULT_EVENT_LIMIT
) -> list[RegistryEvent]:
    """Events whose domain name contains keyword (subdomains, TLD variants)."""
    escaped = keyword.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    result = await session.execute(
        select(RegistryEvent)
        .where(RegistryEvent.domain_name.like(f"%{escaped}%", escape="\\"))
        .order_by(RegistryEvent.observed_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def recent(session: AsyncSession, limit: int = 50) -> list[RegistryEvent]:
    result = await session.execute(
        select(RegistryEvent).order_by(RegistryEvent.observed_at.desc()).limit(limit)
    )
    return list(result.scalars().all())


async def get_stats(session: AsyncSession) -> dict:
    """Row counts across the pipeline tables plus the latest event time."""
    total_events = (await session.execute(select(func.count(RegistryEvent.id)))).scalar_one()
    total_domains = (await session.execute(select(func.count(DomainRecord.id)))).scalar_one()
    total_scores = (await session.execute(select(func.count(TrendScore.id)))).scalar_one()
    last_event_at = (
        await session.execute(select(func.max(RegistryEvent.observed_at)))
    ).scalar_one_or_none()

    return {
        "total_events": total_events,
        "total_domains": total_domains,
        "total_trend_scores": total_scores,
        "last_event_at": as_utc(last_event_at),
    }
