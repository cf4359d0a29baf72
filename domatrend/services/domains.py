"""Domain registry snapshot: name validation and coalesce-on-conflict upsert."""

import re
from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from domatrend.models import DomainRecord
from domatrend.models.base import dialect_insert
from domatrend.schemas.registry import DomainInfo

log = structlog.get_logger(__name__)

MAX_DOMAIN_LENGTH = 255

_DOMAIN_RE = re.compile(r"^[A-Za-z0-9_\-.]+$")

# Fields merged with "new value wins when present, else keep existing"
_MERGED_FIELDS = (
    "token_id",
    "owner",
    "claim_status",
    "network_id",
    "token_address",
    "minted_at",
    "last_activity_at",
)


class InvalidDomainNameError(ValueError):
    """Raised for caller-supplied domain names that cannot be scored."""
    pass


def validate_domain_name(domain_name) -> str:
    """Return the trimmed name or raise InvalidDomainNameError."""
    if not isinstance(domain_name, str):
        raise InvalidDomainNameError("Domain name is required")
    name = domain_name.strip()
    if not name:
        raise InvalidDomainNameError("Domain name is required")
    if len(name) > MAX_DOMAIN_LENGTH:
        raise InvalidDomainNameError(
            f"Domain name must be at most {MAX_DOMAIN_LENGTH} characters"
        )
    if not _DOMAIN_RE.match(name) or name.startswith(".") or name.endswith("."):
        raise InvalidDomainNameError(f"Invalid domain name: {name!r}")
    return name


def merge_domain_record(
    existing: Optional[dict], incoming: DomainInfo, now: datetime
) -> dict:
    """Merge an incoming registry snapshot over the stored one.

    A present incoming value wins; an absent (None) one keeps the stored
    value. updated_at always advances to now.
    """
    current = existing or {}
    merged = {"name": incoming.name}
    for field in _MERGED_FIELDS:
        value = getattr(incoming, field)
        merged[field] = value if value is not None else current.get(field)

    if merged["claim_status"] is None:
        merged["claim_status"] = "UNCLAIMED"
    if merged["network_id"] is None:
        merged["network_id"] = "unknown"
    merged["updated_at"] = now
    return merged


def _record_to_dict(record: DomainRecord) -> dict:
    return {field: getattr(record, field) for field in _MERGED_FIELDS}


async def get_domain(session: AsyncSession, name: str) -> Optional[DomainRecord]:
    # populate_existing: an upsert may have changed the row behind the identity map
    result = await session.execute(
        select(DomainRecord)
        .where(DomainRecord.name == name)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def upsert_domain(session: AsyncSession, info: DomainInfo, now: datetime) -> None:
    """Insert or merge the snapshot for info.name and commit."""
    existing = await get_domain(session, info.name)
    merged = merge_domain_record(
        _record_to_dict(existing) if existing is not None else None, info, now
    )

    stmt = dialect_insert(session, DomainRecord).values(**merged)
    stmt = stmt.on_conflict_do_update(
        index_elements=["name"],
        set_={key: value for key, value in merged.items() if key != "name"},
    )
    await session.execute(stmt)
    await session.commit()

    log.debug("domain_upserted", domain=info.name, claim_status=merged["claim_status"])


async def list_domains(
    session: AsyncSession, limit: int = 100, offset: int = 0
) -> list[DomainRecord]:
    result = await session.execute(
        select(DomainRecord)
        .order_by(DomainRecord.updated_at.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all())
