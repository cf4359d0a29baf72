"""HTTP client for the domain registry API.

RegistryClient wraps httpx.AsyncClient for the three registry calls the
pipeline needs: polling finalized events, acknowledging the poll cursor,
and querying name snapshots over GraphQL. Each call carries its own
timeout; timeouts are never retried here, callers decide the fallback.
"""

import asyncio
from datetime import datetime
from typing import Any, Optional

import httpx
import structlog
from pydantic import ValidationError

from domatrend.config import Settings
from domatrend.models import ClaimStatus
from domatrend.schemas.registry import (
    DomainInfo,
    DomainQueryResult,
    PollResult,
    RegistryEventPayload,
)

log = structlog.get_logger(__name__)

_NAMES_QUERY = """
query GetNames(
  $skip: Int
  $take: Int
  $ownedBy: [AddressCAIP10!]
  $claimStatus: NamesQueryClaimStatus
  $name: String
  $networkIds: [String!]
  $tlds: [String!]
) {
  names(
    skip: $skip
    take: $take
    ownedBy: $ownedBy
    claimStatus: $claimStatus
    name: $name
    networkIds: $networkIds
    tlds: $tlds
  ) {
    items {
      name
      tokens {
        tokenId
        networkId
        ownerAddress
        createdAt
        expiresAt
        tokenAddress
        chain { name networkId }
      }
    }
    totalCount
  }
}
"""


class RegistryUnavailableError(Exception):
    """Raised when a registry call fails (timeout, connection error, 5xx, bad payload)."""
    pass


def extract_price(event: RegistryEventPayload) -> Optional[float]:
    """Parse the payment amount string; missing or invalid -> None."""
    data = event.event_data
    if data is None or data.payment is None or data.payment.price is None:
        return None
    try:
        price = float(data.payment.price)
    except (TypeError, ValueError):
        return None
    if price != price or price in (float("inf"), float("-inf")):
        return None
    return price


def extract_network_id(event: RegistryEventPayload) -> Optional[str]:
    if event.event_data is None:
        return None
    return event.event_data.network_id or None


def extract_tx_hash(event: RegistryEventPayload) -> Optional[str]:
    if event.event_data is None:
        return None
    return event.event_data.tx_hash or None


def _parse_datetime(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _domain_from_item(item: dict) -> DomainInfo:
    """Map one GraphQL names item; the first token carries the on-chain details."""
    tokens = item.get("tokens") or []
    token = tokens[0] if tokens and isinstance(tokens[0], dict) else {}
    owner = token.get("ownerAddress")
    return DomainInfo(
        name=item["name"],
        token_id=token.get("tokenId"),
        owner=owner,
        claim_status=ClaimStatus.CLAIMED.value if owner else ClaimStatus.UNCLAIMED.value,
        network_id=token.get("networkId") or "unknown",
        token_address=token.get("tokenAddress"),
        minted_at=_parse_datetime(token.get("createdAt")),
        last_activity_at=_parse_datetime(token.get("expiresAt")),
    )


class RegistryClient:
    def __init__(self, settings: Settings, http_client: Optional[httpx.AsyncClient] = None) -> None:
        self.settings = settings
        self.client = http_client or httpx.AsyncClient(
            base_url=settings.registry_api_base,
            timeout=httpx.Timeout(settings.registry_poll_timeout, connect=5.0),
            limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
        )

    def _headers(self) -> dict:
        key = self.settings.registry_api_key
        return {"Api-Key": key} if key else {}

    async def _call(self, coro_factory, timeout: float) -> httpx.Response:
        try:
            resp = await asyncio.wait_for(coro_factory(), timeout=timeout)
        except (httpx.HTTPError, asyncio.TimeoutError, ConnectionError, OSError) as exc:
            raise RegistryUnavailableError(str(exc) or type(exc).__name__) from exc
        if resp.status_code >= 500:
            raise RegistryUnavailableError(f"Registry returned {resp.status_code}")
        try:
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise RegistryUnavailableError(str(exc)) from exc
        return resp

    async def poll(self, limit: int, finalized_only: bool = True) -> PollResult:
        """Fetch up to limit events after the server-side acknowledged cursor."""
        params = {"limit": limit, "finalizedOnly": str(finalized_only).lower()}
        resp = await self._call(
            lambda: self.client.get("/v1/poll", params=params, headers=self._headers()),
            timeout=self.settings.registry_poll_timeout,
        )
        try:
            data = resp.json() or {}
        except ValueError as exc:
            raise RegistryUnavailableError("Registry poll returned invalid JSON") from exc
        if not isinstance(data, dict):
            raise RegistryUnavailableError("Registry poll returned a non-object payload")

        raw_events = data.get("events")
        events: list[RegistryEventPayload] = []
        for raw in raw_events if isinstance(raw_events, list) else []:
            try:
                events.append(RegistryEventPayload.model_validate(raw))
            except ValidationError as exc:
                log.warning("registry_event_unparseable", error=str(exc), raw=raw)

        last_id = data.get("lastId")
        return PollResult(
            events=events,
            last_id=last_id if isinstance(last_id, int) else None,
            has_more_events=bool(data.get("hasMoreEvents")),
        )

    async def ack(self, last_id: int) -> None:
        """Advance the server-side cursor past last_id."""
        await self._call(
            lambda: self.client.post(f"/v1/poll/ack/{last_id}", headers=self._headers()),
            timeout=self.settings.registry_ack_timeout,
        )

    async def query_domains(
        self,
        *,
        name: Optional[str] = None,
        skip: int = 0,
        take: int = 100,
        owned_by: Optional[list[str]] = None,
        claim_status: str = "ALL",
        network_ids: Optional[list[str]] = None,
        tlds: Optional[list[str]] = None,
    ) -> DomainQueryResult:
        variables = {
            "skip": skip,
            "take": take,
            "ownedBy": owned_by,
            "claimStatus": claim_status,
            "name": name,
            "networkIds": network_ids,
            "tlds": tlds,
        }
        body = {
            "query": _NAMES_QUERY,
            "variables": {k: v for k, v in variables.items() if v is not None},
        }
        resp = await self._call(
            lambda: self.client.post("/graphql", json=body, headers=self._headers()),
            timeout=self.settings.registry_query_timeout,
        )
        try:
            names = resp.json()["data"]["names"]
            items = [
                _domain_from_item(item)
                for item in names.get("items") or []
                if isinstance(item, dict) and item.get("name")
            ]
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            raise RegistryUnavailableError("Invalid GraphQL response structure") from exc

        return DomainQueryResult(items=items, total_count=names.get("totalCount") or len(items))

    async def get_domain_by_name(self, domain_name: str) -> Optional[DomainInfo]:
        """Single-name lookup; any failure is logged and reported as None."""
        try:
            result = await self.query_domains(name=domain_name.strip(), take=1)
        except RegistryUnavailableError as exc:
            log.warning("registry_domain_lookup_failed", domain=domain_name, error=str(exc))
            return None
        return result.items[0] if result.items else None

    async def close(self) -> None:
        await self.client.aclose()
