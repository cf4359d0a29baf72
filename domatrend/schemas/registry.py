"""Pydantic schemas for registry payloads.

The registry owns these shapes, so parsing is tolerant: unknown keys are
ignored and every optional field defaults.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class EventPayment(BaseModel):
    model_config = ConfigDict(extra="ignore")

    price: Optional[str] = None


class EventData(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    tx_hash: Optional[str] = Field(None, alias="txHash")
    network_id: Optional[str] = Field(None, alias="networkId")
    token_address: Optional[str] = Field(None, alias="tokenAddress")
    token_id: Optional[str] = Field(None, alias="tokenId")
    payment: Optional[EventPayment] = None


class RegistryEventPayload(BaseModel):
    """One raw event from the registry poll endpoint."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: Optional[int] = None
    type: str
    name: str
    unique_id: Optional[str] = Field(None, alias="uniqueId")
    event_data: Optional[EventData] = Field(None, alias="eventData")


class PollResult(BaseModel):
    events: list[RegistryEventPayload] = Field(default_factory=list)
    last_id: Optional[int] = None
    has_more_events: bool = False


class DomainInfo(BaseModel):
    """Registry snapshot of a single name, as fed to the domains upsert."""

    name: str
    token_id: Optional[str] = None
    owner: Optional[str] = None
    claim_status: str = "UNCLAIMED"
    network_id: str = "unknown"
    token_address: Optional[str] = None
    minted_at: Optional[datetime] = None
    last_activity_at: Optional[datetime] = None


class DomainQueryResult(BaseModel):
    items: list[DomainInfo] = Field(default_factory=list)
    total_count: int = 0


class StoredEvent(BaseModel):
    """An event as persisted in the event store."""

    model_config = ConfigDict(from_attributes=True)

    unique_id: str
    event_type: str
    domain_name: str
    price: Optional[float] = None
    tx_hash: Optional[str] = None
    network_id: Optional[str] = None
    observed_at: datetime
