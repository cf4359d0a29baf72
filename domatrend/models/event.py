"""Registry event model.

Append-only log of domain lifecycle events reported by the registry.
unique_id is the provider-assigned dedup key; rows are never updated
or deleted.
"""

import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, DateTime, Float, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class RegistryEventType(str, enum.Enum):
    NAME_TOKEN_MINTED = "NAME_TOKEN_MINTED"
    NAME_TOKEN_TRANSFERRED = "NAME_TOKEN_TRANSFERRED"
    NAME_RENEWED = "NAME_RENEWED"
    NAME_UPDATED = "NAME_UPDATED"
    NAME_DETOKENIZED = "NAME_DETOKENIZED"


class RegistryEvent(Base):
    __tablename__ = "events"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    unique_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    # Registry-side sequence id, used for cursor acknowledgement
    registry_event_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    event_type: Mapped[str] = mapped_column(String(40), nullable=False)
    domain_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    tx_hash: Mapped[Optional[str]] = mapped_column(String(130), nullable=True)
    network_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    observed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )
