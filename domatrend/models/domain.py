"""Domain registry snapshot.

One row per name, upserted whenever fresh registry data is observed.
Merge policy lives in services.domains.merge_domain_record.
"""

import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class ClaimStatus(str, enum.Enum):
    CLAIMED = "CLAIMED"
    UNCLAIMED = "UNCLAIMED"


class DomainRecord(Base):
    __tablename__ = "domains"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    token_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    owner: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    claim_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ClaimStatus.UNCLAIMED.value
    )
    network_id: Mapped[str] = mapped_column(String(100), nullable=False, default="unknown")
    token_address: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    minted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    last_activity_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
