"""Trend score snapshot.

One row per domain, overwritten on every recompute (last writer wins).
score is always the weighted sum of the four breakdown columns.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, Integer, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class TrendScore(Base):
    __tablename__ = "trend_scores"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    domain_name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    score: Mapped[float] = mapped_column(Float, nullable=False, index=True)

    # Breakdown components, each 0-100
    search_volume: Mapped[float] = mapped_column(Float, nullable=False)
    trend_direction: Mapped[float] = mapped_column(Float, nullable=False)
    on_chain_activity: Mapped[float] = mapped_column(Float, nullable=False)
    rarity: Mapped[float] = mapped_column(Float, nullable=False)

    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )
    data_points: Mapped[int] = mapped_column(Integer, nullable=False, server_default="1")
    confidence: Mapped[float] = mapped_column(Float, nullable=False, server_default="0.5")
