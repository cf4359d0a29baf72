"""AI insight cache.

Best-effort language-model commentary per domain. Has its own freshness
window, independent of the trend score it was generated from.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, DateTime, Float, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class AiInsight(Base):
    __tablename__ = "ai_insights"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    domain_name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    trend_score: Mapped[float] = mapped_column(Float, nullable=False)
    summary: Mapped[str] = mapped_column(Text, nullable=False)
    sentiment: Mapped[str] = mapped_column(String(20), nullable=False, server_default="neutral")
    confidence: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    key_highlights: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    recommendations: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    risk_factors: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    data_points_used: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
