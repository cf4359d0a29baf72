"""Pydantic schemas for trend scores and AI insights."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from domatrend.clock import as_utc

Sentiment = Literal["positive", "neutral", "negative"]


class ScoreBreakdown(BaseModel):
    search_volume: float
    trend_direction: float
    on_chain_activity: float
    rarity: float


class AiInsightResult(BaseModel):
    """Validated language-model commentary, as cached and served."""

    model_config = ConfigDict(from_attributes=True)

    summary: str
    sentiment: Sentiment = "neutral"
    confidence: Optional[float] = None
    key_highlights: list[str] = Field(default_factory=list, max_length=5)
    recommendations: list[str] = Field(default_factory=list, max_length=3)
    risk_factors: list[str] = Field(default_factory=list, max_length=3)
    data_points_used: Optional[dict] = None
    created_at: Optional[datetime] = None


class TrendScoreResult(BaseModel):
    domain_name: str
    score: float
    breakdown: ScoreBreakdown
    last_updated: datetime
    data_points: int
    confidence: float
    # None means "not yet available", never an error
    ai_analysis: Optional[AiInsightResult] = None

    @classmethod
    def from_row(cls, row, ai_analysis: Optional[AiInsightResult] = None) -> "TrendScoreResult":
        return cls(
            domain_name=row.domain_name,
            score=row.score,
            breakdown=ScoreBreakdown(
                search_volume=row.search_volume,
                trend_direction=row.trend_direction,
                on_chain_activity=row.on_chain_activity,
                rarity=row.rarity,
            ),
            last_updated=as_utc(row.last_updated),
            data_points=row.data_points,
            confidence=row.confidence,
            ai_analysis=ai_analysis,
        )


class ScoreDomainRequest(BaseModel):
    domain_name: str = Field(min_length=1, max_length=255)
    force_update: bool = False
