"""Signal values consumed by the trend scorer.

Both are ephemeral: SearchMetrics lives in the TTL cache, OnChainMetrics
is recomputed on every scoring run.
"""

from datetime import datetime

from pydantic import BaseModel, Field


class SearchMetrics(BaseModel):
    volume: float = Field(ge=0, le=100)
    trend: float = Field(ge=-1, le=1)
    related_queries: list[str] = Field(default_factory=list, max_length=5)
    geographic_data: dict[str, float] = Field(default_factory=dict)
    time_range_start: datetime
    time_range_end: datetime


class OnChainMetrics(BaseModel):
    transaction_count: int = 0
    unique_owners: int = 0
    average_price: float = 0.0
    liquidity: float = Field(0.0, ge=0, le=100)
    rarity: float = Field(0.0, ge=0, le=100)
