"""AI enrichment: best-effort language-model commentary on a trend score.

Fully decoupled from the scoring path. generate() returns None when the
feature is off, the model times out, or the answer fails validation;
None means "no insight available yet", never an error. Successful
insights are cached in ai_insights with their own freshness window.
"""

import asyncio
import json
from datetime import datetime, timedelta
from typing import Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from domatrend.clock import as_utc
from domatrend.config import Settings
from domatrend.models import AiInsight
from domatrend.models.base import dialect_insert
from domatrend.schemas.score import AiInsightResult, TrendScoreResult
from domatrend.schemas.signals import OnChainMetrics, SearchMetrics
from domatrend.services.llm_client import LanguageModelClient, LanguageModelError

log = structlog.get_logger(__name__)

MAX_HIGHLIGHTS = 5
MAX_RECOMMENDATIONS = 3
MAX_RISK_FACTORS = 3

INSIGHT_SCHEMA: dict = {
    "type": "object",
    "additionalProperties": False,
    "required": [
        "summary",
        "sentiment",
        "confidence",
        "keyHighlights",
        "recommendations",
        "riskFactors",
    ],
    "properties": {
        "summary": {"type": "string"},
        "sentiment": {"type": "string", "enum": ["positive", "neutral", "negative"]},
        "confidence": {"type": "number"},
        "keyHighlights": {"type": "array", "items": {"type": "string"}},
        "recommendations": {"type": "array", "items": {"type": "string"}},
        "riskFactors": {"type": "array", "items": {"type": "string"}},
    },
}


class _ModelAnswer(BaseModel):
    """Raw model output; summary, highlights and recommendations are required."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    summary: str = Field(min_length=1)
    sentiment: Optional[str] = None
    confidence: Optional[float] = None
    key_highlights: list[str] = Field(alias="keyHighlights")
    recommendations: list[str]
    risk_factors: list[str] = Field(default_factory=list, alias="riskFactors")

    @field_validator("key_highlights", "recommendations", "risk_factors", mode="before")
    @classmethod
    def _strings_only(cls, value):
        if not isinstance(value, list):
            raise ValueError("expected a list")
        return [str(item) for item in value if item]


def _trend_label(trend_direction: float) -> str:
    if trend_direction >= 66:
        return "growing"
    if trend_direction <= 33:
        return "declining"
    return "stable"


def build_prompt(
    domain_name: str,
    score: TrendScoreResult,
    search: SearchMetrics,
    onchain: OnChainMetrics,
) -> str:
    b = score.breakdown
    return f"""You are an analyst specialised in valuing tokenized Web3 domain names.
Assess whether "{domain_name}" is a worthwhile acquisition for a Web3 project, DAO,
DeFi protocol, NFT collection or for resale, using only the data below.

Search trend metrics:
- Trend score: {b.trend_direction:.2f} / 100 ({_trend_label(b.trend_direction)})
- Search volume score: {b.search_volume:.2f} / 100
- Trend strength: {search.trend * 100:.2f}%
- Related queries: {len(search.related_queries)}
- Geographic diversity: {len(search.geographic_data)} regions

On-chain metrics:
- Activity score: {b.on_chain_activity:.2f} / 100
- Transactions: {onchain.transaction_count}
- Unique owners: {onchain.unique_owners}
- Average price: {onchain.average_price}
- Liquidity score: {onchain.liquidity:.2f}
- Rarity score: {b.rarity:.2f} / 100

Overall score: {score.score:.2f} / 100
Confidence: {score.confidence * 100:.0f}%

Respond with JSON only:
- summary: at most 3 sentences on the investment case
- sentiment: positive, neutral or negative
- confidence: 0.0-1.0
- keyHighlights: up to {MAX_HIGHLIGHTS} reasons the name could be valuable
- recommendations: up to {MAX_RECOMMENDATIONS} concrete actions
- riskFactors: up to {MAX_RISK_FACTORS} market, competition or technical risks
"""


def parse_insight(
    raw: str,
    score: TrendScoreResult,
    search: SearchMetrics,
) -> Optional[AiInsightResult]:
    """Validate model output and truncate list fields; None when unusable."""
    try:
        answer = _ModelAnswer.model_validate(json.loads(raw))
    except (ValueError, ValidationError) as exc:
        log.warning("ai_insight_invalid_response", domain=score.domain_name, error=str(exc))
        return None

    sentiment = answer.sentiment if answer.sentiment in ("positive", "neutral", "negative") else "neutral"
    confidence = answer.confidence if answer.confidence is not None else score.confidence

    return AiInsightResult(
        summary=answer.summary,
        sentiment=sentiment,
        confidence=max(0.0, min(1.0, confidence)),
        key_highlights=answer.key_highlights[:MAX_HIGHLIGHTS],
        recommendations=answer.recommendations[:MAX_RECOMMENDATIONS],
        risk_factors=answer.risk_factors[:MAX_RISK_FACTORS],
        data_points_used={
            "search_trend_strength": search.trend,
            "search_volume": search.volume,
            "on_chain_activity_score": score.breakdown.on_chain_activity,
            "rarity_score": score.breakdown.rarity,
        },
    )


class AiEnrichment:
    def __init__(self, settings: Settings, llm: LanguageModelClient) -> None:
        self.settings = settings
        self.llm = llm

    @property
    def enabled(self) -> bool:
        return self.llm.enabled

    async def generate(
        self,
        domain_name: str,
        score: TrendScoreResult,
        search: SearchMetrics,
        onchain: OnChainMetrics,
    ) -> Optional[AiInsightResult]:
        if not self.enabled:
            log.debug("ai_insight_disabled", domain=domain_name)
            return None

        prompt = build_prompt(domain_name, score, search, onchain)
        try:
            raw = await asyncio.wait_for(
                self.llm.complete(prompt, INSIGHT_SCHEMA, schema_name="domain_insight"),
                timeout=self.settings.openai_timeout,
            )
        except asyncio.TimeoutError:
            log.warning("ai_insight_timeout", domain=domain_name, timeout=self.settings.openai_timeout)
            return None
        except LanguageModelError as exc:
            log.warning("ai_insight_request_failed", domain=domain_name, error=str(exc))
            return None

        insight = parse_insight(raw, score, search)
        if insight is not None:
            log.info("ai_insight_generated", domain=domain_name, sentiment=insight.sentiment)
        return insight


async def get_insight(session: AsyncSession, domain_name: str) -> Optional[AiInsight]:
    result = await session.execute(
        select(AiInsight)
        .where(AiInsight.domain_name == domain_name)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


def is_insight_fresh(insight: AiInsight, now: datetime, freshness_hours: int) -> bool:
    return now - as_utc(insight.created_at) < timedelta(hours=freshness_hours)


def to_result(insight: AiInsight) -> AiInsightResult:
    return AiInsightResult(
        summary=insight.summary,
        sentiment=insight.sentiment if insight.sentiment in ("positive", "neutral", "negative") else "neutral",
        confidence=insight.confidence,
        key_highlights=list(insight.key_highlights or [])[:MAX_HIGHLIGHTS],
        recommendations=list(insight.recommendations or [])[:MAX_RECOMMENDATIONS],
        risk_factors=list(insight.risk_factors or [])[:MAX_RISK_FACTORS],
        data_points_used=insight.data_points_used,
        created_at=as_utc(insight.created_at),
    )


async def save_insight(
    session: AsyncSession,
    domain_name: str,
    trend_score: float,
    insight: AiInsightResult,
    now: datetime,
) -> None:
    """Upsert the cached insight for domain_name (last writer wins)."""
    values = {
        "trend_score": trend_score,
        "summary": insight.summary,
        "sentiment": insight.sentiment,
        "confidence": insight.confidence,
        "key_highlights": insight.key_highlights,
        "recommendations": insight.recommendations,
        "risk_factors": insight.risk_factors,
        "data_points_used": insight.data_points_used,
        "created_at": now,
    }
    stmt = dialect_insert(session, AiInsight).values(domain_name=domain_name, **values)
    stmt = stmt.on_conflict_do_update(index_elements=["domain_name"], set_=values)
    await session.execute(stmt)
    await session.commit()
