"""Trend score endpoints.

POST /api/v1/domains/score          -- score a domain (optionally forced)
GET  /api/v1/domains/trending       -- top domains by score
GET  /api/v1/domains/{name}/score   -- cached-or-fresh score for one domain
"""

from fastapi import APIRouter, HTTPException, Query

from domatrend.dependencies import Scorer
from domatrend.schemas.score import ScoreDomainRequest, TrendScoreResult
from domatrend.services.domains import InvalidDomainNameError

router = APIRouter(prefix="/api/v1/domains", tags=["domains"])


@router.post("/score", response_model=TrendScoreResult)
async def score_domain(body: ScoreDomainRequest, scorer: Scorer) -> TrendScoreResult:
    try:
        return await scorer.update_trend_score(body.domain_name, force_update=body.force_update)
    except InvalidDomainNameError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@router.get("/trending")
async def trending_domains(
    scorer: Scorer,
    limit: int = Query(10, ge=1, le=100),
) -> dict:
    """Return the highest-scoring domains, best first."""
    scores = await scorer.get_top_trending_domains(limit)
    return {"domains": [s.model_dump(mode="json") for s in scores], "count": len(scores)}


@router.get("/{domain_name}/score", response_model=TrendScoreResult)
async def get_domain_score(domain_name: str, scorer: Scorer) -> TrendScoreResult:
    """Non-forced score; ai_analysis is null until an insight has been generated."""
    try:
        return await scorer.update_trend_score(domain_name, force_update=False)
    except InvalidDomainNameError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
