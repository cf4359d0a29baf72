"""FastAPI dependencies resolving the components built in the lifespan."""

from typing import Annotated, AsyncIterator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from domatrend.services.trend_scorer import TrendScorer
from domatrend.worker.poller import RegistryPoller


async def get_session(request: Request) -> AsyncIterator[AsyncSession]:
    async with request.app.state.session_factory() as session:
        yield session


def get_scorer(request: Request) -> TrendScorer:
    return request.app.state.scorer


def get_poller(request: Request) -> RegistryPoller:
    return request.app.state.poller


DbSession = Annotated[AsyncSession, Depends(get_session)]
Scorer = Annotated[TrendScorer, Depends(get_scorer)]
Poller = Annotated[RegistryPoller, Depends(get_poller)]
