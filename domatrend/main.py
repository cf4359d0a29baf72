import asyncio
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Response
from sqlalchemy import text

from domatrend.config import settings
from domatrend.logging_config import configure_logging
from domatrend.metrics import metrics_endpoint
from domatrend.routers import domains, events
from domatrend.services.enrichment import AiEnrichment
from domatrend.services.llm_client import LanguageModelClient
from domatrend.services.onchain import OnChainAggregator
from domatrend.services.registry_client import RegistryClient
from domatrend.services.search_signals import SearchSignalProvider
from domatrend.services.trend_scorer import TrendScorer
from domatrend.services.usage import UsageCounter
from domatrend.worker.poller import RegistryPoller, poll_worker_loop
from domatrend.worker.refresher import refresher_worker_loop

log = structlog.get_logger(__name__)


def build_components(app: FastAPI, session_factory) -> None:
    """Construct the pipeline once per process and hang it on app.state."""
    registry = RegistryClient(settings)
    usage = UsageCounter(session_factory)
    search = SearchSignalProvider(settings, usage)
    onchain = OnChainAggregator(settings, session_factory, registry=registry)
    llm = LanguageModelClient(settings)
    scorer = TrendScorer(
        settings,
        session_factory,
        search=search,
        onchain=onchain,
        enrichment=AiEnrichment(settings, llm),
    )

    app.state.session_factory = session_factory
    app.state.registry = registry
    app.state.search = search
    app.state.llm = llm
    app.state.scorer = scorer
    app.state.poller = RegistryPoller(settings, session_factory, registry, scorer)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Configure structured logging before anything else
    configure_logging()

    from domatrend.database import async_session_factory

    build_components(app, async_session_factory)

    # Start background workers and store in app.state for health checks
    if settings.poll_enabled:
        app.state.poll_worker_task = asyncio.create_task(
            poll_worker_loop(app.state.poller, settings.poll_interval_seconds)
        )
    if settings.stale_refresh_enabled:
        app.state.refresher_worker_task = asyncio.create_task(
            refresher_worker_loop(app.state.scorer, settings.score_update_interval_hours * 3600)
        )
    log.info(
        "app_started",
        poll_enabled=settings.poll_enabled,
        stale_refresh_enabled=settings.stale_refresh_enabled,
    )
    try:
        yield
    finally:
        for name in ("poll_worker_task", "refresher_worker_task"):
            task = getattr(app.state, name, None)
            if task is not None:
                task.cancel()
        await app.state.registry.close()
        await app.state.search.close()
        await app.state.llm.close()


app = FastAPI(title="DomaTrend API", version="0.1.0", lifespan=lifespan)

app.include_router(domains.router)
app.include_router(events.router)

# Prometheus metrics endpoint
app.get("/metrics")(metrics_endpoint)


def _worker_check(name: str, enabled: bool) -> dict:
    if not enabled:
        return {"status": "disabled"}
    worker = getattr(app.state, name, None)
    if worker is None:
        return {"status": "unhealthy", "error": "Worker not initialized"}
    if worker.done() or worker.cancelled():
        return {"status": "unhealthy", "error": "Worker task stopped"}
    return {"status": "healthy"}


@app.get("/health")
async def health_check(response: Response):
    """Health check over the database and both background workers.

    Returns 200 if all components are healthy, 503 if any component is unhealthy.
    """
    checks = {}

    try:
        async with app.state.session_factory() as db:
            await db.execute(text("SELECT 1"))
        checks["database"] = {"status": "healthy"}
    except Exception as e:
        checks["database"] = {"status": "unhealthy", "error": str(e)}

    checks["poll_worker"] = _worker_check("poll_worker_task", settings.poll_enabled)
    checks["refresher_worker"] = _worker_check(
        "refresher_worker_task", settings.stale_refresh_enabled
    )

    overall_healthy = all(c["status"] != "unhealthy" for c in checks.values())
    response.status_code = 200 if overall_healthy else 503
    return {"status": "healthy" if overall_healthy else "unhealthy", "checks": checks}
