"""Event store endpoints.

GET  /api/v1/events/recent -- latest ingested registry events
GET  /api/v1/events/stats  -- pipeline row counts
POST /api/v1/events/poll   -- run one polling cycle now
"""

from fastapi import APIRouter, Query

from domatrend.dependencies import DbSession, Poller
from domatrend.schemas.registry import StoredEvent
from domatrend.services import event_store

router = APIRouter(prefix="/api/v1/events", tags=["events"])


@router.get("/recent")
async def recent_events(db: DbSession, limit: int = Query(50, ge=1, le=500)) -> dict:
    events = await event_store.recent(db, limit=limit)
    return {
        "events": [StoredEvent.model_validate(e).model_dump(mode="json") for e in events],
        "count": len(events),
    }


@router.get("/stats")
async def event_stats(db: DbSession) -> dict:
    return await event_store.get_stats(db)


@router.post("/poll")
async def trigger_poll(poller: Poller) -> dict:
    """Run a polling cycle; reports skipped when one is already in flight."""
    stats = await poller.record_poll_cycle()
    if stats is None:
        return {"status": "skipped"}
    return {"status": "completed", **stats}
