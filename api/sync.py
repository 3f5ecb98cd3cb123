from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
import redis.asyncio as redis

from external_sync.config import Settings
from external_sync.ingest.service import SyncService
from external_sync.ingest.fetcher import open_session
from external_sync.monitoring.logging_utils import get_event_logger
from external_sync.pipeline import STATUS_ERROR, STATUS_NOT_MODIFIED, sync_source
from external_sync.storage.redis_store import (
    RedisItemStore,
    RedisSourceStore,
    SourceNotFound,
)

log_event = get_event_logger("api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    redis_client = redis.from_url(Settings.redis_url)
    session = open_session()
    app.state.redis_client = redis_client
    app.state.sources = RedisSourceStore(redis_client)
    app.state.items = RedisItemStore(redis_client)
    app.state.service = SyncService(session)
    log_event("startup", allowlist=",".join(sorted(app.state.service.allowlist)))
    try:
        yield
    finally:
        await session.close()
        await redis_client.aclose()


app = FastAPI(lifespan=lifespan)


async def _get_source(source_id: str):
    try:
        return await app.state.sources.get(source_id)
    except SourceNotFound:
        raise HTTPException(status_code=404, detail="source not found") from None


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}


@app.get("/sources")
async def list_sources() -> dict:
    records = await app.state.sources.list()
    return {"count": len(records), "results": [record.to_dict() for record in records]}


@app.get("/sources/{source_id}/items")
async def list_items(source_id: str) -> dict:
    await _get_source(source_id)
    items = await app.state.items.list(source_id)
    return {"count": len(items), "results": [item.to_dict() for item in items]}


@app.post("/sources/{source_id}/sync")
async def trigger_sync(source_id: str) -> dict:
    record = await _get_source(source_id)
    if not record.enabled:
        raise HTTPException(status_code=400, detail="source disabled")
    outcome = await sync_source(
        app.state.service, record, app.state.sources, app.state.items
    )
    if outcome.status == STATUS_NOT_MODIFIED:
        return {"message": "no changes", "itemsUpserted": 0}
    if outcome.status == STATUS_ERROR:
        raise HTTPException(status_code=502, detail="failed to sync source")
    return {
        "message": "sync completed",
        "itemsUpserted": outcome.items,
        "etag": outcome.etag,
        "lastModified": (
            outcome.last_modified.isoformat() if outcome.last_modified else None
        ),
    }
