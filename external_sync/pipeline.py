from dataclasses import asdict, dataclass
from datetime import datetime, timezone
import time

from external_sync.ingest.allowlist import normalize_base_url
from external_sync.ingest.errors import NotModified, SyncError
from external_sync.ingest.service import SyncService
from external_sync.monitoring.logging_utils import get_event_logger
from external_sync.monitoring.metrics import record_items, record_run
from external_sync.storage.ports import ItemStore, SourceStore
from external_sync.storage.records import SourceRecord

log_event = get_event_logger("pipeline")

STATUS_OK = "ok"
STATUS_NOT_MODIFIED = "not_modified"
STATUS_ERROR = "error"


@dataclass
class SourceOutcome:
    id: str
    name: str
    status: str
    items: int = 0
    error: str | None = None
    etag: str | None = None
    last_modified: datetime | None = None

    def to_dict(self) -> dict:
        payload = asdict(self)
        payload["last_modified"] = (
            self.last_modified.isoformat() if self.last_modified else None
        )
        return {key: value for key, value in payload.items() if value is not None}


async def sync_source(
    service: SyncService,
    record: SourceRecord,
    sources: SourceStore,
    items: ItemStore,
) -> SourceOutcome:
    """Sync one source and persist its items and validators.

    Nothing is persisted unless the sync succeeds.
    """
    started = time.monotonic()
    try:
        base_url = normalize_base_url(record.base_url)
        log_event("start", id=record.id, name=record.name)
        result = await service.sync(record.snapshot(base_url))
    except NotModified:
        log_event("unchanged", id=record.id)
        record_run(STATUS_NOT_MODIFIED, time.monotonic() - started)
        return SourceOutcome(id=record.id, name=record.name, status=STATUS_NOT_MODIFIED)
    except SyncError as exc:
        log_event("failed", id=record.id, error=str(exc))
        record_run(STATUS_ERROR, time.monotonic() - started)
        return SourceOutcome(
            id=record.id, name=record.name, status=STATUS_ERROR, error=str(exc)
        )

    if result.items:
        await items.upsert(result.items)
    await sources.update_sync_state(
        record.id, result.etag, result.last_modified, result.fetched_at
    )
    record_items(record.name or record.id, len(result.items))
    record_run(STATUS_OK, time.monotonic() - started)
    log_event("completed", id=record.id, items=len(result.items))
    return SourceOutcome(
        id=record.id,
        name=record.name,
        status=STATUS_OK,
        items=len(result.items),
        etag=result.etag,
        last_modified=result.last_modified,
    )


async def run_sync(
    service: SyncService, sources: SourceStore, items: ItemStore
) -> list[SourceOutcome]:
    """Sync every enabled source in name order, continuing past failures."""
    outcomes = []
    for record in await sources.list():
        if not record.enabled:
            continue
        outcomes.append(await sync_source(service, record, sources, items))
    log_event(
        "done",
        sources=len(outcomes),
        ok=sum(1 for outcome in outcomes if outcome.status == STATUS_OK),
        failed=sum(1 for outcome in outcomes if outcome.status == STATUS_ERROR),
    )
    return outcomes


def summarize(outcomes: list[SourceOutcome]) -> dict:
    return {
        "completedAt": datetime.now(timezone.utc).isoformat(),
        "results": [outcome.to_dict() for outcome in outcomes],
    }
