from prometheus_client import Counter, Histogram


FETCHES = Counter(
    "external_sync_fetches_total",
    "HTTP fetch attempts made by the sync engine",
    ["host", "outcome"],
)
PAGES = Counter(
    "external_sync_pages_total", "Pages fetched and extracted", ["host"]
)
ITEMS = Counter(
    "external_sync_items_total", "Items extracted per source", ["source"]
)
RUNS = Counter("external_sync_runs_total", "Source sync runs", ["status"])
SYNC_DURATION_S = Histogram(
    "external_sync_duration_seconds",
    "Wall-clock duration of one source sync",
    buckets=(0.5, 1, 2, 5, 10, 30, 60, 120, 300, 600),
)


def record_fetch(host: str, outcome: str) -> None:
    FETCHES.labels(host=host, outcome=outcome).inc()


def record_page(host: str) -> None:
    PAGES.labels(host=host).inc()


def record_items(source: str, count: int) -> None:
    ITEMS.labels(source=source).inc(count)


def record_run(status: str, duration_s: float | None = None) -> None:
    RUNS.labels(status=status).inc()
    if duration_s is not None:
        SYNC_DURATION_S.observe(duration_s)
