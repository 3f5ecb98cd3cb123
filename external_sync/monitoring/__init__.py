"""Monitoring subpackage: observability components."""

from external_sync.monitoring.metrics import (
    FETCHES,
    ITEMS,
    PAGES,
    RUNS,
    SYNC_DURATION_S,
    record_fetch,
    record_items,
    record_page,
    record_run,
)
from external_sync.monitoring.logging_utils import (
    configure_logging,
    get_event_logger,
    get_logger,
    log_event,
)
from external_sync.monitoring.metrics_server import run_metrics_server

__all__ = [
    # metrics
    "FETCHES",
    "ITEMS",
    "PAGES",
    "RUNS",
    "SYNC_DURATION_S",
    "record_fetch",
    "record_items",
    "record_page",
    "record_run",
    # logging
    "configure_logging",
    "get_event_logger",
    "get_logger",
    "log_event",
    # metrics_server
    "run_metrics_server",
]
