import threading

from prometheus_client import start_http_server

from external_sync.config import Settings
from external_sync.monitoring.logging_utils import get_event_logger

log_event = get_event_logger("metrics")


def run_metrics_server(port: int | None = None, stop: threading.Event | None = None) -> None:
    """Serve the default registry until ``stop`` is set (forever by default)."""
    port = port or Settings.metrics_port
    start_http_server(port)
    log_event("listening", port=port)
    (stop or threading.Event()).wait()
