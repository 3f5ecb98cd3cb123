import logging
from functools import partial
from typing import Callable

from external_sync.config import Settings

ROOT_LOGGER = "external_sync"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
LOG_DATEFMT = "%Y-%m-%dT%H:%M:%S"


def configure_logging(level: int = logging.INFO) -> None:
    """Attach a stream handler to the package logger once."""
    root = logging.getLogger(ROOT_LOGGER)
    if root.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
    root.addHandler(handler)
    root.setLevel(level)


def get_logger(component: str) -> logging.Logger:
    configure_logging()
    return logging.getLogger(f"{ROOT_LOGGER}.{component}")


def format_fields(fields: dict[str, object]) -> str:
    # None values are dropped; values containing spaces are quoted.
    parts = []
    for key, value in fields.items():
        if value is None:
            continue
        text = str(value)
        if " " in text:
            text = repr(text)
        parts.append(f"{key}={text}")
    return " ".join(parts)


def log_event(logger: logging.Logger, event: str, **fields: object) -> None:
    if not Settings.sync_log:
        return
    logger.info("%s %s", event, format_fields(fields))


def get_event_logger(component: str) -> Callable[..., None]:
    return partial(log_event, get_logger(component))
