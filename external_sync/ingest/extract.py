from __future__ import annotations

from datetime import datetime, timezone
import hashlib
import json
from typing import Any
from urllib.parse import urlparse

from bs4 import BeautifulSoup
from bs4.builder import ParserRejectedMarkup

from external_sync.ingest.types import (
    KIND_POST,
    KIND_PROJECT,
    KIND_SERVICE,
    ExtractedItem,
    Source,
    parse_http_date,
)
from external_sync.monitoring.logging_utils import get_event_logger

log_event = get_event_logger("extract")

JSON_LD_TYPE = "application/ld+json"
UNWANTED_TAGS = ("script", "style", "noscript")

PATH_KINDS: tuple[tuple[str, str], ...] = (
    ("/project", KIND_PROJECT),
    ("/service", KIND_SERVICE),
    ("/blog", KIND_POST),
    ("/post", KIND_POST),
)
TYPE_KINDS: dict[str, str] = {
    "creativework": KIND_PROJECT,
    "project": KIND_PROJECT,
    "portfolio": KIND_PROJECT,
    "service": KIND_SERVICE,
    "offer": KIND_SERVICE,
}
DATE_ONLY_FORMATS = ("%Y-%m-%d", "%Y-%m")


def string_from(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return ""
    if isinstance(value, (int, float)):
        return str(value)
    return ""


def first_non_empty(*values: str) -> str:
    for value in values:
        trimmed = value.strip()
        if trimmed:
            return trimmed
    return ""


def sanitize_text(value: str) -> str:
    """Strip every tag, keeping only the visible text."""
    value = value.strip()
    if not value:
        return ""
    soup = BeautifulSoup(value, "html.parser")
    for tag_name in UNWANTED_TAGS:
        for tag in soup.find_all(tag_name):
            tag.decompose()
    return " ".join(soup.get_text(" ").split())


def compute_hash(*values: str) -> str:
    hasher = hashlib.sha256()
    for value in values:
        hasher.update(value.encode("utf-8"))
        hasher.update(b"\x00")
    return hasher.hexdigest()


def parse_published_at(raw: str) -> datetime | None:
    """Parse RFC 3339, ``YYYY-MM-DD``, RFC 1123 or ``YYYY-MM``; else ``None``."""
    raw = raw.strip()
    if not raw:
        return None
    if "T" in raw:
        try:
            parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            parsed = None
        if parsed is not None and parsed.tzinfo is not None:
            return parsed
    for fmt in DATE_ONLY_FORMATS:
        try:
            return datetime.strptime(raw, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    if "," in raw:
        return parse_http_date(raw)
    return None


def infer_kind(path: str, type_value: str) -> str:
    lower = path.lower()
    for fragment, kind in PATH_KINDS:
        if fragment in lower:
            return kind
    return TYPE_KINDS.get(type_value.strip().lower(), KIND_POST)


def _is_json_ld(value: str | None) -> bool:
    if not value:
        return False
    return value.split(";", 1)[0].strip().lower() == JSON_LD_TYPE


def item_from_json_ld(
    source: Source, page_url: str, entry: Any
) -> ExtractedItem | None:
    if not isinstance(entry, dict):
        return None

    title = first_non_empty(
        string_from(entry.get("name")),
        string_from(entry.get("headline")),
        string_from(entry.get("title")),
    )
    if not title:
        return None

    summary = sanitize_text(
        first_non_empty(
            string_from(entry.get("headline")),
            string_from(entry.get("description")),
        )
    )
    content = sanitize_text(
        first_non_empty(
            string_from(entry.get("about")),
            string_from(entry.get("articleBody")),
        )
    )

    metadata: dict[str, Any] = {}
    image = string_from(entry.get("image"))
    if image:
        metadata["image"] = image
    if source.name:
        metadata["sourceName"] = source.name

    return ExtractedItem(
        source_id=source.id,
        kind=infer_kind(urlparse(page_url).path, string_from(entry.get("@type"))),
        title=title,
        url=page_url,
        hash=compute_hash(page_url, title, summary, content),
        summary=summary or None,
        content=content or None,
        metadata=metadata,
        published_at=parse_published_at(string_from(entry.get("datePublished"))),
    )


def extract_items(
    source: Source, page_url: str, html: bytes | str
) -> list[ExtractedItem]:
    try:
        soup = BeautifulSoup(html, "html.parser")
    except ParserRejectedMarkup:
        log_event("skip", url=page_url, reason="html_parse")
        return []

    items: list[ExtractedItem] = []
    for script in soup.find_all("script", attrs={"type": _is_json_ld}):
        payload = (script.string or script.get_text()).strip()
        if not payload:
            continue
        try:
            data = json.loads(payload)
        except (json.JSONDecodeError, RecursionError):
            log_event("skip", url=page_url, reason="json_ld_decode")
            continue
        entries = data if isinstance(data, list) else [data]
        for entry in entries:
            item = item_from_json_ld(source, page_url, entry)
            if item is not None:
                items.append(item)
    return items
