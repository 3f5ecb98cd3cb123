from typing import Iterable
from urllib.parse import urldefrag, urlparse

from external_sync.ingest.errors import HostNotAllowed, MissingBaseURL


def normalize_allowlist(hosts: Iterable[str]) -> frozenset[str]:
    return frozenset(host.strip().lower() for host in hosts if host and host.strip())


def parse_host(url: str) -> str:
    return (urlparse(url).hostname or "").lower()


def is_host_allowed(host: str, allowlist: Iterable[str]) -> bool:
    host = (host or "").strip().lower()
    if not host:
        return False
    for allowed in allowlist:
        if host == allowed or host.endswith("." + allowed):
            return True
    return False


def ensure_host_allowed(host: str, allowlist: Iterable[str]) -> None:
    if not is_host_allowed(host, allowlist):
        raise HostNotAllowed(host)


def normalize_base_url(raw: str | None) -> str:
    raw = (raw or "").strip()
    if not raw:
        raise MissingBaseURL("base url required")
    if not raw.startswith(("http://", "https://")):
        raw = "https://" + raw
    raw, _ = urldefrag(raw)
    parsed = urlparse(raw)
    if not parsed.netloc:
        raise MissingBaseURL(f"base url has no host: {raw}")
    if not parsed.path:
        parsed = parsed._replace(path="/")
    return parsed.geturl()
