import argparse
import asyncio
import json

import redis.asyncio as redis

from external_sync.config import Settings
from external_sync.ingest.allowlist import normalize_base_url, parse_host
from external_sync.ingest.errors import NotModified
from external_sync.ingest.service import open_service
from external_sync.ingest.types import Source
from external_sync.monitoring.metrics_server import run_metrics_server
from external_sync.pipeline import run_sync, summarize
from external_sync.storage.redis_store import RedisItemStore, RedisSourceStore


async def seed() -> None:
    redis_client = redis.from_url(Settings.redis_url)
    try:
        created = await RedisSourceStore(redis_client).ensure_defaults(
            Settings.sources_default
        )
    finally:
        await redis_client.aclose()
    print(json.dumps([record.to_dict() for record in created], indent=2))


async def sync_all() -> None:
    redis_client = redis.from_url(Settings.redis_url)
    try:
        sources = RedisSourceStore(redis_client)
        await sources.ensure_defaults(Settings.sources_default)
        async with open_service() as service:
            outcomes = await run_sync(service, sources, RedisItemStore(redis_client))
    finally:
        await redis_client.aclose()
    print(json.dumps(summarize(outcomes), indent=2))


async def sync_url(url: str, etag: str | None) -> None:
    base_url = normalize_base_url(url)
    allowlist = [*Settings.domain_allowlist, parse_host(base_url)]
    source = Source(id="adhoc", name=parse_host(base_url), base_url=base_url, etag=etag)
    async with open_service(allowlist=allowlist) as service:
        try:
            result = await service.sync(source)
        except NotModified:
            print(json.dumps({"message": "no changes"}))
            return
    print(
        json.dumps(
            {
                "etag": result.etag,
                "lastModified": (
                    result.last_modified.isoformat() if result.last_modified else None
                ),
                "fetchedAt": result.fetched_at.isoformat(),
                "items": [item.to_dict() for item in result.items],
            },
            indent=2,
        )
    )


def main() -> None:
    parser = argparse.ArgumentParser(description="External source sync CLI")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("seed", help="Ensure default sources exist")
    sub.add_parser("sync", help="Sync every enabled source")
    one = sub.add_parser("sync-url", help="Sync a single site without storing it")
    one.add_argument("url")
    one.add_argument("--etag", default=None, help="Stored ETag to send")
    sub.add_parser("metrics", help="Run Prometheus metrics server")

    args = parser.parse_args()

    if args.command == "seed":
        asyncio.run(seed())
        return
    if args.command == "sync":
        asyncio.run(sync_all())
        return
    if args.command == "sync-url":
        asyncio.run(sync_url(args.url, args.etag))
        return
    if args.command == "metrics":
        run_metrics_server()
        return


if __name__ == "__main__":
    main()
