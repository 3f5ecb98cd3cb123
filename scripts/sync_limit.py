import argparse
import asyncio
import json
from pathlib import Path
import sys


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import redis.asyncio as redis

from external_sync.config import Settings
from external_sync.ingest.service import open_service
from external_sync.pipeline import run_sync, summarize
from external_sync.storage.redis_store import RedisItemStore, RedisSourceStore


async def main() -> None:
    parser = argparse.ArgumentParser(description="Sync sources with a tighter page cap")
    parser.add_argument("--max-pages", type=int, default=5, help="Pages per source")
    parser.add_argument(
        "--rpm",
        type=int,
        default=Settings.rate_limit_rpm,
        help="Requests per minute across all sources",
    )
    args = parser.parse_args()
    redis_client = redis.from_url(Settings.redis_url)
    try:
        async with open_service(max_pages=args.max_pages, rate_limit_rpm=args.rpm) as service:
            outcomes = await run_sync(
                service, RedisSourceStore(redis_client), RedisItemStore(redis_client)
            )
    finally:
        await redis_client.aclose()
    print(json.dumps(summarize(outcomes), indent=2))


if __name__ == "__main__":
    asyncio.run(main())
