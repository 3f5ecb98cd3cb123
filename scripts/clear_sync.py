import asyncio

import redis.asyncio as redis

from external_sync.config import Settings


async def main() -> None:
    redis_client = redis.from_url(Settings.redis_url)
    deleted = 0
    async for key in redis_client.scan_iter(match=f"{Settings.key_prefix}*", count=1000):
        await redis_client.delete(key)
        deleted += 1
    await redis_client.aclose()
    print(f"Cleared external sync sources and items. Deleted {deleted} keys.")


if __name__ == "__main__":
    asyncio.run(main())
