from redis.asyncio import Redis

from config.settings import settings


def create_redis(url: str | None = None) -> Redis:
    """Build a Redis client for one run. Caller owns it and must close it."""
    return Redis.from_url(url or settings.redis_url, decode_responses=True)


async def close_redis(client: Redis | None) -> None:
    if client is not None:
        await client.aclose()
