"""
Redis client getters keyed by connection label.
"""

from loguru import logger
from redis.asyncio import Redis

from ..config import config
from .mongo import hide_password

_clients: dict[str, Redis] = {}


def get_cache_client(label: str = "default") -> Redis:
    """Return (and memoize) an async Redis client for `REDIS_URL_<LABEL>`."""
    if label not in _clients:
        url = config.get_redis_url(label)
        if not url:
            raise ValueError(f"No Redis connection string found for label '{label}'")
        logger.info("Open Redis client for label '{}': {}", label, hide_password(url))
        _clients[label] = Redis.from_url(url, decode_responses=True)
    return _clients[label]


async def close_cache_clients() -> None:
    for label in list(_clients):
        client = _clients.pop(label)
        await client.aclose()
        logger.info("Closed Redis client for label '{}'", label)
