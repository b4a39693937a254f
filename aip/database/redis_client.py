"""
Redis client for the job queue.

Usage:
    from aip.database.redis_client import get_redis, redis_available

    if redis_available():
        client = get_redis()
        client.blpop([settings.job_queue_name], timeout=5)
"""

import logging

import redis

from aip.config import settings

logger = logging.getLogger(__name__)

_redis_client = None


def get_redis() -> redis.Redis:
    """
    Get the shared Redis client instance.

    The client is built lazily from ``settings.redis_url``; connections are
    pooled, so one instance can be shared by every worker thread. Replies
    are left as bytes; payloads are decoded by ``decode_job``.
    """
    global _redis_client

    if _redis_client is None:
        _redis_client = redis.from_url(settings.redis_url)

    return _redis_client


def redis_available(client: redis.Redis = None) -> bool:
    """Return True if Redis answers a PING."""
    client = client or get_redis()
    try:
        client.ping()
        return True
    except redis.RedisError as e:
        logger.warning(f"Redis not available ({settings.redis_url}): {e}")
        return False


def reset_redis_connection():
    """Drop the cached client (used by tests and on reconnect)."""
    global _redis_client
    _redis_client = None
