"""
Valkey (Redis-compatible) client for request counters.

Thin wrapper around redis-py. Connection URL from Vault.
Fail-fast: raises on connection failure, never returns fallback values.
"""

import logging

import redis

logger = logging.getLogger(__name__)


class ValkeyClient:
    """
    Redis-compatible client for Valkey.

    Usage:
        client = ValkeyClient("redis://localhost:6379/0")
        count, ttl = client.hit("ratelimit:login:a@b.c", window_seconds=900)
    """

    def __init__(self, url: str):
        """
        Initialize Valkey connection.

        Raises:
            redis.ConnectionError: If connection fails
        """
        self._client = redis.from_url(url, decode_responses=True)
        # Verify connectivity immediately (fail-fast)
        self._client.ping()
        logger.info("ValkeyClient connected")

    def delete(self, key: str) -> bool:
        """Delete key. True if it existed."""
        return self._client.delete(key) > 0

    def hit(self, key: str, window_seconds: int) -> tuple[int, int]:
        """
        Increment a counter and (re)arm its expiry in one round trip.

        The expiry is reset on every hit, so a client that keeps hammering
        keeps extending its own window.

        Returns:
            (new count, remaining ttl in seconds)
        """
        with self._client.pipeline(transaction=True) as pipe:
            pipe.incr(key)
            pipe.expire(key, window_seconds)
            pipe.ttl(key)
            count, _, ttl = pipe.execute()
        return int(count), int(ttl)

    def close(self) -> None:
        """Close the connection."""
        self._client.close()
        logger.info("ValkeyClient closed")
