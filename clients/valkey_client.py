"""
Valkey (Redis-compatible) client for short-lived coordination locks.

Simple wrapper around redis-py. Connection URL from Vault.
Fail-fast: raises on connection failure, never returns fallback values.
"""

import logging
from contextlib import contextmanager

import redis
from redis.exceptions import LockError

logger = logging.getLogger(__name__)


class LockNotAcquiredError(Exception):
    """Another holder kept the lock for the whole wait window."""


class ValkeyClient:
    """
    Redis-compatible client for Valkey.

    Usage:
        client = ValkeyClient("redis://localhost:6379/0")
        with client.lock("billing:customer:<client_id>", ttl_seconds=30):
            ...
    """

    def __init__(self, url: str):
        """
        Initialize Valkey connection.

        Args:
            url: Redis-compatible connection URL (e.g., redis://localhost:6379/0)

        Raises:
            redis.ConnectionError: If connection fails
        """
        self._client = redis.from_url(url, decode_responses=True)
        # Verify connectivity immediately (fail-fast)
        self._client.ping()
        logger.info("ValkeyClient connected")

    @contextmanager
    def lock(self, key: str, ttl_seconds: int, wait_seconds: float = 0.0):
        """
        Hold a redis-py Lock for the duration of the block.

        The lock expires after ttl_seconds even if the holder dies.

        Raises:
            LockNotAcquiredError: If still held elsewhere after wait_seconds
        """
        lock = self._client.lock(key, timeout=ttl_seconds, blocking_timeout=wait_seconds)
        if not lock.acquire():
            raise LockNotAcquiredError(f"Lock '{key}' is held by another worker")

        try:
            yield
        finally:
            try:
                lock.release()
            except LockError:
                logger.warning(f"Lock '{key}' expired before release")

    def close(self) -> None:
        """Close the connection."""
        self._client.close()
        logger.info("ValkeyClient closed")
