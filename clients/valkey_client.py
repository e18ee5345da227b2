"""
Valkey (Redis-compatible) client for OTP state and rate limiting.

Simple wrapper around redis-py. Connection URL from Vault.
Fail-fast: any backend failure surfaces as StoreUnavailableError, never as
a fallback value that callers could mistake for "key missing".
"""

import logging
from contextlib import contextmanager

import redis

logger = logging.getLogger(__name__)


class StoreUnavailableError(Exception):
    """Raised when Valkey cannot be reached or rejects a command."""


class ValkeyClient:
    """
    Redis-compatible client for Valkey.

    Usage:
        client = ValkeyClient("redis://localhost:6379/0")
        client.set("key", "value", expire_seconds=300)
        value = client.get("key")  # Returns None if missing
    """

    def __init__(self, url: str):
        """
        Initialize Valkey connection.

        Args:
            url: Redis-compatible connection URL (e.g., redis://localhost:6379/0)

        Raises:
            StoreUnavailableError: If connection fails
        """
        self._client = redis.from_url(url, decode_responses=True)
        # Verify connectivity immediately (fail-fast)
        self.ping()
        logger.info("ValkeyClient connected")

    @contextmanager
    def _command(self, name: str):
        """Translate redis-py failures into StoreUnavailableError."""
        try:
            yield
        except redis.RedisError as e:
            logger.error(f"Valkey {name} failed: {e}")
            raise StoreUnavailableError(f"Valkey {name} failed: {e}") from e

    def ping(self) -> bool:
        """
        Health check.

        Returns True if Valkey responds.
        Raises StoreUnavailableError if unreachable.
        """
        with self._command("ping"):
            self._client.ping()
        return True

    def get(self, key: str) -> str | None:
        """
        Get value by key.

        Returns None if key doesn't exist (not an error).
        Raises on connection failure.
        """
        with self._command("get"):
            return self._client.get(key)

    def set(self, key: str, value: str, expire_seconds: int | None = None) -> None:
        """
        Set key to value, optionally with expiration.

        Args:
            key: Key to set
            value: Value to store
            expire_seconds: TTL in seconds (None for no expiration)
        """
        with self._command("set"):
            if expire_seconds is not None:
                self._client.setex(key, expire_seconds, value)
            else:
                self._client.set(key, value)

    def delete(self, *keys: str) -> int:
        """
        Delete one or more keys.

        Returns the number of keys that existed and were deleted.
        """
        with self._command("delete"):
            return self._client.delete(*keys)

    def exists(self, key: str) -> bool:
        """Check if key exists."""
        with self._command("exists"):
            return self._client.exists(key) > 0

    def ttl(self, key: str) -> int:
        """
        Get remaining TTL in seconds.

        Returns:
            -2 if key doesn't exist
            -1 if key has no expiration
            Positive int: remaining seconds
        """
        with self._command("ttl"):
            return self._client.ttl(key)

    def incr(self, key: str) -> int:
        """
        Increment key by 1.

        Creates key with value 1 if it doesn't exist.
        Returns the new value.
        """
        with self._command("incr"):
            return self._client.incr(key)

    def expire(self, key: str, seconds: int) -> bool:
        """Set TTL on an existing key. Returns False if key doesn't exist."""
        with self._command("expire"):
            return bool(self._client.expire(key, seconds))

    def close(self) -> None:
        """Close the connection."""
        self._client.close()
        logger.info("ValkeyClient closed")
