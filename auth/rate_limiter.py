"""Per-client request rate limiting for unauthenticated auth endpoints.

Fixed window in Valkey: the first request in a window sets the TTL, later
requests only increment the counter.
"""

from clients.valkey_client import ValkeyClient
from auth.config import AuthConfig
from auth.exceptions import RateLimitedError


class RateLimiter:
    """Rate limiting for auth requests using Valkey."""

    KEY_PREFIX = "rate-limit:"

    def __init__(self, valkey: ValkeyClient, config: AuthConfig):
        self._valkey = valkey
        self._config = config
        self._window_seconds = config.rate_limit_window_minutes * 60

    def _key(self, identifier: str) -> str:
        """Generate rate limit key for a client identifier (IP or user id)."""
        return f"{self.KEY_PREFIX}{identifier}"

    def check_rate_limit(self, identifier: str) -> int:
        """Count this request and enforce the window limit.

        Returns:
            Requests remaining in the current window.

        Raises:
            RateLimitedError: If rate limit exceeded.
        """
        key = self._key(identifier)

        count = self._valkey.incr(key)
        if count == 1:
            self._valkey.expire(key, self._window_seconds)

        limit = self._config.rate_limit_max_requests
        if count > limit:
            ttl = self._valkey.ttl(key)
            if ttl < 0:
                # Counter lost its TTL (expire failed mid-way); restart window
                self._valkey.expire(key, self._window_seconds)
                ttl = self._window_seconds
            raise RateLimitedError(retry_after_seconds=max(ttl, 1))

        return limit - count
