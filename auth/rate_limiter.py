"""Rate limiting for login and payment-intent requests.

Uses Valkey with sliding window TTL - each attempt resets the expiry.
Attackers bypassing frontend rate limiting hit an ever-extending lockout.
"""

from clients.valkey_client import ValkeyClient
from auth.exceptions import RateLimitedError


class RateLimiter:
    """Fixed-budget, sliding-expiry counter per subject (email, client address)."""

    KEY_PREFIX = "ratelimit:"

    def __init__(self, valkey: ValkeyClient, scope: str, attempts: int, window_minutes: int):
        self._valkey = valkey
        self._scope = scope
        self._attempts = attempts
        self._window_seconds = window_minutes * 60

    def _key(self, subject: str) -> str:
        """Generate rate limit key for subject (normalized to lowercase)."""
        return f"{self.KEY_PREFIX}{self._scope}:{subject.strip().lower()}"

    def check_rate_limit(self, subject: str) -> None:
        """Count an attempt and enforce the budget.

        Raises:
            RateLimitedError: If rate limit exceeded.
        """
        count, ttl = self._valkey.hit(self._key(subject), self._window_seconds)

        if count > self._attempts:
            raise RateLimitedError(retry_after_seconds=max(ttl, 1))

    def reset_rate_limit(self, subject: str) -> None:
        """Forget attempts (after a successful login)."""
        self._valkey.delete(self._key(subject))
