"""One-time login codes with attempt lockout and resend cooldown.

All state lives in Valkey under three independently-expiring keys per email:

    otp:<email>            the code (TTL = otp_expiry_seconds)
    otp:attempts:<email>   wrong-guess counter
    otp:lock:<email>       lock flag (TTL = otp_lockout_seconds)

Codes are drawn from `secrets` and may contain leading zeros (uniform over
the full 10**length range, zero padded).
"""

import hmac
import logging
import secrets
from dataclasses import dataclass

from clients.valkey_client import ValkeyClient
from auth.config import AuthConfig
from auth.exceptions import AccountLockedError, CooldownActiveError

logger = logging.getLogger(__name__)


@dataclass
class OTPIssue:
    """A freshly issued code, handed back for delivery."""

    code: str
    expires_in_seconds: int


@dataclass
class VerifyResult:
    """Outcome of a verification attempt."""

    valid: bool
    attempts_remaining: int = 0
    locked: bool = False


class OTPAuthenticator:
    """Issues and verifies one-time codes, defending against brute force."""

    CODE_PREFIX = "otp:"
    ATTEMPTS_PREFIX = "otp:attempts:"
    LOCK_PREFIX = "otp:lock:"

    def __init__(self, valkey: ValkeyClient, config: AuthConfig):
        self._valkey = valkey
        self._config = config

    def _code_key(self, email: str) -> str:
        return f"{self.CODE_PREFIX}{email}"

    def _attempts_key(self, email: str) -> str:
        return f"{self.ATTEMPTS_PREFIX}{email}"

    def _lock_key(self, email: str) -> str:
        return f"{self.LOCK_PREFIX}{email}"

    def generate(self) -> str:
        """Generate a numeric code of the configured length."""
        length = self._config.otp_length
        return str(secrets.randbelow(10**length)).zfill(length)

    def lock_ttl(self, email: str) -> int:
        """Seconds until the lock lifts, 0 if not locked."""
        return max(self._valkey.ttl(self._lock_key(email)), 0)

    def is_locked(self, email: str) -> bool:
        return self._valkey.exists(self._lock_key(email))

    def _ensure_not_locked(self, email: str) -> None:
        """Raise AccountLockedError while the lock key exists."""
        if self.is_locked(email):
            raise AccountLockedError(retry_after_seconds=max(self.lock_ttl(email), 1))

    def request_code(self, email: str) -> OTPIssue:
        """Issue a new code for email.

        Cooldown is derived from the live code's remaining TTL rather than a
        separate timestamp: elapsed = expiry - ttl.

        Raises:
            AccountLockedError: If the email is locked out.
            CooldownActiveError: If a code was issued within the cooldown window.
        """
        self._ensure_not_locked(email)

        expiry = self._config.otp_expiry_seconds
        current_ttl = self._valkey.ttl(self._code_key(email))
        if current_ttl > 0:
            cooldown = self._config.otp_resend_cooldown_seconds - (expiry - current_ttl)
            if cooldown > 0:
                raise CooldownActiveError(retry_after_seconds=cooldown)

        code = self.generate()
        self._valkey.set(self._code_key(email), code, expire_seconds=expiry)
        self._valkey.delete(self._attempts_key(email), self._lock_key(email))

        logger.info(f"OTP issued for {email}")
        return OTPIssue(code=code, expires_in_seconds=expiry)

    def discard(self, email: str) -> None:
        """Drop an issued code (e.g. delivery failed) so a resend is not blocked by cooldown."""
        self._valkey.delete(self._code_key(email))

    def verify(self, email: str, candidate: str) -> VerifyResult:
        """Check candidate against the stored code.

        The counter relies on Valkey's atomic INCR; two racing wrong guesses
        can at worst both observe the limit, which still locks on time.

        Raises:
            AccountLockedError: If the email is locked out.
        """
        self._ensure_not_locked(email)

        max_attempts = self._config.otp_max_attempts
        stored = self._valkey.get(self._code_key(email))

        if stored is None:
            return VerifyResult(valid=False, attempts_remaining=max_attempts)

        if hmac.compare_digest(stored.encode("utf-8"), candidate.encode("utf-8")):
            self._valkey.delete(self._code_key(email), self._attempts_key(email))
            return VerifyResult(valid=True, attempts_remaining=max_attempts)

        attempts_key = self._attempts_key(email)
        count = self._valkey.incr(attempts_key)
        if count == 1:
            # Counter never outlives the code it guards
            self._valkey.expire(attempts_key, self._config.otp_expiry_seconds)

        if count >= max_attempts:
            self._valkey.set(
                self._lock_key(email),
                "1",
                expire_seconds=self._config.otp_lockout_seconds,
            )
            self._valkey.delete(self._code_key(email), attempts_key)
            logger.warning(f"OTP lockout for {email} after {count} failed attempts")
            return VerifyResult(valid=False, attempts_remaining=0, locked=True)

        return VerifyResult(valid=False, attempts_remaining=max_attempts - count)
