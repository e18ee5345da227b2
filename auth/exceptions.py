"""Typed exceptions for auth failures.

Four families, mapped to HTTP only at the route boundary:

- PolicyRejection: locked, cooldown, rate limited. Time-correctable and
  always carry the remaining wait.
- AuthenticationFailure: wrong code, bad or expired token, rejected Zalo
  token. Messages stay generic ("invalid or expired").
- NotFoundError: unknown user or session.
- UserInactiveError / NotAuthorizedError: account state or role.

Infrastructure failures (Valkey, Postgres, email gateway, Zalo) are not AuthError
subclasses, so callers can tell "rejected" from "could not
evaluate".
"""


class AuthError(Exception):
    """Base class for authentication/authorization errors."""


class PolicyRejection(AuthError):
    """Request refused by policy. Client should wait before retrying."""

    def __init__(self, retry_after_seconds: int, message: str):
        self.retry_after_seconds = retry_after_seconds
        super().__init__(message)


class AccountLockedError(PolicyRejection):
    """Too many wrong codes. Both requesting and verifying are blocked."""

    def __init__(self, retry_after_seconds: int):
        super().__init__(
            retry_after_seconds,
            f"Account temporarily locked. Retry after {retry_after_seconds} seconds.",
        )


class CooldownActiveError(PolicyRejection):
    """A code was issued too recently for this email."""

    def __init__(self, retry_after_seconds: int):
        super().__init__(
            retry_after_seconds,
            f"Code already sent. Retry after {retry_after_seconds} seconds.",
        )


class RateLimitedError(PolicyRejection):
    """Too many requests from this client."""

    def __init__(self, retry_after_seconds: int):
        super().__init__(
            retry_after_seconds,
            f"Rate limited. Retry after {retry_after_seconds} seconds.",
        )


class AuthenticationFailure(AuthError):
    """Credential presented but rejected."""


class InvalidOTPError(AuthenticationFailure):
    """Code missing, expired, or wrong."""

    def __init__(self, attempts_remaining: int):
        self.attempts_remaining = attempts_remaining
        super().__init__("Invalid or expired code")


class InvalidTokenError(AuthenticationFailure):
    """
    Token is malformed, expired, or signed with the wrong secret.

    Used for both access and refresh tokens.
    """


class NotFoundError(AuthError):
    """Referenced auth entity does not exist."""


class UserNotFoundError(NotFoundError):
    """
    Email or id not associated with any user.

    Note: only staff emails reach the dashboard login, so the admin UI
    reports this directly.
    """


class SessionNotFoundError(NotFoundError):
    """No live session holds this refresh token (revoked, rotated, or expired)."""


class UserInactiveError(AuthError):
    """User account is deactivated or soft-deleted. Login not permitted."""


class NotAuthorizedError(AuthError):
    """User exists but its role may not use this login method."""


class ExternalAuthError(AuthenticationFailure):
    """Identity provider token rejected or issued to a different user."""
