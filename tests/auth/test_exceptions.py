"""Tests for the auth exception taxonomy."""

import pytest

from auth.exceptions import (
    AccountLockedError,
    AuthError,
    AuthenticationFailure,
    CooldownActiveError,
    InvalidOTPError,
    InvalidTokenError,
    NotFoundError,
    PolicyRejection,
    RateLimitedError,
    SessionNotFoundError,
    UserNotFoundError,
)
from clients.email_client import EmailGatewayError
from clients.valkey_client import StoreUnavailableError


class TestPolicyRejections:

    @pytest.mark.parametrize("cls", [AccountLockedError, CooldownActiveError, RateLimitedError])
    def test_carry_retry_after(self, cls):
        exc = cls(retry_after_seconds=42)

        assert isinstance(exc, PolicyRejection)
        assert exc.retry_after_seconds == 42
        assert "42 seconds" in str(exc)


class TestAuthenticationFailures:

    def test_invalid_otp_carries_attempts_and_generic_message(self):
        exc = InvalidOTPError(attempts_remaining=3)

        assert isinstance(exc, AuthenticationFailure)
        assert exc.attempts_remaining == 3
        assert str(exc) == "Invalid or expired code"

    def test_invalid_token_is_authentication_failure(self):
        assert issubclass(InvalidTokenError, AuthenticationFailure)


def test_not_found_family():
    assert issubclass(UserNotFoundError, NotFoundError)
    assert issubclass(SessionNotFoundError, NotFoundError)


@pytest.mark.parametrize("cls", [StoreUnavailableError, EmailGatewayError])
def test_infrastructure_errors_are_not_auth_errors(cls):
    assert not issubclass(cls, AuthError)
