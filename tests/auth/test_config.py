"""Tests for auth/config.py - Auth configuration with validation."""

import pytest
from pydantic import ValidationError

from auth.config import AuthConfig


class TestAuthConfigDefaults:
    """Tests that AuthConfig has sensible defaults."""

    def test_otp_defaults(self):
        config = AuthConfig()
        assert config.otp_length == 6
        assert config.otp_expiry_seconds == 300
        assert config.otp_max_attempts == 5
        assert config.otp_lockout_seconds == 1800
        assert config.otp_resend_cooldown_seconds == 60

    def test_token_defaults(self):
        config = AuthConfig()
        assert config.access_token_expiry_minutes == 15
        assert config.refresh_token_expiry_days == 7

    def test_rate_limit_defaults(self):
        config = AuthConfig()
        assert config.rate_limit_max_requests == 100
        assert config.rate_limit_window_minutes == 15

    def test_only_staff_roles_sign_in(self):
        assert AuthConfig().staff_roles == ("admin", "staff")

    def test_zalo_verification_off_by_default(self):
        assert AuthConfig().zalo_verify_enabled is False


class TestAuthConfigValidation:
    """Tests that AuthConfig enforces validation bounds."""

    @pytest.mark.parametrize(
        "field,value",
        [
            ("otp_length", 3),
            ("otp_length", 11),
            ("otp_expiry_seconds", 59),
            ("otp_max_attempts", 0),
            ("otp_lockout_seconds", 86401),
            ("otp_resend_cooldown_seconds", -1),
            ("access_token_expiry_minutes", 0),
            ("refresh_token_expiry_days", 91),
            ("rate_limit_window_minutes", 61),
        ],
    )
    def test_out_of_bounds_rejected(self, field, value):
        with pytest.raises(ValidationError):
            AuthConfig(**{field: value})

    def test_zero_cooldown_allowed(self):
        assert AuthConfig(otp_resend_cooldown_seconds=0).otp_resend_cooldown_seconds == 0


class TestFromEnv:
    """Environment overrides."""

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("OTP_LENGTH", "8")
        monkeypatch.setenv("OTP_EXPIRY", "600")
        monkeypatch.setenv("JWT_ACCESS_EXPIRY_MINUTES", "30")
        monkeypatch.setenv("APP_NAME", "Cổng thông tin phường")

        config = AuthConfig.from_env()

        assert config.otp_length == 8
        assert config.otp_expiry_seconds == 600
        assert config.access_token_expiry_minutes == 30
        assert config.app_name == "Cổng thông tin phường"

    def test_missing_variables_fall_back_to_defaults(self, monkeypatch):
        for var in ("OTP_LENGTH", "OTP_MAX_ATTEMPTS", "JWT_REFRESH_EXPIRY_DAYS"):
            monkeypatch.delenv(var, raising=False)

        config = AuthConfig.from_env()

        assert config.otp_length == 6
        assert config.otp_max_attempts == 5
        assert config.refresh_token_expiry_days == 7

    def test_invalid_value_fails_fast(self, monkeypatch):
        monkeypatch.setenv("OTP_MAX_ATTEMPTS", "0")

        with pytest.raises(ValidationError):
            AuthConfig.from_env()

    @pytest.mark.parametrize("raw,expected", [("true", True), ("false", False), ("1", True)])
    def test_zalo_verification_flag(self, monkeypatch, raw, expected):
        monkeypatch.setenv("ZALO_VERIFY_ENABLED", raw)

        assert AuthConfig.from_env().zalo_verify_enabled is expected
