"""Authentication configuration."""

import os

from pydantic import BaseModel, Field


class AuthConfig(BaseModel):
    """
    Authentication configuration.

    OTP and rate-limit durations are in seconds or minutes because they map
    straight onto Valkey TTLs; token lifetimes use their natural units.
    """

    # OTP settings
    otp_length: int = Field(
        default=6,
        description="Number of digits in a login code",
        ge=4,
        le=10,
    )
    otp_expiry_seconds: int = Field(
        default=300,  # 5 minutes
        description="How long an issued code remains valid",
        ge=60,
        le=3600,
    )
    otp_max_attempts: int = Field(
        default=5,
        description="Wrong guesses allowed before the account is locked",
        ge=1,
        le=20,
    )
    otp_lockout_seconds: int = Field(
        default=1800,  # 30 minutes
        description="How long an account stays locked after too many wrong guesses",
        ge=60,
        le=86400,
    )
    otp_resend_cooldown_seconds: int = Field(
        default=60,
        description="Minimum gap between two code requests for the same email",
        ge=0,
        le=600,
    )

    # Token settings
    access_token_expiry_minutes: int = Field(
        default=15,
        description="Access token lifetime",
        ge=1,
        le=1440,
    )
    refresh_token_expiry_days: int = Field(
        default=7,
        description="Refresh token and session lifetime",
        ge=1,
        le=90,
    )

    # Rate limiting
    rate_limit_max_requests: int = Field(
        default=100,
        description="Max auth requests per client IP per window",
        ge=1,
        le=10000,
    )
    rate_limit_window_minutes: int = Field(
        default=15,
        description="Rate limit window duration",
        ge=1,
        le=60,
    )

    # Application
    staff_roles: tuple[str, ...] = Field(
        default=("admin", "staff"),
        description="Roles allowed to sign in to the dashboard by email OTP",
    )
    app_name: str = Field(
        default="Ward Portal",
        description="Application name for emails",
    )
    zalo_verify_enabled: bool = Field(
        default=False,
        description="Check Mini App sign-ins against the Zalo Graph API. Off in local development.",
    )

    @classmethod
    def from_env(cls) -> "AuthConfig":
        """Build config from environment variables, falling back to defaults."""
        env_fields = {
            "OTP_LENGTH": "otp_length",
            "OTP_EXPIRY": "otp_expiry_seconds",
            "OTP_MAX_ATTEMPTS": "otp_max_attempts",
            "OTP_LOCKOUT_SECONDS": "otp_lockout_seconds",
            "OTP_RESEND_COOLDOWN": "otp_resend_cooldown_seconds",
            "JWT_ACCESS_EXPIRY_MINUTES": "access_token_expiry_minutes",
            "JWT_REFRESH_EXPIRY_DAYS": "refresh_token_expiry_days",
            "RATE_LIMIT_MAX_REQUESTS": "rate_limit_max_requests",
            "RATE_LIMIT_WINDOW": "rate_limit_window_minutes",
            "APP_NAME": "app_name",
            "ZALO_VERIFY_ENABLED": "zalo_verify_enabled",
        }
        values = {
            field: os.environ[var]
            for var, field in env_fields.items()
            if os.environ.get(var)
        }
        return cls(**values)
