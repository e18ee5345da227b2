"""Security event logging for auth audit trail.

Append-only log to the security_events table. The logger is an event sink:
recording is fire-and-forget and a failed write never changes the outcome
of the auth operation that produced it.
"""

import logging
from enum import Enum
from typing import Any
from uuid import UUID

import psycopg2
from psycopg2.extras import Json

from clients.postgres_client import PostgresClient
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


class SecurityEvent(Enum):
    """Auth security event types."""

    OTP_REQUESTED = "otp_requested"
    OTP_SENT = "otp_sent"
    OTP_VERIFIED = "otp_verified"
    OTP_FAILED = "otp_failed"
    OTP_LOCKED = "otp_locked"
    TOKEN_REFRESHED = "token_refreshed"
    TOKEN_REFRESH_FAILED = "token_refresh_failed"
    SESSION_CREATED = "session_created"
    SESSION_REVOKED = "session_revoked"
    SESSIONS_REVOKED_ALL = "sessions_revoked_all"
    SESSIONS_CLEANED = "sessions_cleaned"
    RATE_LIMITED = "rate_limited"
    ZALO_LOGIN = "zalo_login"
    ZALO_LOGIN_FAILED = "zalo_login_failed"
    USER_REGISTERED = "user_registered"


class SecurityLogger:
    """Append-only security event sink."""

    def __init__(self, postgres: PostgresClient):
        self._db = postgres

    def record(
        self,
        event: SecurityEvent,
        email: str | None = None,
        user_id: UUID | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Write one event. Never raises."""
        try:
            self._db.execute_returning(
                """INSERT INTO security_events
                   (event_type, email, user_id, ip_address, user_agent, details, created_at)
                   VALUES (%s, %s, %s, %s, %s, %s, %s)
                   RETURNING id""",
                (
                    event.value,
                    email,
                    str(user_id) if user_id else None,
                    ip_address,
                    user_agent,
                    Json(details) if details else None,
                    now_utc(),
                ),
            )
        except (psycopg2.Error, RuntimeError) as e:
            logger.warning(f"Failed to record security event {event.value}: {e}")
