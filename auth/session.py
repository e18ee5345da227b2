"""Refresh session persistence.

Sessions live in the user_sessions table (unique index on token, index on
user_id). Every lookup goes to Postgres directly: a rotated token must stop
matching the moment the row is updated, so there is no cache in front.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from clients.postgres_client import PostgresClient
from auth.types import Session, SessionSummary
from utils.timezone import now_utc, to_utc

_SESSION_COLUMNS = "id, user_id, token, device_info, ip_address, expires_at, created_at"


def _row_to_session(row: dict[str, Any]) -> Session:
    return Session(
        id=row["id"],
        user_id=row["user_id"],
        token=row["token"],
        device_info=row["device_info"],
        ip_address=str(row["ip_address"]) if row["ip_address"] else None,
        expires_at=to_utc(row["expires_at"]),
        created_at=to_utc(row["created_at"]),
    )


class SessionRepository:
    """CRUD for user_sessions rows."""

    def __init__(self, postgres: PostgresClient):
        self._db = postgres

    def create(
        self,
        user_id: UUID,
        token: str,
        expires_at: datetime,
        device_info: dict[str, Any] | None = None,
        ip_address: str | None = None,
    ) -> Session:
        """Insert a new session row."""
        rows = self._db.execute_returning(
            f"""INSERT INTO user_sessions (user_id, token, device_info, ip_address, expires_at, created_at)
                VALUES (%s, %s, %s, %s, %s, %s)
                RETURNING {_SESSION_COLUMNS}""",
            (user_id, token, device_info, ip_address, expires_at, now_utc()),
        )
        return _row_to_session(rows[0])

    def find_live_by_token(self, token: str) -> Session | None:
        """Find the unexpired session holding this exact token."""
        row = self._db.execute_single(
            f"""SELECT {_SESSION_COLUMNS}
                FROM user_sessions
                WHERE token = %s AND expires_at > %s""",
            (token, now_utc()),
        )
        return _row_to_session(row) if row else None

    def update_token(
        self,
        session_id: UUID,
        current_token: str,
        new_token: str,
        expires_at: datetime,
    ) -> Session | None:
        """Replace a session's token and expiry in place.

        Only succeeds while the row still holds current_token, so of two
        concurrent rotations of the same token exactly one wins. Returns None
        if the row vanished or was already rotated.
        """
        row = self._db.execute_single(
            f"""UPDATE user_sessions
                SET token = %s, expires_at = %s
                WHERE id = %s AND token = %s
                RETURNING {_SESSION_COLUMNS}""",
            (new_token, expires_at, session_id, current_token),
        )
        return _row_to_session(row) if row else None

    def delete(self, user_id: UUID, token: str) -> int:
        """Delete the session matching both user and token. Returns count deleted."""
        rows = self._db.execute_returning(
            "DELETE FROM user_sessions WHERE user_id = %s AND token = %s RETURNING id",
            (user_id, token),
        )
        return len(rows)

    def delete_all_for_user(self, user_id: UUID) -> int:
        """Delete every session for a user. Returns count deleted."""
        rows = self._db.execute_returning(
            "DELETE FROM user_sessions WHERE user_id = %s RETURNING id",
            (user_id,),
        )
        return len(rows)

    def list_live_for_user(self, user_id: UUID) -> list[SessionSummary]:
        """Unexpired sessions for a user, newest first."""
        rows = self._db.execute(
            """SELECT id, device_info, ip_address, expires_at, created_at
               FROM user_sessions
               WHERE user_id = %s AND expires_at > %s
               ORDER BY created_at DESC""",
            (user_id, now_utc()),
        )
        return [
            SessionSummary(
                id=row["id"],
                device_info=row["device_info"],
                ip_address=str(row["ip_address"]) if row["ip_address"] else None,
                expires_at=to_utc(row["expires_at"]),
                created_at=to_utc(row["created_at"]),
            )
            for row in rows
        ]

    def delete_expired(self) -> int:
        """Delete sessions past their expiry. Returns count deleted."""
        rows = self._db.execute_returning(
            "DELETE FROM user_sessions WHERE expires_at <= %s RETURNING id",
            (now_utc(),),
        )
        return len(rows)
