"""Database operations for portal users.

Reads the users table (joined to wards) during login and token refresh,
before any request-level user context exists. Zalo sign-in also registers
first-time citizens here.
"""

from typing import Any
from uuid import UUID

from clients.postgres_client import PostgresClient
from auth.types import User, WardSummary
from utils.timezone import now_utc

_USER_COLUMNS = """
    u.id, u.name, u.email, u.zalo_id, u.avatar_url, u.phone_number, u.role, u.ward_id,
    u.is_active, u.deleted_at, u.created_at, u.last_login_at,
    w.name AS ward_name, w.code AS ward_code
"""


def _row_to_user(row: dict[str, Any]) -> User:
    ward = None
    if row.get("ward_id") is not None and row.get("ward_name") is not None:
        ward = WardSummary(id=row["ward_id"], name=row["ward_name"], code=row["ward_code"])
    return User(
        id=row["id"],
        name=row["name"],
        email=row["email"],
        zalo_id=row["zalo_id"],
        avatar_url=row["avatar_url"],
        phone_number=row["phone_number"],
        role=row["role"],
        ward_id=row["ward_id"],
        ward=ward,
        is_active=row["is_active"],
        deleted_at=row["deleted_at"],
        created_at=row["created_at"],
        last_login_at=row["last_login_at"],
    )


class AuthDatabase:
    """Database operations for authentication."""

    def __init__(self, postgres: PostgresClient):
        self._db = postgres

    def get_user_by_email(self, email: str) -> User | None:
        """Find user by email (case-insensitive)."""
        row = self._db.execute_single(
            f"""SELECT {_USER_COLUMNS}
                FROM users u LEFT JOIN wards w ON w.id = u.ward_id
                WHERE u.email = lower(%s)""",
            (email,),
        )
        return _row_to_user(row) if row else None

    def get_user_by_id(self, user_id: UUID) -> User | None:
        """Find user by ID."""
        row = self._db.execute_single(
            f"""SELECT {_USER_COLUMNS}
                FROM users u LEFT JOIN wards w ON w.id = u.ward_id
                WHERE u.id = %s""",
            (user_id,),
        )
        return _row_to_user(row) if row else None

    def update_last_login(self, user_id: UUID) -> None:
        """Update last_login_at to current time."""
        self._db.execute_returning(
            "UPDATE users SET last_login_at = %s WHERE id = %s RETURNING id",
            (now_utc(), user_id),
        )

    def get_user_by_zalo_id(self, zalo_id: str) -> User | None:
        """Find user by Zalo id."""
        row = self._db.execute_single(
            f"""SELECT {_USER_COLUMNS}
                FROM users u LEFT JOIN wards w ON w.id = u.ward_id
                WHERE u.zalo_id = %s""",
            (zalo_id,),
        )
        return _row_to_user(row) if row else None

    def get_or_create_citizen(
        self,
        zalo_id: str,
        name: str,
        avatar_url: str | None = None,
        phone_number: str | None = None,
    ) -> tuple[User, bool]:
        """
        Find the user for a Zalo id, registering a citizen on first sign-in.

        The user row and its default settings row are written by one
        statement, so a concurrent first sign-in cannot create a duplicate
        or leave a user without settings. An existing user is returned
        unchanged, whatever its role or state.

        Returns:
            (user, created)
        """
        created = self._db.execute_returning(
            """WITH new_user AS (
                   INSERT INTO users (zalo_id, name, avatar_url, phone_number, role)
                   VALUES (%s, %s, %s, %s, 'citizen')
                   ON CONFLICT (zalo_id) DO NOTHING
                   RETURNING id
               ), settings AS (
                   INSERT INTO user_settings (user_id)
                   SELECT id FROM new_user
               )
               SELECT id FROM new_user""",
            (zalo_id, name, avatar_url, phone_number),
        )

        user = self.get_user_by_zalo_id(zalo_id)
        if user is None:
            # Hard-deleted between the insert and the read
            raise RuntimeError(f"User for Zalo id {zalo_id} vanished during sign-in")
        return user, bool(created)
