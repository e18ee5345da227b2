"""Token pair issuance, rotation, and revocation backed by persisted sessions."""

import logging
from typing import Any
from uuid import UUID

from auth.database import AuthDatabase
from auth.exceptions import SessionNotFoundError, UserInactiveError
from auth.session import SessionRepository
from auth.tokens import TokenSigner
from auth.types import AccessClaims, LoginResult, SessionSummary, TokenPair, User, UserProfile
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


class SessionTokenBroker:
    """Mints, validates, rotates, and revokes token pairs.

    A refresh token is only honoured while a live user_sessions row holds it;
    a valid signature alone is never enough.
    """

    def __init__(
        self,
        signer: TokenSigner,
        sessions: SessionRepository,
        auth_db: AuthDatabase,
    ):
        self._signer = signer
        self._sessions = sessions
        self._auth_db = auth_db

    def issue_token_pair(self, claims: AccessClaims) -> TokenPair:
        return self._signer.issue_token_pair(claims)

    def login(
        self,
        user: User,
        device_info: dict[str, Any] | None = None,
        ip_address: str | None = None,
    ) -> LoginResult:
        """Start a session for a user whose identity was already verified.

        Raises:
            UserInactiveError: If the account is deactivated or deleted.
        """
        if not user.can_sign_in:
            raise UserInactiveError("User account is deactivated")

        tokens = self.issue_token_pair(AccessClaims.from_user(user))
        self._sessions.create(
            user_id=user.id,
            token=tokens.refresh_token,
            expires_at=now_utc() + self._signer.refresh_lifetime,
            device_info=device_info,
            ip_address=ip_address,
        )
        logger.info(f"Session created for user {user.id}")

        return LoginResult(
            user=UserProfile.from_user(user),
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
        )

    def refresh(self, refresh_token: str) -> TokenPair:
        """Exchange a refresh token for a new pair, rotating the session in place.

        Raises:
            InvalidTokenError: Malformed, expired, or wrong-secret token.
            SessionNotFoundError: No live session holds this token.
            UserInactiveError: Owner deactivated, deleted, or gone.
        """
        self._signer.verify_refresh_token(refresh_token)

        session = self._sessions.find_live_by_token(refresh_token)
        if session is None or session.expires_at <= now_utc():
            raise SessionNotFoundError("Session not found or expired")

        user = self._auth_db.get_user_by_id(session.user_id)
        if user is None or not user.can_sign_in:
            raise UserInactiveError("User is inactive or deleted")

        tokens = self.issue_token_pair(AccessClaims.from_user(user))
        updated = self._sessions.update_token(
            session.id,
            refresh_token,
            tokens.refresh_token,
            now_utc() + self._signer.refresh_lifetime,
        )
        if updated is None:
            raise SessionNotFoundError("Session was revoked or rotated during refresh")

        return tokens

    def logout(self, user_id: UUID, refresh_token: str) -> None:
        """Revoke one session. Safe to call repeatedly."""
        deleted = self._sessions.delete(user_id, refresh_token)
        if deleted:
            logger.info(f"Session revoked for user {user_id}")

    def logout_all(self, user_id: UUID) -> int:
        """Revoke every session for a user. Returns count revoked."""
        count = self._sessions.delete_all_for_user(user_id)
        logger.info(f"Revoked {count} sessions for user {user_id}")
        return count

    def list_sessions(self, user_id: UUID) -> list[SessionSummary]:
        return self._sessions.list_live_for_user(user_id)

    def cleanup_expired_sessions(self) -> int:
        """Bulk-delete expired sessions. Returns count deleted."""
        count = self._sessions.delete_expired()
        logger.info(f"Cleaned up {count} expired sessions")
        return count
