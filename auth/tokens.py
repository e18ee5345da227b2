"""Signed access/refresh tokens (HS256 via python-jose).

Access and refresh tokens are signed with independent secrets so a leaked
refresh secret cannot mint access tokens and vice versa. A token's `type`
claim is checked as well, so one kind is never accepted in place of the other.
"""

import logging
import secrets
from datetime import timedelta
from uuid import UUID

from jose import JWTError, jwt

from auth.config import AuthConfig
from auth.exceptions import InvalidTokenError
from auth.types import AccessClaims, TokenPair
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


class TokenSigner:
    """Mints and verifies JWT token pairs."""

    def __init__(self, access_secret: str, refresh_secret: str, config: AuthConfig):
        """
        Args:
            access_secret: Secret for access tokens
            refresh_secret: Secret for refresh tokens

        Raises:
            ValueError: If a secret is empty or both secrets are the same
        """
        if not access_secret:
            raise ValueError("access_secret is required")
        if not refresh_secret:
            raise ValueError("refresh_secret is required")
        if access_secret == refresh_secret:
            raise ValueError("access_secret and refresh_secret must be different")

        self._access_secret = access_secret
        self._refresh_secret = refresh_secret
        self._config = config

    @property
    def refresh_lifetime(self) -> timedelta:
        return timedelta(days=self._config.refresh_token_expiry_days)

    def create_access_token(self, claims: AccessClaims) -> str:
        now = now_utc()
        payload = {
            "sub": str(claims.user_id),
            "role": claims.role,
            "type": ACCESS_TOKEN_TYPE,
            "iat": now,
            "exp": now + timedelta(minutes=self._config.access_token_expiry_minutes),
        }
        if claims.ward_id is not None:
            payload["ward_id"] = str(claims.ward_id)
        if claims.email is not None:
            payload["email"] = claims.email
        if claims.zalo_id is not None:
            payload["zalo_id"] = claims.zalo_id
        return jwt.encode(payload, self._access_secret, algorithm=ALGORITHM)

    def create_refresh_token(self, user_id: UUID) -> str:
        # jti keeps two tokens minted in the same second distinct
        now = now_utc()
        payload = {
            "sub": str(user_id),
            "type": REFRESH_TOKEN_TYPE,
            "jti": secrets.token_urlsafe(16),
            "iat": now,
            "exp": now + self.refresh_lifetime,
        }
        return jwt.encode(payload, self._refresh_secret, algorithm=ALGORITHM)

    def issue_token_pair(self, claims: AccessClaims) -> TokenPair:
        """Mint an access token carrying claims and a refresh token carrying only the user id."""
        return TokenPair(
            access_token=self.create_access_token(claims),
            refresh_token=self.create_refresh_token(claims.user_id),
        )

    def _decode(self, token: str, secret: str, expected_type: str) -> dict:
        try:
            payload = jwt.decode(token, secret, algorithms=[ALGORITHM])
        except JWTError as e:
            logger.debug(f"Rejected {expected_type} token: {e}")
            raise InvalidTokenError("Invalid or expired token") from e

        if payload.get("type") != expected_type or not payload.get("sub"):
            raise InvalidTokenError("Invalid or expired token")
        return payload

    def verify_access_token(self, token: str) -> AccessClaims:
        """Decode an access token.

        Raises:
            InvalidTokenError: If malformed, expired, or signed with another secret.
        """
        payload = self._decode(token, self._access_secret, ACCESS_TOKEN_TYPE)
        try:
            return AccessClaims(
                user_id=UUID(payload["sub"]),
                role=payload["role"],
                ward_id=UUID(payload["ward_id"]) if payload.get("ward_id") else None,
                email=payload.get("email"),
                zalo_id=payload.get("zalo_id"),
            )
        except (KeyError, ValueError) as e:
            raise InvalidTokenError("Invalid or expired token") from e

    def verify_refresh_token(self, token: str) -> UUID:
        """Decode a refresh token and return its user id.

        Raises:
            InvalidTokenError: If malformed, expired, or signed with another secret.
        """
        payload = self._decode(token, self._refresh_secret, REFRESH_TOKEN_TYPE)
        try:
            return UUID(payload["sub"])
        except ValueError as e:
            raise InvalidTokenError("Invalid or expired token") from e
