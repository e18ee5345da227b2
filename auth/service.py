"""Authentication service - orchestrates email OTP and Zalo sign-in."""

import logging
from dataclasses import dataclass
from uuid import UUID

from auth.broker import SessionTokenBroker
from auth.config import AuthConfig
from auth.database import AuthDatabase
from auth.exceptions import (
    AccountLockedError,
    AuthError,
    ExternalAuthError,
    InvalidOTPError,
    NotAuthorizedError,
    PolicyRejection,
    UserInactiveError,
    UserNotFoundError,
)
from auth.otp import OTPAuthenticator
from auth.rate_limiter import RateLimiter
from auth.security_logger import SecurityEvent, SecurityLogger
from auth.types import LoginResult, SessionSummary, TokenPair, UserProfile
from clients.email_client import EmailGatewayClient, EmailGatewayError
from clients.zalo_client import ZaloAuthError, ZaloClient

logger = logging.getLogger(__name__)


@dataclass
class OTPRequestResult:
    """Result of a code request."""

    email: str
    expires_in_seconds: int


class AuthService:
    """Orchestrates dashboard authentication.

    Handles:
    - Code requests (staff-only, rate limited, cooldown and lockout aware)
    - Code verification and session creation
    - Zalo Mini App sign-in, registering first-time citizens
    - Token refresh
    - Logout (one device or all devices)
    """

    def __init__(
        self,
        config: AuthConfig,
        auth_db: AuthDatabase,
        otp: OTPAuthenticator,
        broker: SessionTokenBroker,
        rate_limiter: RateLimiter,
        email_client: EmailGatewayClient,
        zalo_client: ZaloClient,
        security_logger: SecurityLogger,
    ):
        self._config = config
        self._auth_db = auth_db
        self._otp = otp
        self._broker = broker
        self._rate_limiter = rate_limiter
        self._email_client = email_client
        self._zalo_client = zalo_client
        self._security_logger = security_logger

    def request_otp(
        self,
        email: str,
        ip_address: str | None,
        user_agent: str | None,
    ) -> OTPRequestResult:
        """Issue and email a login code.

        Flow:
        1. Check per-IP rate limit
        2. Look up user; must be active staff
        3. Issue code (lockout and cooldown enforced)
        4. Send email
        5. Log security event

        Raises:
            RateLimitedError: Too many requests from this IP.
            UserNotFoundError: No user with this email.
            NotAuthorizedError: User's role may not sign in to the dashboard.
            UserInactiveError: Account deactivated or deleted.
            AccountLockedError / CooldownActiveError: OTP policy.
            EmailGatewayError: Delivery failed.
        """
        email = email.lower().strip()

        if ip_address:
            try:
                self._rate_limiter.check_rate_limit(ip_address)
            except PolicyRejection:
                self._security_logger.record(
                    SecurityEvent.RATE_LIMITED,
                    email=email,
                    ip_address=ip_address,
                    user_agent=user_agent,
                )
                raise

        user = self._auth_db.get_user_by_email(email)
        if user is None:
            self._security_logger.record(
                SecurityEvent.OTP_FAILED,
                email=email,
                ip_address=ip_address,
                user_agent=user_agent,
                details={"reason": "user_not_found"},
            )
            raise UserNotFoundError("No administrator account for this email")

        if user.role not in self._config.staff_roles:
            raise NotAuthorizedError("Not authorized to sign in to the dashboard")

        if not user.can_sign_in:
            raise UserInactiveError("Account is inactive or deleted")

        issue = self._otp.request_code(email)

        self._security_logger.record(
            SecurityEvent.OTP_REQUESTED,
            email=email,
            user_id=user.id,
            ip_address=ip_address,
            user_agent=user_agent,
        )

        try:
            self._email_client.send_otp(
                email=email,
                code=issue.code,
                expires_minutes=issue.expires_in_seconds // 60,
                name=user.name,
                app_name=self._config.app_name,
            )
        except EmailGatewayError:
            logger.error(f"OTP delivery failed for {email}, discarding code")
            self._otp.discard(email)
            raise

        self._security_logger.record(
            SecurityEvent.OTP_SENT,
            email=email,
            user_id=user.id,
            ip_address=ip_address,
        )

        return OTPRequestResult(email=email, expires_in_seconds=issue.expires_in_seconds)

    def verify_otp_and_login(
        self,
        email: str,
        code: str,
        ip_address: str | None,
        user_agent: str | None,
    ) -> LoginResult:
        """Verify a login code and open a session.

        Raises:
            AccountLockedError: Locked before or by this attempt.
            InvalidOTPError: Wrong, missing, or expired code.
            UserNotFoundError: User vanished since the code was issued.
            UserInactiveError: Account deactivated or deleted.
        """
        email = email.lower().strip()

        result = self._otp.verify(email, code)

        if not result.valid:
            if result.locked:
                self._security_logger.record(
                    SecurityEvent.OTP_LOCKED,
                    email=email,
                    ip_address=ip_address,
                    user_agent=user_agent,
                )
                raise AccountLockedError(
                    retry_after_seconds=max(self._otp.lock_ttl(email), 1)
                )

            self._security_logger.record(
                SecurityEvent.OTP_FAILED,
                email=email,
                ip_address=ip_address,
                user_agent=user_agent,
                details={"attempts_remaining": result.attempts_remaining},
            )
            raise InvalidOTPError(attempts_remaining=result.attempts_remaining)

        user = self._auth_db.get_user_by_email(email)
        if user is None:
            raise UserNotFoundError("User not found")

        login = self._broker.login(
            user,
            device_info={"user_agent": user_agent} if user_agent else None,
            ip_address=ip_address,
        )
        self._auth_db.update_last_login(user.id)

        self._security_logger.record(
            SecurityEvent.OTP_VERIFIED,
            email=email,
            user_id=user.id,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        self._security_logger.record(
            SecurityEvent.SESSION_CREATED,
            email=email,
            user_id=user.id,
            ip_address=ip_address,
            user_agent=user_agent,
        )

        return login

    def login_with_zalo(
        self,
        zalo_access_token: str,
        zalo_id: str,
        name: str,
        avatar_url: str | None,
        phone_number: str | None,
        ip_address: str | None,
        user_agent: str | None,
    ) -> LoginResult:
        """Sign in from the Zalo Mini App.

        Flow:
        1. Check per-IP rate limit
        2. Verify the Zalo token belongs to zalo_id (skipped when disabled)
        3. Find the user, or register a citizen with default settings
        4. Open a session through the broker

        Raises:
            RateLimitedError: Too many requests from this IP.
            ExternalAuthError: Zalo rejected the token or it names another user.
            UserInactiveError: Account deactivated or deleted.
            ZaloGatewayError: Zalo unreachable.
        """
        if ip_address:
            try:
                self._rate_limiter.check_rate_limit(ip_address)
            except PolicyRejection:
                self._security_logger.record(
                    SecurityEvent.RATE_LIMITED,
                    ip_address=ip_address,
                    user_agent=user_agent,
                    details={"zalo_id": zalo_id},
                )
                raise

        try:
            self._zalo_client.verify_user(zalo_access_token, zalo_id)
        except ZaloAuthError as e:
            self._security_logger.record(
                SecurityEvent.ZALO_LOGIN_FAILED,
                ip_address=ip_address,
                user_agent=user_agent,
                details={"zalo_id": zalo_id, "reason": str(e)},
            )
            raise ExternalAuthError("Invalid Zalo token") from e

        user, created = self._auth_db.get_or_create_citizen(
            zalo_id,
            name=name,
            avatar_url=avatar_url,
            phone_number=phone_number,
        )
        if created:
            logger.info(f"Registered citizen {user.id} from Zalo sign-in")
            self._security_logger.record(
                SecurityEvent.USER_REGISTERED,
                user_id=user.id,
                ip_address=ip_address,
                user_agent=user_agent,
            )

        login = self._broker.login(
            user,
            device_info={"user_agent": user_agent} if user_agent else None,
            ip_address=ip_address,
        )
        self._auth_db.update_last_login(user.id)

        self._security_logger.record(
            SecurityEvent.ZALO_LOGIN,
            user_id=user.id,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        self._security_logger.record(
            SecurityEvent.SESSION_CREATED,
            user_id=user.id,
            ip_address=ip_address,
            user_agent=user_agent,
        )

        return login

    def refresh(self, refresh_token: str, ip_address: str | None) -> TokenPair:
        """Rotate a refresh token.

        Raises:
            InvalidTokenError / SessionNotFoundError / UserInactiveError
        """
        try:
            tokens = self._broker.refresh(refresh_token)
        except AuthError as e:
            self._security_logger.record(
                SecurityEvent.TOKEN_REFRESH_FAILED,
                ip_address=ip_address,
                details={"reason": type(e).__name__},
            )
            raise

        self._security_logger.record(SecurityEvent.TOKEN_REFRESHED, ip_address=ip_address)
        return tokens

    def logout(self, user_id: UUID, refresh_token: str, ip_address: str | None) -> None:
        """Revoke the caller's session. Safe to call with an unknown token."""
        self._broker.logout(user_id, refresh_token)
        self._security_logger.record(
            SecurityEvent.SESSION_REVOKED,
            user_id=user_id,
            ip_address=ip_address,
        )

    def logout_all(self, user_id: UUID, ip_address: str | None) -> int:
        """Revoke every session of the caller. Returns count revoked."""
        count = self._broker.logout_all(user_id)
        self._security_logger.record(
            SecurityEvent.SESSIONS_REVOKED_ALL,
            user_id=user_id,
            ip_address=ip_address,
            details={"deleted_count": count},
        )
        return count

    def get_current_user(self, user_id: UUID) -> UserProfile:
        """
        Raises:
            UserNotFoundError: If the user no longer exists.
        """
        user = self._auth_db.get_user_by_id(user_id)
        if user is None:
            raise UserNotFoundError("User not found")
        return UserProfile.from_user(user)

    def get_sessions(self, user_id: UUID) -> list[SessionSummary]:
        return self._broker.list_sessions(user_id)
