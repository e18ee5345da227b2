"""Authentication and authorization modules."""

from auth.exceptions import (
    AuthError,
    PolicyRejection,
    AccountLockedError,
    CooldownActiveError,
    RateLimitedError,
    AuthenticationFailure,
    ExternalAuthError,
    InvalidOTPError,
    InvalidTokenError,
    NotFoundError,
    UserNotFoundError,
    SessionNotFoundError,
    UserInactiveError,
    NotAuthorizedError,
)
from auth.types import (
    User,
    UserProfile,
    Session,
    SessionSummary,
    AccessClaims,
    TokenPair,
    LoginResult,
    OTPRequest,
    OTPVerifyRequest,
    RefreshRequest,
    ZaloLoginRequest,
)
from auth.config import AuthConfig
from auth.database import AuthDatabase
from auth.otp import OTPAuthenticator, OTPIssue, VerifyResult
from auth.tokens import TokenSigner
from auth.session import SessionRepository
from auth.broker import SessionTokenBroker
from auth.rate_limiter import RateLimiter
from auth.security_logger import SecurityLogger, SecurityEvent
from auth.service import AuthService, OTPRequestResult
from auth.security_middleware import AuthMiddleware, require_role, require_staff, require_admin
from auth.api import create_auth_router
