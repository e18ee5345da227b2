"""HTTP routes for authentication.

Handlers are plain `def` so FastAPI runs the blocking Valkey/Postgres
calls in its threadpool.
"""

import ipaddress
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from auth.exceptions import (
    AccountLockedError,
    AuthError,
    CooldownActiveError,
    ExternalAuthError,
    InvalidOTPError,
    InvalidTokenError,
    NotAuthorizedError,
    NotFoundError,
    PolicyRejection,
    UserInactiveError,
)
from auth.service import AuthService
from auth.types import OTPRequest, OTPVerifyRequest, RefreshRequest, ZaloLoginRequest
from api.base import success_response, error_response, ErrorCodes

logger = logging.getLogger(__name__)


def _get_client_ip(request: Request) -> str | None:
    """Extract valid IP address from request, or None if invalid."""
    if not request.client:
        return None
    host = request.client.host
    try:
        ipaddress.ip_address(host)
        return host
    except ValueError:
        return None


def _error(
    status_code: int,
    code: str,
    message: str,
    details: dict | None = None,
    headers: dict | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        headers=headers,
        content=error_response(code, message, details).model_dump(mode="json"),
    )


def auth_error_response(exc: AuthError) -> JSONResponse:
    """Map an auth-domain error to its HTTP response."""
    if isinstance(exc, PolicyRejection):
        if isinstance(exc, AccountLockedError):
            code = ErrorCodes.ACCOUNT_LOCKED
        elif isinstance(exc, CooldownActiveError):
            code = ErrorCodes.OTP_COOLDOWN
        else:
            code = ErrorCodes.RATE_LIMITED
        return _error(
            429,
            code,
            str(exc),
            details={"retry_after": exc.retry_after_seconds},
            headers={"Retry-After": str(exc.retry_after_seconds)},
        )

    if isinstance(exc, InvalidOTPError):
        return _error(
            401,
            ErrorCodes.INVALID_OTP,
            str(exc),
            details={"attempts_remaining": exc.attempts_remaining},
        )

    if isinstance(exc, InvalidTokenError):
        return _error(401, ErrorCodes.INVALID_TOKEN, "Invalid or expired token")

    if isinstance(exc, ExternalAuthError):
        return _error(401, ErrorCodes.INVALID_TOKEN, str(exc))

    if isinstance(exc, NotFoundError):
        return _error(404, ErrorCodes.NOT_FOUND, str(exc))

    if isinstance(exc, UserInactiveError):
        return _error(404, ErrorCodes.USER_INACTIVE, str(exc))

    if isinstance(exc, NotAuthorizedError):
        return _error(403, ErrorCodes.FORBIDDEN, str(exc))

    logger.warning(f"Unmapped auth error: {type(exc).__name__}")
    return _error(400, ErrorCodes.INVALID_REQUEST, str(exc))


def create_auth_router(auth_service: AuthService) -> APIRouter:
    """Create auth router with injected service."""
    router = APIRouter(tags=["auth"])

    @router.post("/otp/request")
    def request_otp(request: Request, body: OTPRequest):
        """Email a login code to a staff account.

        Returns the normalised email and the code lifetime in seconds.
        """
        try:
            result = auth_service.request_otp(
                email=body.email,
                ip_address=_get_client_ip(request),
                user_agent=request.headers.get("User-Agent"),
            )
        except AuthError as e:
            return auth_error_response(e)

        return success_response({
            "email": result.email,
            "expires_in": result.expires_in_seconds,
        })

    @router.post("/otp/verify")
    def verify_otp(request: Request, body: OTPVerifyRequest):
        """Verify a login code and return the user with a fresh token pair."""
        try:
            result = auth_service.verify_otp_and_login(
                email=body.email,
                code=body.otp,
                ip_address=_get_client_ip(request),
                user_agent=request.headers.get("User-Agent"),
            )
        except AuthError as e:
            return auth_error_response(e)

        return success_response(result.model_dump(mode="json"))

    @router.post("/zalo/login")
    def zalo_login(request: Request, body: ZaloLoginRequest):
        """Sign in from the Zalo Mini App.

        First-time users are registered as citizens. Returns the same shape
        as /otp/verify.
        """
        try:
            result = auth_service.login_with_zalo(
                zalo_access_token=body.zalo_access_token,
                zalo_id=body.zalo_id,
                name=body.name,
                avatar_url=str(body.avatar) if body.avatar else None,
                phone_number=body.phone_number,
                ip_address=_get_client_ip(request),
                user_agent=request.headers.get("User-Agent"),
            )
        except AuthError as e:
            return auth_error_response(e)

        return success_response(result.model_dump(mode="json"))

    @router.post("/refresh")
    def refresh(request: Request, body: RefreshRequest):
        """Rotate a refresh token.

        Every failure is reported as the same 401 so callers cannot tell
        which check rejected the token.
        """
        try:
            tokens = auth_service.refresh(body.refresh_token, ip_address=_get_client_ip(request))
        except AuthError:
            return _error(401, ErrorCodes.INVALID_TOKEN, "Invalid or expired refresh token")

        return success_response(tokens.model_dump())

    @router.post("/logout")
    def logout(request: Request, body: RefreshRequest):
        """Revoke the session holding this refresh token. Idempotent."""
        auth_service.logout(
            user_id=request.state.user_id,
            refresh_token=body.refresh_token,
            ip_address=_get_client_ip(request),
        )
        return success_response({"message": "Logged out successfully"})

    @router.post("/logout-all")
    def logout_all(request: Request):
        """Revoke every session of the current user."""
        count = auth_service.logout_all(
            user_id=request.state.user_id,
            ip_address=_get_client_ip(request),
        )
        return success_response({"deleted_count": count})

    @router.get("/me")
    def get_current_user(request: Request):
        """Get current authenticated user.

        Requires authentication (middleware sets user context).
        """
        if not hasattr(request.state, "user_id"):
            return _error(401, ErrorCodes.NOT_AUTHENTICATED, "Authentication required")

        try:
            profile = auth_service.get_current_user(request.state.user_id)
        except AuthError as e:
            return auth_error_response(e)

        return success_response({"user": profile.model_dump(mode="json")})

    @router.get("/sessions")
    def list_sessions(request: Request):
        """List the current user's live sessions, newest first."""
        sessions = auth_service.get_sessions(request.state.user_id)
        return success_response([s.model_dump(mode="json") for s in sessions])

    return router
