"""Security middleware for FastAPI - bearer token validation and user context."""

import logging

import psycopg2
from fastapi import HTTPException, Request
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from auth.database import AuthDatabase
from auth.exceptions import InvalidTokenError
from auth.tokens import TokenSigner
from api.base import error_response, ErrorCodes
from clients.valkey_client import StoreUnavailableError

logger = logging.getLogger(__name__)


class AuthMiddleware(BaseHTTPMiddleware):
    """Middleware that validates the access token and sets user context.

    For protected routes:
    1. Extracts the bearer token from the Authorization header
    2. Verifies signature, expiry and token type via TokenSigner
    3. Re-checks the user is still active and not deleted
    4. Sets user_id, role and ward_id on request.state

    Public paths bypass authentication entirely.

    Runs outside the app's exception handlers, so backend outages during
    the user re-check are turned into 503 responses here.
    """

    PUBLIC_PATHS = [
        "/auth/otp/request",
        "/auth/otp/verify",
        "/auth/zalo/login",
        "/auth/refresh",
        "/health",
        "/docs",
        "/openapi.json",
    ]

    def __init__(self, app, signer: TokenSigner, auth_db: AuthDatabase):
        super().__init__(app)
        self._signer = signer
        self._auth_db = auth_db

    def _is_public_path(self, path: str) -> bool:
        """Check if path is in public paths list."""
        for public_path in self.PUBLIC_PATHS:
            if path == public_path or path.startswith(public_path + "/"):
                return True
        return False

    @staticmethod
    def _reject(status_code: int, code: str, message: str) -> JSONResponse:
        return JSONResponse(
            status_code=status_code,
            content=error_response(code, message).model_dump(mode="json"),
        )

    async def dispatch(self, request: Request, call_next):
        """Process request through middleware."""
        path = request.url.path

        # Skip auth for public paths
        if self._is_public_path(path):
            return await call_next(request)

        authorization = request.headers.get("Authorization", "")
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            return self._reject(401, ErrorCodes.NOT_AUTHENTICATED, "Authentication required")

        try:
            claims = self._signer.verify_access_token(token.strip())
        except InvalidTokenError:
            return self._reject(401, ErrorCodes.SESSION_EXPIRED, "Invalid or expired token")

        try:
            user = await run_in_threadpool(self._auth_db.get_user_by_id, claims.user_id)
        except (psycopg2.OperationalError, StoreUnavailableError) as e:
            logger.error(f"User re-check unavailable on {path}: {e}")
            return self._reject(503, ErrorCodes.SERVICE_UNAVAILABLE, "Service temporarily unavailable")

        if user is None or not user.can_sign_in:
            logger.info(f"Rejected token for inactive or missing user {claims.user_id}")
            return self._reject(401, ErrorCodes.NOT_AUTHENTICATED, "User is inactive or deleted")

        request.state.user_id = claims.user_id
        request.state.role = claims.role
        request.state.ward_id = claims.ward_id

        return await call_next(request)


def require_role(*roles: str):
    """Route dependency allowing only the given roles.

    Reads the role AuthMiddleware put on request.state, so it only works
    on protected paths.

    Usage:
        @router.get("/wards", dependencies=[Depends(require_role("admin"))])
    """

    def check_role(request: Request) -> str:
        role = getattr(request.state, "role", None)
        if role is None:
            raise HTTPException(status_code=401, detail="Authentication required")
        if role not in roles:
            logger.info(f"Role {role} denied on {request.url.path}")
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return role

    return check_role


require_admin = require_role("admin")
require_staff = require_role("staff", "admin")
