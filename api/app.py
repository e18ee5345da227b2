"""Application assembly: wires clients, auth services, middleware and routes.

Run with any ASGI server using the factory, e.g.
    uvicorn --factory api.app:create_app
"""

import logging
from dataclasses import dataclass

import psycopg2
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.responses import JSONResponse

from api.base import success_response, error_response, ErrorCodes
from api.errors import register_error_handlers
from api.middleware import RequestIDMiddleware
from auth.api import create_auth_router
from auth.broker import SessionTokenBroker
from auth.config import AuthConfig
from auth.database import AuthDatabase
from auth.otp import OTPAuthenticator
from auth.rate_limiter import RateLimiter
from auth.security_logger import SecurityLogger
from auth.security_middleware import AuthMiddleware
from auth.service import AuthService
from auth.session import SessionRepository
from auth.tokens import TokenSigner
from clients.email_client import EmailGatewayClient
from clients.postgres_client import PostgresClient
from clients.valkey_client import StoreUnavailableError, ValkeyClient
from clients.zalo_client import ZaloClient
from clients.vault_client import (
    get_database_url,
    get_email_config,
    get_jwt_secrets,
    get_valkey_url,
    get_zalo_config,
)

logger = logging.getLogger(__name__)


@dataclass
class AuthComponents:
    """Everything the HTTP layer needs, built once per process."""

    config: AuthConfig
    postgres: PostgresClient
    valkey: ValkeyClient
    auth_db: AuthDatabase
    signer: TokenSigner
    broker: SessionTokenBroker
    service: AuthService


def build_broker(postgres: PostgresClient, config: AuthConfig) -> tuple[TokenSigner, AuthDatabase, SessionTokenBroker]:
    """Build the token broker and its collaborators from Vault secrets."""
    secrets = get_jwt_secrets()
    signer = TokenSigner(secrets["access_secret"], secrets["refresh_secret"], config)
    auth_db = AuthDatabase(postgres)
    broker = SessionTokenBroker(signer, SessionRepository(postgres), auth_db)
    return signer, auth_db, broker


def build_zalo_client(config: AuthConfig) -> ZaloClient:
    """Zalo verifier. Credentials are only read from Vault when verification is on."""
    if not config.zalo_verify_enabled:
        logger.warning("Zalo verification disabled; Mini App sign-ins trust the client")
        return ZaloClient()
    return ZaloClient(**get_zalo_config(), verify_enabled=True)


def build_components(config: AuthConfig | None = None) -> AuthComponents:
    """Connect to Postgres, Valkey, the email gateway and Zalo using Vault secrets.

    Raises:
        PermissionError: Vault secrets unavailable
        StoreUnavailableError: Valkey unreachable
    """
    config = config or AuthConfig.from_env()
    postgres = PostgresClient(get_database_url())
    valkey = ValkeyClient(get_valkey_url())
    email_config = get_email_config()

    signer, auth_db, broker = build_broker(postgres, config)
    service = AuthService(
        config=config,
        auth_db=auth_db,
        otp=OTPAuthenticator(valkey, config),
        broker=broker,
        rate_limiter=RateLimiter(valkey, config),
        email_client=EmailGatewayClient(**email_config),
        zalo_client=build_zalo_client(config),
        security_logger=SecurityLogger(postgres),
    )

    return AuthComponents(
        config=config,
        postgres=postgres,
        valkey=valkey,
        auth_db=auth_db,
        signer=signer,
        broker=broker,
        service=service,
    )


def create_app(components: AuthComponents | None = None) -> FastAPI:
    """Create the FastAPI application.

    Args:
        components: Pre-built components. Built from Vault when omitted.
    """
    if components is None:
        load_dotenv()
        components = build_components()

    app = FastAPI(title=components.config.app_name)
    register_error_handlers(app)

    # Last added runs first: request IDs wrap authentication
    app.add_middleware(AuthMiddleware, signer=components.signer, auth_db=components.auth_db)
    app.add_middleware(RequestIDMiddleware)

    app.include_router(create_auth_router(components.service), prefix="/auth")

    @app.get("/health")
    def health():
        """Report Postgres and Valkey reachability."""
        checks = {}

        try:
            components.postgres.execute_scalar("SELECT 1")
            checks["postgres"] = "ok"
        except psycopg2.Error as e:
            logger.error(f"Health check: Postgres unavailable: {e}")
            checks["postgres"] = "unavailable"

        try:
            components.valkey.ping()
            checks["valkey"] = "ok"
        except StoreUnavailableError:
            checks["valkey"] = "unavailable"

        if all(status == "ok" for status in checks.values()):
            return success_response({"status": "healthy", "checks": checks})

        return JSONResponse(
            status_code=503,
            content=error_response(
                ErrorCodes.SERVICE_UNAVAILABLE,
                "One or more dependencies are unavailable",
                details={"checks": checks},
            ).model_dump(mode="json"),
        )

    return app
