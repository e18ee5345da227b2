"""Shared test fixtures for the ward portal auth test suite."""

from pathlib import Path
from unittest.mock import Mock
from uuid import UUID

import pytest
from dotenv import load_dotenv

# Load .env file BEFORE any other imports that might use env vars
# override=True ensures .env takes precedence over shell env vars
load_dotenv(Path(__file__).parent.parent / ".env", override=True)

# Reset vault client singleton to pick up env vars
import clients.vault_client as vault_module
vault_module._vault_client_instance = None
vault_module._secret_cache.clear()

from api.app import AuthComponents
from auth.broker import SessionTokenBroker
from auth.config import AuthConfig
from auth.database import AuthDatabase
from auth.otp import OTPAuthenticator
from auth.rate_limiter import RateLimiter
from auth.security_logger import SecurityLogger
from auth.service import AuthService
from auth.tokens import TokenSigner
from auth.types import User
from clients.email_client import EmailGatewayClient
from clients.postgres_client import PostgresClient
from clients.zalo_client import ZaloClient
from tests.fakes import (
    ACCESS_SECRET,
    REFRESH_SECRET,
    TEST_USER_ID,
    FakeClock,
    FakeValkey,
    InMemorySessionRepository,
    make_user,
)


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def test_user_id() -> UUID:
    """The primary test user's ID."""
    return TEST_USER_ID


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def valkey(clock) -> FakeValkey:
    """In-memory Valkey driven by the fake clock."""
    return FakeValkey(clock)


@pytest.fixture
def session_repository(clock, monkeypatch) -> InMemorySessionRepository:
    """In-memory sessions; the broker's notion of "now" follows the fake clock."""
    monkeypatch.setattr("auth.broker.now_utc", clock)
    return InMemorySessionRepository(clock)


@pytest.fixture
def config() -> AuthConfig:
    """Default policy: 6 digits, 300s expiry, 5 attempts, 1800s lock, 60s cooldown."""
    return AuthConfig()


@pytest.fixture
def staff_user() -> User:
    return make_user()


@pytest.fixture
def auth_db(staff_user):
    """Mock AuthDatabase that finds the staff user by email or id."""
    mock = Mock(spec=AuthDatabase)
    mock.get_user_by_email.return_value = staff_user
    mock.get_user_by_id.return_value = staff_user
    return mock


@pytest.fixture
def mock_email_client():
    """Mock email client - no actual emails sent in tests."""
    mock = Mock(spec=EmailGatewayClient)
    mock.send_otp.return_value = None
    return mock


@pytest.fixture
def mock_zalo_client():
    """Mock Zalo verifier that accepts every token."""
    mock = Mock(spec=ZaloClient)
    mock.verify_user.return_value = None
    return mock


@pytest.fixture
def mock_security_logger():
    return Mock(spec=SecurityLogger)


@pytest.fixture
def signer(config) -> TokenSigner:
    return TokenSigner(ACCESS_SECRET, REFRESH_SECRET, config)


@pytest.fixture
def components(
    config,
    valkey,
    session_repository,
    auth_db,
    signer,
    mock_email_client,
    mock_zalo_client,
    mock_security_logger,
):
    """Fully wired auth stack over in-memory Valkey and sessions."""
    broker = SessionTokenBroker(signer, session_repository, auth_db)
    service = AuthService(
        config=config,
        auth_db=auth_db,
        otp=OTPAuthenticator(valkey, config),
        broker=broker,
        rate_limiter=RateLimiter(valkey, config),
        email_client=mock_email_client,
        zalo_client=mock_zalo_client,
        security_logger=mock_security_logger,
    )
    postgres = Mock(spec=PostgresClient)
    postgres.execute_scalar.return_value = 1

    return AuthComponents(
        config=config,
        postgres=postgres,
        valkey=valkey,
        auth_db=auth_db,
        signer=signer,
        broker=broker,
        service=service,
    )
