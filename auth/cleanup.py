"""Expired session sweep.

Installed as the `ward-portal-cleanup-sessions` console script; meant to be
run from cron or a scheduler.
"""

import logging
import sys

from dotenv import load_dotenv

from api.app import build_broker
from auth.broker import SessionTokenBroker
from auth.config import AuthConfig
from auth.security_logger import SecurityEvent, SecurityLogger
from clients.postgres_client import PostgresClient
from clients.vault_client import get_database_url

logger = logging.getLogger(__name__)


def cleanup_sessions(broker: SessionTokenBroker, security_logger: SecurityLogger) -> int:
    """Delete expired sessions and record the sweep. Returns count deleted."""
    count = broker.cleanup_expired_sessions()
    security_logger.record(
        SecurityEvent.SESSIONS_CLEANED,
        details={"deleted_count": count},
    )
    return count


def main() -> int:
    """Console entry point."""
    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    postgres = PostgresClient(get_database_url())
    try:
        _, _, broker = build_broker(postgres, AuthConfig.from_env())
        count = cleanup_sessions(broker, SecurityLogger(postgres))
    finally:
        postgres.close()

    logger.info(f"Deleted {count} expired sessions")
    return 0


if __name__ == "__main__":
    sys.exit(main())
