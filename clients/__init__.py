# Infrastructure clients
from clients.vault_client import (
    VaultClient,
    get_database_url,
    get_valkey_url,
    get_email_config,
    get_jwt_secrets,
    get_zalo_config,
)
from clients.postgres_client import PostgresClient
from clients.valkey_client import ValkeyClient, StoreUnavailableError
from clients.email_client import EmailGatewayClient, EmailGatewayError
from clients.zalo_client import ZaloClient, ZaloProfile, ZaloAuthError, ZaloGatewayError
from clients.portal_client import (
    APIError,
    SessionExpiredError,
    TokenStorage,
    MemoryTokenStorage,
    RequestOptions,
    RefreshCoordinator,
    PortalAPIClient,
)
