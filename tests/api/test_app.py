"""Tests for application assembly helpers."""

from unittest.mock import patch

from api.app import build_zalo_client
from auth.config import AuthConfig


def test_zalo_client_disabled_without_reading_vault():
    with patch("api.app.get_zalo_config") as get_zalo_config:
        client = build_zalo_client(AuthConfig())

    assert client.enabled is False
    get_zalo_config.assert_not_called()


def test_zalo_client_enabled_with_vault_credentials():
    with patch("api.app.get_zalo_config", return_value={"app_id": "1234", "app_secret": "zalo-secret"}):
        client = build_zalo_client(AuthConfig(zalo_verify_enabled=True))

    assert client.enabled is True
    assert client.app_id == "1234"
