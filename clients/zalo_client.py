"""
Zalo Mini App sign-in verification against the Zalo Graph API.

The Mini App hands the backend a Zalo access token together with the Zalo
user id it claims to belong to. With verification enabled the token is
exchanged for the caller's Graph profile and the ids must match. With it
disabled (local development) the claimed id is trusted and no request is
made.
"""

import logging
from dataclasses import dataclass

import requests

logger = logging.getLogger(__name__)

GRAPH_ME_URL = "https://graph.zalo.me/v2.0/me"


class ZaloAuthError(Exception):
    """Zalo rejected the access token, or it belongs to another user."""


class ZaloGatewayError(Exception):
    """The Graph API could not be reached or answered with garbage."""


@dataclass
class ZaloProfile:
    """The caller's Zalo identity as reported by the Graph API."""

    id: str
    name: str
    avatar_url: str | None = None


class ZaloClient:
    """Verifies Zalo access tokens."""

    def __init__(
        self,
        app_id: str | None = None,
        app_secret: str | None = None,
        verify_enabled: bool = False,
        graph_url: str = GRAPH_ME_URL,
        timeout: float = 10.0,
    ):
        """
        Args:
            app_id: Zalo application id
            app_secret: Zalo application secret
            verify_enabled: Check tokens against the Graph API
            graph_url: Profile endpoint
            timeout: Seconds to wait for Zalo

        Raises:
            ValueError: Verification enabled without app credentials
        """
        if verify_enabled:
            for name, value in (("app_id", app_id), ("app_secret", app_secret)):
                if not value:
                    raise ValueError(f"{name} is required when Zalo verification is enabled")

        self.app_id = app_id
        self._app_secret = app_secret
        self._verify_enabled = verify_enabled
        self.graph_url = graph_url
        self._timeout = timeout
        self._session = requests.Session()

    @property
    def enabled(self) -> bool:
        return self._verify_enabled

    def get_profile(self, access_token: str) -> ZaloProfile:
        """
        Fetch the profile the token belongs to.

        Raises:
            ZaloAuthError: Token rejected by Zalo
            ZaloGatewayError: Transport failure or unreadable reply
        """
        try:
            response = self._session.get(
                self.graph_url,
                params={"access_token": access_token, "fields": "id,name,picture"},
                timeout=self._timeout,
            )
        except (requests.exceptions.RequestException, ConnectionError) as e:
            logger.error(f"Zalo Graph API connection failed: {e}")
            raise ZaloGatewayError(f"Connection failed: {e}")

        try:
            data = response.json()
        except ValueError:
            data = None

        # Graph errors come back either as a non-2xx status or as a 200 with a non-zero error
        if not response.ok or (isinstance(data, dict) and data.get("error")):
            message = data.get("message") if isinstance(data, dict) else None
            logger.warning(f"Zalo rejected access token (status {response.status_code}): {message}")
            raise ZaloAuthError(message or "Invalid token")

        if not isinstance(data, dict) or not data.get("id"):
            logger.error(f"Zalo Graph API returned no user id (status {response.status_code})")
            raise ZaloGatewayError("Invalid response from Zalo API")

        picture = data.get("picture") or {}
        return ZaloProfile(
            id=str(data["id"]),
            name=data.get("name") or "",
            avatar_url=(picture.get("data") or {}).get("url"),
        )

    def verify_user(self, access_token: str, zalo_id: str) -> ZaloProfile | None:
        """
        Check that the token belongs to zalo_id.

        Returns:
            The verified profile, or None when verification is disabled

        Raises:
            ZaloAuthError: Token rejected, or issued to a different user
            ZaloGatewayError: Zalo unreachable
        """
        if not self._verify_enabled:
            logger.warning("Zalo verification disabled, trusting client-supplied id")
            return None

        profile = self.get_profile(access_token)
        if profile.id != zalo_id:
            logger.warning(f"Zalo token belongs to {profile.id}, not {zalo_id}")
            raise ZaloAuthError("Zalo ID does not match token")
        return profile
