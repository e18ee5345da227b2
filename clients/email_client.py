"""
Login code delivery through the ward email gateway.

Requests are JSON bodies signed with HMAC-SHA256 (X-Signature) and carry an
X-API-Key. The gateway renders the Vietnamese/English templates; this
client only sends the fields a template needs. A gateway that does not
answer {"success": true} counts as a failed delivery.
"""

import hashlib
import hmac
import json
import logging

import requests

logger = logging.getLogger(__name__)


class EmailGatewayError(Exception):
    """The gateway could not be reached or refused the message."""


class EmailGatewayClient:
    """HMAC-signed client for the email gateway."""

    def __init__(self, gateway_url: str, api_key: str, hmac_secret: str, timeout: float = 10.0):
        """
        Args:
            gateway_url: Full URL of the gateway's send endpoint
            api_key: Value for the X-API-Key header
            hmac_secret: Key for the X-Signature HMAC
            timeout: Seconds to wait for the gateway

        Raises:
            ValueError: If any credential is empty
        """
        for name, value in (("gateway_url", gateway_url), ("api_key", api_key), ("hmac_secret", hmac_secret)):
            if not value:
                raise ValueError(f"{name} is required")

        self.gateway_url = gateway_url
        self.api_key = api_key
        self._hmac_key = hmac_secret.encode("utf-8")
        self._timeout = timeout
        self._session = requests.Session()

    def _signature(self, body: str) -> str:
        return hmac.new(self._hmac_key, body.encode("utf-8"), hashlib.sha256).hexdigest()

    def _post(self, payload: dict) -> None:
        """
        Sign and deliver one payload.

        Raises:
            EmailGatewayError: Transport failure, unreadable reply, or rejection
        """
        # The gateway verifies the signature over these exact bytes
        body = json.dumps(payload, separators=(",", ":"))
        headers = {
            "Content-Type": "application/json",
            "X-API-Key": self.api_key,
            "X-Signature": self._signature(body),
        }

        try:
            response = self._session.post(self.gateway_url, data=body, headers=headers, timeout=self._timeout)
        except (requests.exceptions.RequestException, ConnectionError) as e:
            logger.error(f"Email gateway connection failed: {e}")
            raise EmailGatewayError(f"Connection failed: {e}")

        try:
            reply = response.json()
        except ValueError:
            logger.error(f"Email gateway returned invalid JSON (status {response.status_code})")
            raise EmailGatewayError("Invalid response from gateway")

        if response.status_code != 200 or not reply.get("success"):
            message = reply.get("message", "Unknown error")
            logger.error(f"Email gateway rejected message: {message}")
            raise EmailGatewayError(f"Gateway error: {message}")

    def send_otp(
        self,
        email: str,
        code: str,
        expires_minutes: int,
        name: str | None = None,
        app_name: str = "Ward Portal",
    ) -> None:
        """
        Send a login code.

        Args:
            email: Recipient address
            code: The one-time code
            expires_minutes: Validity shown in the email
            name: Recipient display name, if known
            app_name: Portal name for the subject line

        Raises:
            EmailGatewayError: On any delivery failure
        """
        self._post(
            {
                "type": "otp",
                "email": email,
                "code": code,
                "name": name,
                "expires_minutes": expires_minutes,
                "app_name": app_name,
            }
        )
        # Never log the code itself
        logger.info(f"OTP email sent to {email}")
