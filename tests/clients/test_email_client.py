"""Tests for EmailGatewayClient - HMAC-signed OTP delivery."""

import hashlib
import hmac
import json

import pytest
import responses

from clients.email_client import EmailGatewayClient, EmailGatewayError


class TestEmailGatewayClientInit:
    """Test client initialization - fail-fast on invalid config."""

    def test_init_with_valid_credentials(self):
        """Client initializes with all required credentials."""
        client = EmailGatewayClient(
            gateway_url="https://gateway.example.com/send",
            api_key="test-api-key",
            hmac_secret="test-hmac-secret",
        )
        assert client is not None

    def test_init_rejects_empty_gateway_url(self):
        """Empty gateway_url raises ValueError."""
        with pytest.raises(ValueError, match="gateway_url"):
            EmailGatewayClient(
                gateway_url="",
                api_key="test-api-key",
                hmac_secret="test-hmac-secret",
            )

    def test_init_rejects_empty_api_key(self):
        """Empty api_key raises ValueError."""
        with pytest.raises(ValueError, match="api_key"):
            EmailGatewayClient(
                gateway_url="https://gateway.example.com/send",
                api_key="",
                hmac_secret="test-hmac-secret",
            )

    def test_init_rejects_empty_hmac_secret(self):
        """Empty hmac_secret raises ValueError."""
        with pytest.raises(ValueError, match="hmac_secret"):
            EmailGatewayClient(
                gateway_url="https://gateway.example.com/send",
                api_key="test-api-key",
                hmac_secret="",
            )


class TestSendOTP:
    """Test send_otp - uses responses library for HTTP mocking."""

    GATEWAY_URL = "https://gateway.example.com/send"

    @pytest.fixture
    def client(self):
        """Create client with test credentials."""
        return EmailGatewayClient(
            gateway_url=self.GATEWAY_URL,
            api_key="test-api-key",
            hmac_secret="test-hmac-secret",
        )

    def send(self, client):
        client.send_otp(
            email="staff@phuong1.gov.vn",
            code="482913",
            expires_minutes=5,
            name="Nguyen Van A",
        )

    @responses.activate
    def test_successful_send_returns_none(self, client):
        """Successful gateway response completes without exception."""
        responses.add(responses.POST, self.GATEWAY_URL, json={"success": True}, status=200)

        result = client.send_otp(email="staff@phuong1.gov.vn", code="482913", expires_minutes=5)

        assert result is None

    @responses.activate
    def test_payload_carries_template_fields(self, client):
        responses.add(responses.POST, self.GATEWAY_URL, json={"success": True}, status=200)

        self.send(client)

        payload = json.loads(responses.calls[0].request.body)
        assert payload == {
            "type": "otp",
            "email": "staff@phuong1.gov.vn",
            "code": "482913",
            "name": "Nguyen Van A",
            "expires_minutes": 5,
            "app_name": "Ward Portal",
        }

    @responses.activate
    def test_request_is_signed(self, client):
        """X-Signature is HMAC-SHA256 of the exact body sent."""
        responses.add(responses.POST, self.GATEWAY_URL, json={"success": True}, status=200)

        self.send(client)

        request = responses.calls[0].request
        body = request.body if isinstance(request.body, bytes) else request.body.encode("utf-8")
        expected = hmac.new(b"test-hmac-secret", body, hashlib.sha256).hexdigest()
        assert request.headers["X-Signature"] == expected
        assert request.headers["X-API-Key"] == "test-api-key"

    @responses.activate
    def test_code_not_logged(self, client, caplog):
        responses.add(responses.POST, self.GATEWAY_URL, json={"success": True}, status=200)

        with caplog.at_level("INFO"):
            self.send(client)

        assert "482913" not in caplog.text
        assert "OTP email sent to staff@phuong1.gov.vn" in caplog.text

    @responses.activate
    def test_gateway_500_raises_error(self, client):
        """Server error from gateway raises EmailGatewayError."""
        responses.add(
            responses.POST,
            self.GATEWAY_URL,
            json={"success": False, "message": "Internal error"},
            status=500,
        )

        with pytest.raises(EmailGatewayError, match="Internal error"):
            self.send(client)

    @responses.activate
    def test_gateway_success_false_raises_error(self, client):
        """Gateway returns 200 but success=false raises EmailGatewayError."""
        responses.add(
            responses.POST,
            self.GATEWAY_URL,
            json={"success": False, "message": "Mailbox unavailable"},
            status=200,
        )

        with pytest.raises(EmailGatewayError):
            self.send(client)

    @responses.activate
    def test_connection_failure_raises_error(self, client):
        """Network failure raises EmailGatewayError."""
        responses.add(
            responses.POST,
            self.GATEWAY_URL,
            body=ConnectionError("Network unreachable"),
        )

        with pytest.raises(EmailGatewayError):
            self.send(client)

    @responses.activate
    def test_invalid_json_response_raises_error(self, client):
        """Non-JSON response raises EmailGatewayError."""
        responses.add(responses.POST, self.GATEWAY_URL, body="not json", status=200)

        with pytest.raises(EmailGatewayError):
            self.send(client)
