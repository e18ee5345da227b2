"""Tests for TokenSigner - JWT minting and verification."""

from datetime import timedelta
from uuid import uuid4

import pytest
from jose import jwt

from auth.config import AuthConfig
from auth.exceptions import InvalidTokenError
from auth.tokens import TokenSigner
from auth.types import AccessClaims
from utils.timezone import now_utc
from tests.fakes import ACCESS_SECRET, REFRESH_SECRET, TEST_USER_ID, TEST_WARD_ID


@pytest.fixture
def claims():
    return AccessClaims(
        user_id=TEST_USER_ID,
        role="staff",
        ward_id=TEST_WARD_ID,
        email="staff@phuong1.gov.vn",
    )


class TestConstruction:

    def test_rejects_identical_secrets(self, config):
        with pytest.raises(ValueError, match="must be different"):
            TokenSigner("same-secret", "same-secret", config)

    @pytest.mark.parametrize("access,refresh", [("", "x"), ("x", "")])
    def test_rejects_empty_secret(self, config, access, refresh):
        with pytest.raises(ValueError):
            TokenSigner(access, refresh, config)


class TestAccessToken:

    def test_round_trip_claims(self, signer, claims):
        token = signer.create_access_token(claims)

        decoded = signer.verify_access_token(token)

        assert decoded == claims

    def test_optional_claims_omitted(self, signer):
        claims = AccessClaims(user_id=TEST_USER_ID, role="admin")
        token = signer.create_access_token(claims)

        payload = jwt.get_unverified_claims(token)

        assert "ward_id" not in payload
        assert "email" not in payload
        assert payload["type"] == "access"
        assert signer.verify_access_token(token).ward_id is None

    def test_expires_after_configured_minutes(self, signer, claims):
        payload = jwt.get_unverified_claims(signer.create_access_token(claims))

        assert payload["exp"] - payload["iat"] == 15 * 60

    def test_expired_token_rejected(self, claims):
        signer = TokenSigner(ACCESS_SECRET, REFRESH_SECRET, AuthConfig())
        now = now_utc()
        token = jwt.encode(
            {
                "sub": str(claims.user_id),
                "role": claims.role,
                "type": "access",
                "iat": now - timedelta(hours=1),
                "exp": now - timedelta(minutes=1),
            },
            ACCESS_SECRET,
            algorithm="HS256",
        )

        with pytest.raises(InvalidTokenError):
            signer.verify_access_token(token)

    def test_refresh_token_not_accepted_as_access(self, signer):
        refresh = signer.create_refresh_token(TEST_USER_ID)

        with pytest.raises(InvalidTokenError):
            signer.verify_access_token(refresh)

    def test_wrong_type_claim_under_access_secret_rejected(self, signer):
        token = jwt.encode(
            {"sub": str(TEST_USER_ID), "role": "staff", "type": "refresh"},
            ACCESS_SECRET,
            algorithm="HS256",
        )

        with pytest.raises(InvalidTokenError):
            signer.verify_access_token(token)

    def test_garbage_rejected(self, signer):
        with pytest.raises(InvalidTokenError, match="Invalid or expired token"):
            signer.verify_access_token("not-a-jwt")


class TestRefreshToken:

    def test_carries_only_user_id(self, signer):
        token = signer.create_refresh_token(TEST_USER_ID)

        payload = jwt.get_unverified_claims(token)

        assert set(payload) == {"sub", "type", "jti", "iat", "exp"}
        assert signer.verify_refresh_token(token) == TEST_USER_ID

    def test_expires_after_configured_days(self, signer):
        payload = jwt.get_unverified_claims(signer.create_refresh_token(TEST_USER_ID))

        assert payload["exp"] - payload["iat"] == 7 * 24 * 3600

    def test_tokens_minted_together_differ(self, signer):
        assert signer.create_refresh_token(TEST_USER_ID) != signer.create_refresh_token(TEST_USER_ID)

    def test_signed_with_other_secret_rejected(self, config):
        signer = TokenSigner(ACCESS_SECRET, REFRESH_SECRET, config)
        other = TokenSigner(ACCESS_SECRET, "a-different-refresh-secret", config)

        with pytest.raises(InvalidTokenError):
            signer.verify_refresh_token(other.create_refresh_token(uuid4()))

    def test_access_token_not_accepted_as_refresh(self, signer, claims):
        with pytest.raises(InvalidTokenError):
            signer.verify_refresh_token(signer.create_access_token(claims))


def test_issue_token_pair(signer, claims):
    pair = signer.issue_token_pair(claims)

    assert signer.verify_access_token(pair.access_token).user_id == TEST_USER_ID
    assert signer.verify_refresh_token(pair.refresh_token) == TEST_USER_ID
