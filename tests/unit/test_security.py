"""Unit tests for user and portal token signing."""

from datetime import datetime, timedelta, timezone

import jwt

from brokerdesk.core.security import TokenSigner


class TestPortalTokens:
    def test_round_trip_preserves_claims(self, signer):
        expires_at = datetime.now(timezone.utc) + timedelta(hours=72)
        link_id, token = signer.sign_portal_token(
            kind="quote",
            subject_id="quote-1",
            client_id="client-1",
            organization_id="org-1",
            expires_at=expires_at,
        )

        claims = signer.decode_portal_token(token).ok_value

        assert claims.link_id == link_id
        assert claims.kind == "quote"
        assert claims.subject_id == "quote-1"
        assert claims.client_id == "client-1"
        assert claims.organization_id == "org-1"
        assert abs((claims.expires_at - expires_at).total_seconds()) < 1

    def test_explicit_link_id_is_used(self, signer):
        link_id, _ = signer.sign_portal_token(
            "claim",
            "claim-9",
            "client-1",
            "org-1",
            datetime.now(timezone.utc) + timedelta(hours=1),
            link_id="link-abc",
        )
        assert link_id == "link-abc"

    def test_expired_token_is_rejected(self, signer):
        _, token = signer.sign_portal_token(
            "quote",
            "quote-1",
            "client-1",
            "org-1",
            datetime.now(timezone.utc) - timedelta(seconds=5),
        )

        assert signer.decode_portal_token(token).err_value == "Token has expired"

    def test_token_from_other_secret_is_rejected(self, signer):
        other = TokenSigner(secret="another-secret-that-is-at-least-32-characters")
        _, token = other.sign_portal_token(
            "quote",
            "quote-1",
            "client-1",
            "org-1",
            datetime.now(timezone.utc) + timedelta(hours=1),
        )

        assert signer.decode_portal_token(token).err_value.startswith("Invalid token")

    def test_token_without_portal_claims_is_rejected(self, signer):
        token = signer.create_user_token("user-1", "Agent")

        result = signer.decode_portal_token(token)

        assert result.is_err()
        assert "missing claim" in result.err_value


class TestUserTokens:
    def test_round_trip(self, signer):
        token = signer.create_user_token("user-1", "BrokerAdmin", "org-1")

        claims = signer.decode_user_token(token).ok_value

        assert claims.user_id == "user-1"
        assert claims.role == "BrokerAdmin"
        assert claims.organization_id == "org-1"

    def test_expired_user_token(self, signer):
        token = signer.create_user_token(
            "user-1", "Agent", expires_delta=timedelta(seconds=-1)
        )
        assert signer.decode_user_token(token).err_value == "Token has expired"

    def test_role_claim_is_required(self, test_secret):
        token = jwt.encode(
            {"sub": "user-1", "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
            test_secret,
            algorithm="HS256",
        )

        result = TokenSigner(secret=test_secret).decode_user_token(token)

        assert result.err_value == "Invalid token: missing subject or role"

    def test_garbage_token(self, signer):
        assert signer.decode_user_token("not-a-jwt").is_err()
