# BrokerDesk - Insurance Brokerage Workflow Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Token signing for portal links and internal user bearer tokens."""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from attrs import field, frozen
from beartype import beartype

from .config import get_settings
from .result_types import Err, Ok


@frozen
class PortalTokenClaims:
    """Decoded claims of a portal link token."""

    link_id: str = field()
    kind: str = field()
    subject_id: str = field()
    client_id: str = field()
    organization_id: str = field()
    expires_at: datetime = field()


@frozen
class UserClaims:
    """Decoded claims of an internal user access token."""

    user_id: str = field()
    role: str = field()
    organization_id: str | None = field(default=None)
    expires_at: datetime | None = field(default=None)


class TokenSigner:
    """Sign and verify JWTs with the configured secret."""

    def __init__(self, secret: str | None = None, algorithm: str | None = None) -> None:
        settings = get_settings()
        self._secret = secret or settings.jwt_secret
        self._algorithm = algorithm or settings.jwt_algorithm

    @beartype
    def _encode(self, payload: dict[str, Any]) -> str:
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    @beartype
    def _decode(self, token: str) -> Ok[dict[str, Any]] | Err[str]:
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except jwt.ExpiredSignatureError:
            return Err("Token has expired")
        except jwt.InvalidTokenError as e:
            return Err(f"Invalid token: {str(e)}")
        return Ok(payload)

    @beartype
    def sign_portal_token(
        self,
        kind: str,
        subject_id: str,
        client_id: str,
        organization_id: str,
        expires_at: datetime,
        link_id: str | None = None,
    ) -> tuple[str, str]:
        """Return ``(link_id, token)`` for a new portal link."""
        link_id = link_id or str(uuid.uuid4())
        payload = {
            "jti": link_id,
            "kind": kind,
            "sub": subject_id,
            "client_id": client_id,
            "organization_id": organization_id,
            "iat": datetime.now(timezone.utc),
            "exp": expires_at,
        }
        return link_id, self._encode(payload)

    @beartype
    def decode_portal_token(self, token: str) -> Ok[PortalTokenClaims] | Err[str]:
        """Verify signature and expiry of a portal token."""
        decoded = self._decode(token)
        if decoded.is_err():
            return Err(decoded.err_value)

        payload = decoded.ok_value
        try:
            return Ok(
                PortalTokenClaims(
                    link_id=str(payload["jti"]),
                    kind=str(payload["kind"]),
                    subject_id=str(payload["sub"]),
                    client_id=str(payload["client_id"]),
                    organization_id=str(payload["organization_id"]),
                    expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
                )
            )
        except KeyError as e:
            return Err(f"Invalid token: missing claim {e}")

    @beartype
    def create_user_token(
        self,
        user_id: str,
        role: str,
        organization_id: str | None = None,
        expires_delta: timedelta = timedelta(hours=8),
    ) -> str:
        """Issue an access token for an internal user."""
        now = datetime.now(timezone.utc)
        payload: dict[str, Any] = {
            "sub": user_id,
            "role": role,
            "iat": now,
            "exp": now + expires_delta,
        }
        if organization_id:
            payload["organization_id"] = organization_id
        return self._encode(payload)

    @beartype
    def decode_user_token(self, token: str) -> Ok[UserClaims] | Err[str]:
        """Verify an internal user access token."""
        decoded = self._decode(token)
        if decoded.is_err():
            return Err(decoded.err_value)

        payload = decoded.ok_value
        if "sub" not in payload or "role" not in payload:
            return Err("Invalid token: missing subject or role")

        exp = payload.get("exp")
        return Ok(
            UserClaims(
                user_id=str(payload["sub"]),
                role=str(payload["role"]),
                organization_id=payload.get("organization_id"),
                expires_at=(
                    datetime.fromtimestamp(exp, tz=timezone.utc) if exp else None
                ),
            )
        )


_signer: TokenSigner | None = None


@beartype
def get_token_signer() -> TokenSigner:
    """Get global token signer."""
    global _signer
    if _signer is None:
        _signer = TokenSigner()
    return _signer
