# BrokerDesk - Insurance Brokerage Workflow Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Client and claim portal link models."""

from collections.abc import Mapping
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from beartype import beartype
from pydantic import Field

from .base import BaseModelConfig, TimestampedModel


class PortalLinkKind(str, Enum):
    """What a portal link grants access to."""

    QUOTE = "quote"
    CLAIM = "claim"


@beartype
class PortalLink(TimestampedModel):
    """A signed, time-boxed link for an external client."""

    id: str
    kind: PortalLinkKind
    organization_id: str
    client_id: str
    quote_id: str | None = None
    claim_id: str | None = None
    token: str = Field(..., min_length=1)
    expires_at: datetime
    is_used: bool = False
    evaluated_quotes_data: list[dict[str, Any]] = Field(default_factory=list)
    claim_data: dict[str, Any] = Field(default_factory=dict)

    @beartype
    def is_expired(self, now: datetime | None = None) -> bool:
        """Check the stored expiry against ``now`` (UTC)."""
        now = now or datetime.now(timezone.utc)
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at <= now

    @classmethod
    def from_record(cls, row: Mapping[str, Any], kind: PortalLinkKind) -> "PortalLink":
        """Map a ``client_portal_links`` or ``claim_portal_links`` row."""
        return cls(
            id=str(row["id"]),
            kind=kind,
            organization_id=str(row["organization_id"]),
            client_id=str(row["client_id"]),
            quote_id=str(row["quote_id"]) if row.get("quote_id") else None,
            claim_id=str(row["claim_id"]) if row.get("claim_id") else None,
            token=row["token"],
            expires_at=row["expires_at"],
            is_used=bool(row.get("is_used", False)),
            evaluated_quotes_data=list(row.get("evaluated_quotes_data") or []),
            claim_data=dict(row.get("claim_data") or {}),
            created_at=row.get("created_at"),
        )


@beartype
class PortalLinkIssued(BaseModelConfig):
    """Response returned after issuing a portal link."""

    portal_link_id: str
    portal_url: str
    expires_at: datetime
