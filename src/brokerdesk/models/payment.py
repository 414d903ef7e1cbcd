# BrokerDesk - Insurance Brokerage Workflow Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Payment transaction models."""

from collections.abc import Mapping
from datetime import datetime
from decimal import Decimal
from typing import Any

from beartype import beartype
from pydantic import Field

from .base import TimestampedModel
from .quote import PaymentStatus


@beartype
class PaymentTransaction(TimestampedModel):
    """A payment expected from a client for an accepted quote."""

    id: str
    organization_id: str
    quote_id: str
    client_id: str
    amount: Decimal = Field(..., ge=Decimal("0"))
    currency: str = Field(default="NGN", pattern="^[A-Z]{3}$")
    payment_method: str = Field(default="bank_transfer")
    payment_provider: str | None = None
    provider_reference: str | None = None
    status: PaymentStatus = PaymentStatus.PENDING
    metadata: dict[str, Any] = Field(default_factory=dict)
    paid_at: datetime | None = None

    @classmethod
    def from_record(cls, row: Mapping[str, Any]) -> "PaymentTransaction":
        """Map a ``payment_transactions`` row."""
        return cls(
            id=str(row["id"]),
            organization_id=str(row["organization_id"]),
            quote_id=str(row["quote_id"]),
            client_id=str(row["client_id"]),
            amount=Decimal(str(row.get("amount") or 0)),
            currency=row.get("currency") or "NGN",
            payment_method=row.get("payment_method") or "bank_transfer",
            payment_provider=row.get("payment_provider"),
            provider_reference=row.get("provider_reference"),
            status=PaymentStatus(row.get("status") or "pending"),
            metadata=dict(row.get("metadata") or {}),
            paid_at=row.get("paid_at"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )
