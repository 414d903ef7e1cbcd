# BrokerDesk - Insurance Brokerage Workflow Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Quote workflow domain models."""

from collections.abc import Mapping
from decimal import Decimal
from enum import Enum
from typing import Any

from beartype import beartype
from pydantic import Field

from .base import BaseModelConfig, TimestampedModel


class WorkflowStage(str, Enum):
    """Stages of the quote lifecycle, in order."""

    DRAFT = "draft"
    CLIENT_ONBOARDING = "client-onboarding"
    QUOTE_DRAFTING = "quote-drafting"
    CLAUSE_RECOMMENDATION = "clause-recommendation"
    RFQ_GENERATION = "rfq-generation"
    INSURER_MATCHING = "insurer-matching"
    QUOTE_EVALUATION = "quote-evaluation"
    CLIENT_SELECTION = "client-selection"
    PAYMENT_PROCESSING = "payment-processing"
    CONTRACT_GENERATION = "contract-generation"
    COMPLETED = "completed"


class QuoteStatus(str, Enum):
    """Client-facing quote status."""

    DRAFT = "draft"
    SENT = "sent"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"


class PaymentStatus(str, Enum):
    """Payment status of a quote or payment transaction."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


def _as_str(value: Any) -> str | None:
    return None if value is None else str(value)


@beartype
class QuoteSnapshot(TimestampedModel):
    """Workflow-relevant fields of a persisted quote.

    Stage, status and payment status are kept as raw strings: a snapshot
    reflects what is stored, including legacy or drifted values that
    reconciliation is expected to repair.
    """

    id: str = Field(..., min_length=1, description="Quote identifier")
    organization_id: str | None = Field(default=None)
    quote_number: str | None = Field(default=None)
    client_id: str | None = Field(default=None)
    client_name: str | None = Field(default=None)
    client_email: str | None = Field(default=None)
    policy_type: str | None = Field(default=None)
    premium: Decimal = Field(default=Decimal("0"), ge=Decimal("0"))
    workflow_stage: str | None = Field(default=None)
    status: str | None = Field(default=None)
    payment_status: str | None = Field(default=None)

    @classmethod
    def from_record(cls, row: Mapping[str, Any]) -> "QuoteSnapshot":
        """Build a snapshot from a database row or cached dict."""
        premium = row.get("premium")
        return cls(
            id=str(row["id"]),
            organization_id=_as_str(row.get("organization_id")),
            quote_number=_as_str(row.get("quote_number")),
            client_id=_as_str(row.get("client_id")),
            client_name=row.get("client_name"),
            client_email=row.get("client_email"),
            policy_type=row.get("policy_type"),
            premium=Decimal(str(premium)) if premium is not None else Decimal("0"),
            workflow_stage=row.get("workflow_stage"),
            status=row.get("status"),
            payment_status=row.get("payment_status"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )


@beartype
class WorkflowStateUpdate(BaseModelConfig):
    """Validated stage/status/payment write for a quote."""

    workflow_stage: WorkflowStage
    status: QuoteStatus
    payment_status: PaymentStatus | None = Field(
        default=None, description="Left untouched when None"
    )


@beartype
class ReconciliationResult(BaseModelConfig):
    """What a resync found and what it wrote."""

    quote_id: str
    changed: bool
    previous_stage: str | None = None
    previous_status: str | None = None
    previous_payment_status: str | None = None
    workflow_stage: WorkflowStage
    status: QuoteStatus
    payment_status: PaymentStatus | None = None
    payment_transaction_id: str | None = None


@beartype
class TransitionOutcome(BaseModelConfig):
    """Result of a successful workflow transition."""

    quote_id: str
    from_stage: WorkflowStage
    to_stage: WorkflowStage
    status: QuoteStatus
    payment_status: PaymentStatus | None = None
    forced: bool = False
    side_effects: list[str] = Field(default_factory=list)
    portal_link_id: str | None = None
    payment_transaction_id: str | None = None
    notification_sent: bool = False
    reconciliation: ReconciliationResult | None = None
    resync_error: str | None = Field(
        default=None, description="Set when the move was written but resync failed"
    )
