# BrokerDesk - Insurance Brokerage Workflow Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Approval workflow models for high-value transactions."""

from collections.abc import Mapping
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from beartype import beartype
from pydantic import Field

from .base import BaseModelConfig, TimestampedModel
from .role import RoleId


class ApprovalWorkflowType(str, Enum):
    """Transaction families with approval limits."""

    UNDERWRITING = "underwriting"
    CLAIMS = "claims"
    PAYMENTS = "payments"
    REMITTANCE = "remittance"


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ApprovalAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


@beartype
class ApprovalLimit(BaseModelConfig):
    """Highest amount a role may sign off on for a workflow type."""

    role_id: RoleId
    max_amount: Decimal = Field(..., ge=Decimal("0"))
    auto_approve: bool = False


@beartype
class ApprovalStepPlan(BaseModelConfig):
    """A step to be created for a new approval workflow."""

    name: str
    role_required: RoleId
    approval_limit: Decimal


@beartype
class ApprovalStep(TimestampedModel):
    """A persisted approval step."""

    id: str
    workflow_id: str
    step_number: int = Field(..., ge=1)
    name: str
    role_required: str
    status: ApprovalStatus = ApprovalStatus.PENDING
    approved_by: str | None = None
    approved_at: datetime | None = None
    comments: str | None = None

    @classmethod
    def from_record(cls, row: Mapping[str, Any]) -> "ApprovalStep":
        return cls(
            id=str(row["id"]),
            workflow_id=str(row["workflow_id"]),
            step_number=int(row["step_number"]),
            name=row["step_name"],
            role_required=row["role_required"],
            status=ApprovalStatus(row.get("status") or "pending"),
            approved_by=str(row["approved_by"]) if row.get("approved_by") else None,
            approved_at=row.get("approved_at"),
            comments=row.get("comments"),
            created_at=row.get("created_at"),
        )


@beartype
class ApprovalWorkflow(TimestampedModel):
    """An approval workflow and its steps."""

    id: str
    organization_id: str | None = None
    workflow_type: ApprovalWorkflowType
    reference_type: str | None = None
    reference_id: str | None = None
    amount: Decimal
    status: ApprovalStatus = ApprovalStatus.PENDING
    current_step: int = 1
    total_steps: int = 0
    created_by: str | None = None
    completed_at: datetime | None = None
    steps: list[ApprovalStep] = Field(default_factory=list)


@beartype
class ApprovalRequest(BaseModelConfig):
    """Request body for opening an approval workflow."""

    workflow_type: ApprovalWorkflowType
    amount: Decimal = Field(..., ge=Decimal("0"))
    reference_type: str | None = Field(default=None, max_length=50)
    reference_id: str | None = None


@beartype
class ApprovalDecision(BaseModelConfig):
    """Request body for approving or rejecting a step."""

    action: ApprovalAction
    comments: str | None = Field(default=None, max_length=2000)
