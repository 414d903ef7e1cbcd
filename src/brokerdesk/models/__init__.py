# BrokerDesk - Insurance Brokerage Workflow Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Domain models package for BrokerDesk.

All models are immutable Pydantic models with strict validation.
"""

from .approval import (
    ApprovalAction,
    ApprovalDecision,
    ApprovalLimit,
    ApprovalRequest,
    ApprovalStatus,
    ApprovalStep,
    ApprovalStepPlan,
    ApprovalWorkflow,
    ApprovalWorkflowType,
)
from .base import BaseModelConfig, TimestampedModel
from .insurer import InsurerQuoteResponse
from .payment import PaymentTransaction
from .portal import PortalLink, PortalLinkIssued, PortalLinkKind
from .quote import (
    PaymentStatus,
    QuoteSnapshot,
    QuoteStatus,
    ReconciliationResult,
    TransitionOutcome,
    WorkflowStage,
    WorkflowStateUpdate,
)
from .reminder import (
    ReminderBatch,
    ReminderCandidate,
    ReminderDispatch,
    ReminderKind,
)
from .role import CurrentUser, PermissionAction, PermissionModule, Role, RoleId
from .validation import FixReport, TableValidationResult, ValidationReport

__all__ = [
    # Base models
    "BaseModelConfig",
    "TimestampedModel",
    # Quote workflow
    "WorkflowStage",
    "QuoteStatus",
    "PaymentStatus",
    "QuoteSnapshot",
    "WorkflowStateUpdate",
    "ReconciliationResult",
    "TransitionOutcome",
    # Portal and payments
    "PortalLink",
    "PortalLinkIssued",
    "PortalLinkKind",
    "PaymentTransaction",
    "InsurerQuoteResponse",
    # Roles
    "CurrentUser",
    "PermissionAction",
    "PermissionModule",
    "Role",
    "RoleId",
    # Approvals
    "ApprovalAction",
    "ApprovalDecision",
    "ApprovalLimit",
    "ApprovalRequest",
    "ApprovalStatus",
    "ApprovalStep",
    "ApprovalStepPlan",
    "ApprovalWorkflow",
    "ApprovalWorkflowType",
    # Reminders
    "ReminderBatch",
    "ReminderCandidate",
    "ReminderDispatch",
    "ReminderKind",
    # Validation
    "FixReport",
    "TableValidationResult",
    "ValidationReport",
]
