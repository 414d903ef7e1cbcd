# BrokerDesk - Insurance Brokerage Workflow Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Quote workflow state machine."""

from .engine import WorkflowTransitionService
from .quote_store import QuoteWorkflowStore
from .reconciliation import CanonicalState, WorkflowReconciler, canonical_state
from .transitions import (
    TRANSITIONS,
    NotificationKind,
    SideEffect,
    StageRequirements,
    Transition,
    can_transition,
    expected_status_for_stage,
    get_transition,
    next_stage,
    parse_stage,
    requirements_for_stage,
)

__all__ = [
    "TRANSITIONS",
    "CanonicalState",
    "NotificationKind",
    "QuoteWorkflowStore",
    "SideEffect",
    "StageRequirements",
    "Transition",
    "WorkflowReconciler",
    "WorkflowTransitionService",
    "can_transition",
    "canonical_state",
    "expected_status_for_stage",
    "get_transition",
    "next_stage",
    "parse_stage",
    "requirements_for_stage",
]
