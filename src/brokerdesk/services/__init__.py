# BrokerDesk - Insurance Brokerage Workflow Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Business logic services for BrokerDesk."""

from .approvals import APPROVAL_LIMITS, ApprovalPolicy, ApprovalService
from .audit import QuoteAuditLogger
from .email_monitoring import EmailMonitor
from .notifications import NotificationService, NotificationType
from .payments import PaymentTransactionService
from .portal_links import PortalLinkService
from .reminders import QuoteReminderService
from .validation import DatabaseValidator
from .workflow import (
    QuoteWorkflowStore,
    WorkflowReconciler,
    WorkflowTransitionService,
)

__all__ = [
    "APPROVAL_LIMITS",
    "ApprovalPolicy",
    "ApprovalService",
    "DatabaseValidator",
    "EmailMonitor",
    "NotificationService",
    "NotificationType",
    "PaymentTransactionService",
    "PortalLinkService",
    "QuoteAuditLogger",
    "QuoteReminderService",
    "QuoteWorkflowStore",
    "WorkflowReconciler",
    "WorkflowTransitionService",
]
