# BrokerDesk - Insurance Brokerage Workflow Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""FastAPI dependencies for authentication, permissions and services.

Service dependencies are built from ``get_db``, ``get_cache`` and
``get_email_sender`` so tests can swap the infrastructure with
``app.dependency_overrides`` and keep the real services.
"""

from collections.abc import Awaitable, Callable

from beartype import beartype
from fastapi import Depends, HTTPException, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..core.cache import Cache
from ..core.cache import get_cache as get_cache_instance
from ..core.config import Settings, get_settings
from ..core.database import Database, get_database
from ..core.security import TokenSigner, get_token_signer
from ..integrations.email import EmailSender, build_email_sender
from ..models.role import CurrentUser, PermissionAction, PermissionModule, RoleId
from ..services.approvals import ApprovalService
from ..services.audit import QuoteAuditLogger
from ..services.notifications import NotificationService
from ..services.payments import PaymentTransactionService
from ..services.permissions import has_permission
from ..services.portal_links import PortalLinkService
from ..services.reminders import QuoteReminderService
from ..services.validation import DatabaseValidator
from ..services.workflow import (
    QuoteWorkflowStore,
    WorkflowReconciler,
    WorkflowTransitionService,
)

# Security scheme
security = HTTPBearer()


@beartype
async def get_db() -> Database:
    """Provide the shared database pool wrapper."""
    return get_database()


@beartype
async def get_cache() -> Cache:
    """Provide the shared Cache instance."""
    return get_cache_instance()


@beartype
async def get_signer() -> TokenSigner:
    return get_token_signer()


@beartype
async def get_email_sender(settings: Settings = Depends(get_settings)) -> EmailSender:
    return build_email_sender(settings)


@beartype
async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Security(security),
    signer: TokenSigner = Depends(get_signer),
) -> CurrentUser:
    """Validate the bearer JWT and return the internal user it names.

    Raises:
        HTTPException: If token is invalid or expired
    """
    claims = signer.decode_user_token(credentials.credentials)
    if claims.is_err():
        # NOTE: This is a dependency function, not an endpoint
        # We need to keep raising HTTPException here as FastAPI expects it
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return CurrentUser(
        user_id=claims.ok_value.user_id,
        role=claims.ok_value.role,
        organization_id=claims.ok_value.organization_id,
    )


def require_permission(
    module: PermissionModule, action: PermissionAction
) -> Callable[..., Awaitable[CurrentUser]]:
    """Dependency factory: the current user, if their role grants ``action`` on ``module``."""

    async def _check(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if not has_permission(user.role, module, action):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role {user.role} may not {action.value} {module.value}",
            )
        return user

    return _check


@beartype
async def get_organization_scope(
    user: CurrentUser = Depends(get_current_user),
) -> str | None:
    """Organization whose data the request may touch; None for SuperAdmin.

    Raises:
        HTTPException: If a non-SuperAdmin user has no organization
    """
    if user.role == RoleId.SUPER_ADMIN.value:
        return None
    if not user.organization_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User is not assigned to an organization",
        )
    return user.organization_id


@beartype
async def get_notification_service(
    sender: EmailSender = Depends(get_email_sender),
) -> NotificationService:
    return NotificationService(sender)


@beartype
async def get_payment_service(
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> PaymentTransactionService:
    return PaymentTransactionService(db, settings)


@beartype
async def get_portal_link_service(
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
    signer: TokenSigner = Depends(get_signer),
    notifications: NotificationService = Depends(get_notification_service),
) -> PortalLinkService:
    return PortalLinkService(db, settings, signer, notifications)


@beartype
async def get_quote_store(
    db: Database = Depends(get_db),
    cache: Cache = Depends(get_cache),
) -> QuoteWorkflowStore:
    return QuoteWorkflowStore(db, cache)


@beartype
async def get_reconciler(
    store: QuoteWorkflowStore = Depends(get_quote_store),
    payments: PaymentTransactionService = Depends(get_payment_service),
) -> WorkflowReconciler:
    return WorkflowReconciler(store, payments)


@beartype
async def get_workflow_service(
    db: Database = Depends(get_db),
    store: QuoteWorkflowStore = Depends(get_quote_store),
    reconciler: WorkflowReconciler = Depends(get_reconciler),
    portal_links: PortalLinkService = Depends(get_portal_link_service),
    payments: PaymentTransactionService = Depends(get_payment_service),
    notifications: NotificationService = Depends(get_notification_service),
) -> WorkflowTransitionService:
    """Assemble the transition service from request-scoped collaborators."""
    return WorkflowTransitionService(
        store,
        reconciler,
        portal_links,
        payments,
        QuoteAuditLogger(db),
        notifications,
    )


@beartype
async def get_validator(
    db: Database = Depends(get_db),
    cache: Cache = Depends(get_cache),
) -> DatabaseValidator:
    return DatabaseValidator(db, cache)


@beartype
async def get_reminder_service(
    db: Database = Depends(get_db),
    notifications: NotificationService = Depends(get_notification_service),
    settings: Settings = Depends(get_settings),
) -> QuoteReminderService:
    return QuoteReminderService(db, notifications, settings)


@beartype
async def get_approval_service(db: Database = Depends(get_db)) -> ApprovalService:
    return ApprovalService(db)
