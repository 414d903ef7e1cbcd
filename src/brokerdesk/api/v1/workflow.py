# BrokerDesk - Insurance Brokerage Workflow Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Quote workflow API endpoints."""

from beartype import beartype
from fastapi import APIRouter, Depends, HTTPException
from pydantic import Field

from ...models.base import BaseModelConfig
from ...models.portal import PortalLinkIssued
from ...models.quote import (
    QuoteSnapshot,
    ReconciliationResult,
    TransitionOutcome,
    WorkflowStage,
)
from ...models.role import CurrentUser, PermissionAction, PermissionModule
from ...services.permissions import has_permission
from ...services.portal_links import PortalLinkService
from ...services.workflow import (
    QuoteWorkflowStore,
    WorkflowReconciler,
    WorkflowTransitionService,
    parse_stage,
)
from ..dependencies import (
    get_organization_scope,
    get_portal_link_service,
    get_quote_store,
    get_reconciler,
    get_workflow_service,
    require_permission,
)

router = APIRouter(prefix="/quotes", tags=["workflow"])


class WorkflowStateResponse(BaseModelConfig):
    """A quote's stored workflow state and where it can go next."""

    quote: QuoteSnapshot
    stage: WorkflowStage | None = Field(
        default=None, description="Parsed stage; None when the stored value is unknown"
    )
    next_stage: WorkflowStage | None = None
    can_transition: bool = False


class TransitionRequest(BaseModelConfig):
    current_stage: WorkflowStage
    force_stage: WorkflowStage | None = None


def _error_status(message: str) -> int:
    return 404 if message.endswith("not found") else 400


@router.get("/{quote_id}/workflow", response_model=WorkflowStateResponse)
@beartype
async def get_workflow_state(
    quote_id: str,
    store: QuoteWorkflowStore = Depends(get_quote_store),
    workflow: WorkflowTransitionService = Depends(get_workflow_service),
    organization_id: str | None = Depends(get_organization_scope),
    _user: CurrentUser = Depends(
        require_permission(PermissionModule.QUOTES, PermissionAction.READ)
    ),
) -> WorkflowStateResponse:
    """Get a quote's workflow stage, status and next stage."""
    result = await store.get_snapshot(quote_id, organization_id=organization_id)
    if result.is_err():
        raise HTTPException(
            status_code=_error_status(result.err_value), detail=result.err_value
        )

    snapshot = result.ok_value
    stage = parse_stage(snapshot.workflow_stage)
    return WorkflowStateResponse(
        quote=snapshot,
        stage=stage,
        next_stage=workflow.get_next_stage(stage) if stage else None,
        can_transition=workflow.can_transition(stage) if stage else False,
    )


@router.post("/{quote_id}/workflow/transition", response_model=TransitionOutcome)
@beartype
async def transition_quote(
    quote_id: str,
    request: TransitionRequest,
    workflow: WorkflowTransitionService = Depends(get_workflow_service),
    organization_id: str | None = Depends(get_organization_scope),
    user: CurrentUser = Depends(
        require_permission(PermissionModule.QUOTES, PermissionAction.UPDATE)
    ),
) -> TransitionOutcome:
    """Advance a quote one stage, or force it to a given stage.

    Forcing bypasses the transition table and needs quote approval rights.
    """
    if request.force_stage is not None:
        if not has_permission(user.role, PermissionModule.QUOTES, PermissionAction.APPROVE):
            raise HTTPException(
                status_code=403, detail="Forcing a stage requires quote approval rights"
            )

    result = await workflow.transition(
        quote_id,
        request.current_stage,
        force_stage=request.force_stage,
        user_id=user.user_id,
        organization_id=organization_id,
    )
    if result.is_err():
        raise HTTPException(
            status_code=_error_status(result.err_value), detail=result.err_value
        )
    return result.ok_value


@router.post("/{quote_id}/workflow/resync", response_model=ReconciliationResult)
@beartype
async def resync_quote(
    quote_id: str,
    reconciler: WorkflowReconciler = Depends(get_reconciler),
    organization_id: str | None = Depends(get_organization_scope),
    _user: CurrentUser = Depends(
        require_permission(PermissionModule.QUOTES, PermissionAction.UPDATE)
    ),
) -> ReconciliationResult:
    """Bring a quote's stored stage, status and payment status back in line."""
    result = await reconciler.resync(quote_id, organization_id)
    if result.is_err():
        raise HTTPException(
            status_code=_error_status(result.err_value), detail=result.err_value
        )
    return result.ok_value


@router.post("/{quote_id}/portal-link", response_model=PortalLinkIssued)
@beartype
async def issue_client_portal_link(
    quote_id: str,
    portal_links: PortalLinkService = Depends(get_portal_link_service),
    organization_id: str | None = Depends(get_organization_scope),
    _user: CurrentUser = Depends(
        require_permission(PermissionModule.QUOTES, PermissionAction.UPDATE)
    ),
) -> PortalLinkIssued:
    """Return the quote's live client portal link, issuing one if needed."""
    result = await portal_links.ensure_client_portal_link(quote_id, organization_id)
    if result.is_err():
        raise HTTPException(
            status_code=_error_status(result.err_value), detail=result.err_value
        )

    link = result.ok_value
    return PortalLinkIssued(
        portal_link_id=link.id,
        portal_url=portal_links.client_portal_url(link.token),
        expires_at=link.expires_at,
    )
