# BrokerDesk - Insurance Brokerage Workflow Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Administrative endpoints: data health, reminders, roles and approvals."""

from beartype import beartype
from fastapi import APIRouter, Depends, HTTPException
from pydantic import Field

from ...models.approval import ApprovalDecision, ApprovalRequest, ApprovalWorkflow
from ...models.base import BaseModelConfig
from ...models.reminder import ReminderBatch, ReminderDispatch, ReminderKind
from ...models.role import (
    CurrentUser,
    PermissionAction,
    PermissionModule,
    RoleSummary,
)
from ...models.validation import FixReport, ValidationReport
from ...services.approvals import ApprovalService
from ...services.permissions import ROLES, accessible_roles, summarize_role
from ...services.reminders import QuoteReminderService
from ...services.validation import DatabaseValidator
from ..dependencies import (
    get_approval_service,
    get_current_user,
    get_organization_scope,
    get_reminder_service,
    get_validator,
    require_permission,
)

router = APIRouter(prefix="/admin", tags=["admin"])


class ReminderRequest(BaseModelConfig):
    quote_ids: list[str] = Field(..., min_length=1)
    kind: ReminderKind


@router.post("/validation/run", response_model=ValidationReport)
@beartype
async def run_validation(
    validator: DatabaseValidator = Depends(get_validator),
    _user: CurrentUser = Depends(
        require_permission(PermissionModule.COMPLIANCE, PermissionAction.AUDIT)
    ),
) -> ValidationReport:
    return await validator.run_validation()


@router.post("/validation/fix", response_model=FixReport)
@beartype
async def fix_validation_issues(
    validator: DatabaseValidator = Depends(get_validator),
    _user: CurrentUser = Depends(
        require_permission(PermissionModule.SYSTEM, PermissionAction.CONFIGURE)
    ),
) -> FixReport:
    """Link orphaned quotes and repair invalid stages, then re-validate."""
    result = await validator.fix_issues()
    if result.is_err():
        raise HTTPException(status_code=500, detail=result.err_value)
    return result.ok_value


@router.get("/reminders", response_model=ReminderBatch)
@beartype
async def list_quotes_needing_reminders(
    reminders: QuoteReminderService = Depends(get_reminder_service),
    organization_id: str | None = Depends(get_organization_scope),
    _user: CurrentUser = Depends(
        require_permission(PermissionModule.QUOTES, PermissionAction.READ)
    ),
) -> ReminderBatch:
    result = await reminders.get_quotes_needing_reminders(
        organization_id=organization_id
    )
    if result.is_err():
        raise HTTPException(status_code=500, detail=result.err_value)
    return result.ok_value


@router.post("/reminders/send", response_model=ReminderDispatch)
@beartype
async def send_reminders(
    request: ReminderRequest,
    reminders: QuoteReminderService = Depends(get_reminder_service),
    organization_id: str | None = Depends(get_organization_scope),
    _user: CurrentUser = Depends(
        require_permission(PermissionModule.QUOTES, PermissionAction.UPDATE)
    ),
) -> ReminderDispatch:
    result = await reminders.send_quote_reminders(
        request.quote_ids, request.kind, organization_id
    )
    if result.is_err():
        raise HTTPException(status_code=500, detail=result.err_value)
    return result.ok_value


@router.get("/roles", response_model=list[RoleSummary])
@beartype
async def list_roles(
    _user: CurrentUser = Depends(
        require_permission(PermissionModule.USERS, PermissionAction.READ)
    ),
) -> list[RoleSummary]:
    """The full role catalogue, highest level first."""
    return [
        summarize_role(role)
        for role in sorted(ROLES.values(), key=lambda r: r.level, reverse=True)
    ]


@router.get("/roles/assignable", response_model=list[RoleSummary])
@beartype
async def list_assignable_roles(
    user: CurrentUser = Depends(
        require_permission(PermissionModule.USERS, PermissionAction.READ)
    ),
) -> list[RoleSummary]:
    """Roles the current user may assign: those strictly below their own."""
    return [summarize_role(role) for role in accessible_roles(user.role)]


@router.post("/approvals", response_model=ApprovalWorkflow)
@beartype
async def create_approval_workflow(
    request: ApprovalRequest,
    approvals: ApprovalService = Depends(get_approval_service),
    user: CurrentUser = Depends(get_current_user),
) -> ApprovalWorkflow:
    """Open an approval workflow; amounts within the user's limit are approved at once."""
    result = await approvals.create_workflow(request, user)
    if result.is_err():
        raise HTTPException(status_code=400, detail=result.err_value)
    return result.ok_value


@router.get("/approvals/{workflow_id}", response_model=ApprovalWorkflow)
@beartype
async def get_approval_workflow(
    workflow_id: str,
    approvals: ApprovalService = Depends(get_approval_service),
    organization_id: str | None = Depends(get_organization_scope),
) -> ApprovalWorkflow:
    result = await approvals.get_workflow(workflow_id, organization_id)
    if result.is_err():
        status_code = 404 if result.err_value.endswith("not found") else 500
        raise HTTPException(status_code=status_code, detail=result.err_value)
    return result.ok_value


@router.post("/approvals/steps/{step_id}", response_model=ApprovalWorkflow)
@beartype
async def decide_approval_step(
    step_id: str,
    decision: ApprovalDecision,
    approvals: ApprovalService = Depends(get_approval_service),
    user: CurrentUser = Depends(get_current_user),
) -> ApprovalWorkflow:
    """Approve or reject a pending step; the step's role is checked by the service."""
    result = await approvals.process_step(step_id, decision, user)
    if result.is_err():
        status_code = 404 if result.err_value.endswith("not found") else 400
        raise HTTPException(status_code=status_code, detail=result.err_value)
    return result.ok_value
