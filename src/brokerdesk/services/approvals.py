# BrokerDesk - Insurance Brokerage Workflow Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Approval limits and approval workflows for high-value transactions."""

from collections.abc import Mapping, Sequence
from decimal import Decimal
from types import MappingProxyType
from typing import Any

from beartype import beartype

from ..core.database import Database
from ..core.logging_utils import get_logger
from ..core.result_types import Err, Ok, Result
from ..models.approval import (
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
from ..models.role import CurrentUser, RoleId

logger = get_logger(__name__)

W = ApprovalWorkflowType


def _limit(role: RoleId, amount: int, auto_approve: bool) -> ApprovalLimit:
    return ApprovalLimit(
        role_id=role, max_amount=Decimal(amount), auto_approve=auto_approve
    )


APPROVAL_LIMITS: Mapping[ApprovalWorkflowType, tuple[ApprovalLimit, ...]] = (
    MappingProxyType(
        {
            W.UNDERWRITING: (
                _limit(RoleId.SUPER_ADMIN, 50_000_000, False),
                _limit(RoleId.BROKER_ADMIN, 10_000_000, False),
                _limit(RoleId.UNDERWRITER, 5_000_000, True),
                _limit(RoleId.AGENT, 1_000_000, True),
            ),
            W.CLAIMS: (
                _limit(RoleId.SUPER_ADMIN, 100_000_000, False),
                _limit(RoleId.BROKER_ADMIN, 50_000_000, False),
                _limit(RoleId.UNDERWRITER, 10_000_000, True),
                _limit(RoleId.COMPLIANCE, 5_000_000, True),
            ),
            W.PAYMENTS: (
                _limit(RoleId.SUPER_ADMIN, 200_000_000, False),
                _limit(RoleId.BROKER_ADMIN, 100_000_000, False),
            ),
            W.REMITTANCE: (
                _limit(RoleId.SUPER_ADMIN, 500_000_000, False),
                _limit(RoleId.BROKER_ADMIN, 50_000_000, False),
            ),
        }
    )
)


class ApprovalPolicy:
    """Pure approval rules over a limits table."""

    def __init__(
        self,
        limits: Mapping[ApprovalWorkflowType, Sequence[ApprovalLimit]] = APPROVAL_LIMITS,
    ) -> None:
        self._limits = limits

    @beartype
    def requires_approval(
        self, workflow_type: ApprovalWorkflowType, amount: Decimal, role: str
    ) -> bool:
        """Roles without a limit, over their limit or without auto-approve need sign-off."""
        own = next(
            (l for l in self._limits.get(workflow_type, ()) if l.role_id.value == role),
            None,
        )
        if own is None:
            return True
        return amount > own.max_amount or not own.auto_approve

    @beartype
    def next_approver(
        self, workflow_type: ApprovalWorkflowType, amount: Decimal, current_role: str
    ) -> RoleId:
        """Lowest-limit role that covers ``amount``, other than the initiator."""
        ascending = sorted(
            self._limits.get(workflow_type, ()), key=lambda l: l.max_amount
        )
        for limit in ascending:
            if amount <= limit.max_amount and limit.role_id.value != current_role:
                return limit.role_id
        return RoleId.SUPER_ADMIN

    @beartype
    def plan_steps(
        self, workflow_type: ApprovalWorkflowType, amount: Decimal, initiator_role: str
    ) -> list[ApprovalStepPlan]:
        if not self.requires_approval(workflow_type, amount, initiator_role):
            return []
        return [
            ApprovalStepPlan(
                name=f"{workflow_type.value} Approval Required",
                role_required=self.next_approver(workflow_type, amount, initiator_role),
                approval_limit=amount,
            )
        ]


class ApprovalService:
    """Persisted approval workflows."""

    def __init__(self, db: Database, policy: ApprovalPolicy | None = None) -> None:
        """Initialize service with dependency validation."""
        if not db or not hasattr(db, "execute"):
            raise ValueError("Database connection required and must be active")

        self._db = db
        self._policy = policy or ApprovalPolicy()

    @beartype
    async def create_workflow(
        self, request: ApprovalRequest, user: CurrentUser
    ) -> Result[ApprovalWorkflow, str]:
        """Open a workflow; amounts within the initiator's limit are approved at once."""
        plan = self._policy.plan_steps(request.workflow_type, request.amount, user.role)
        status = ApprovalStatus.PENDING if plan else ApprovalStatus.APPROVED

        try:
            async with self._db.transaction() as conn:
                workflow = await conn.fetchrow(
                    """
                    INSERT INTO workflows (
                        organization_id, workflow_type, reference_type, reference_id,
                        amount, status, current_step, total_steps, created_by,
                        completed_at
                    ) VALUES (
                        $1, $2, $3, $4, $5, $6, 1, $7, $8,
                        CASE WHEN $6 = 'approved' THEN NOW() END
                    )
                    RETURNING *
                    """,
                    user.organization_id,
                    request.workflow_type.value,
                    request.reference_type,
                    request.reference_id,
                    request.amount,
                    status.value,
                    len(plan),
                    user.user_id,
                )
                steps = []
                for number, step in enumerate(plan, start=1):
                    steps.append(
                        await conn.fetchrow(
                            """
                            INSERT INTO workflow_steps (
                                workflow_id, step_number, step_name, role_required,
                                status
                            ) VALUES ($1, $2, $3, $4, 'pending')
                            RETURNING *
                            """,
                            workflow["id"],
                            number,
                            step.name,
                            step.role_required.value,
                        )
                    )
        except Exception as e:
            return Err(f"Failed to create approval workflow: {str(e)}")

        logger.info(
            "Opened %s approval workflow %s for %s (%s steps)",
            request.workflow_type.value,
            workflow["id"],
            request.amount,
            len(plan),
        )
        return Ok(_workflow_from(dict(workflow), [dict(s) for s in steps]))

    @beartype
    async def get_workflow(
        self, workflow_id: str, organization_id: str | None = None
    ) -> Result[ApprovalWorkflow, str]:
        """Load a workflow and its steps, scoped to ``organization_id`` when given."""
        try:
            workflow = await self._db.fetchrow(
                "SELECT * FROM workflows WHERE id = $1", workflow_id
            )
            if not workflow or (
                organization_id is not None
                and str(workflow["organization_id"]) != organization_id
            ):
                return Err(f"Approval workflow {workflow_id} not found")
            steps = await self._db.fetch(
                "SELECT * FROM workflow_steps WHERE workflow_id = $1 ORDER BY step_number",
                workflow_id,
            )
        except Exception as e:
            return Err(f"Failed to load approval workflow: {str(e)}")

        return Ok(_workflow_from(dict(workflow), [dict(s) for s in steps]))

    @beartype
    async def process_step(
        self, step_id: str, decision: ApprovalDecision, user: CurrentUser
    ) -> Result[ApprovalWorkflow, str]:
        """Approve or reject a pending step.

        Approving the last step approves the workflow; rejecting any step
        rejects the whole workflow.
        """
        try:
            step = await self._db.fetchrow(
                """
                SELECT s.id, s.workflow_id, s.step_number, s.role_required, s.status,
                       w.total_steps, w.status AS workflow_status, w.organization_id
                FROM workflow_steps s
                JOIN workflows w ON w.id = s.workflow_id
                WHERE s.id = $1
                """,
                step_id,
            )
        except Exception as e:
            return Err(f"Failed to load approval step: {str(e)}")

        if not step or (
            user.role != RoleId.SUPER_ADMIN.value
            and str(step["organization_id"]) != user.organization_id
        ):
            return Err(f"Approval step {step_id} not found")
        if step["status"] != ApprovalStatus.PENDING.value:
            return Err(f"Approval step {step_id} is already {step['status']}")
        if step["workflow_status"] != ApprovalStatus.PENDING.value:
            return Err(f"Approval workflow is already {step['workflow_status']}")
        if user.role not in (step["role_required"], RoleId.SUPER_ADMIN.value):
            return Err(f"Step requires the {step['role_required']} role")

        approve = decision.action is ApprovalAction.APPROVE
        step_status = ApprovalStatus.APPROVED if approve else ApprovalStatus.REJECTED
        try:
            async with self._db.transaction() as conn:
                await conn.execute(
                    """
                    UPDATE workflow_steps
                    SET status = $2, approved_by = $3, approved_at = NOW(), comments = $4
                    WHERE id = $1
                    """,
                    step_id,
                    step_status.value,
                    user.user_id,
                    decision.comments,
                )
                if not approve:
                    await conn.execute(
                        """
                        UPDATE workflows SET status = 'rejected', completed_at = NOW()
                        WHERE id = $1
                        """,
                        step["workflow_id"],
                    )
                elif step["step_number"] >= step["total_steps"]:
                    await conn.execute(
                        """
                        UPDATE workflows SET status = 'approved', completed_at = NOW()
                        WHERE id = $1
                        """,
                        step["workflow_id"],
                    )
                else:
                    await conn.execute(
                        "UPDATE workflows SET current_step = $2 WHERE id = $1",
                        step["workflow_id"],
                        step["step_number"] + 1,
                    )
        except Exception as e:
            return Err(f"Failed to process approval step: {str(e)}")

        logger.info(
            "Approval step %s %s by %s", step_id, step_status.value, user.user_id
        )
        return await self.get_workflow(str(step["workflow_id"]))


def _workflow_from(
    workflow: dict[str, Any], steps: list[dict[str, Any]]
) -> ApprovalWorkflow:
    return ApprovalWorkflow(
        id=str(workflow["id"]),
        organization_id=(
            str(workflow["organization_id"]) if workflow.get("organization_id") else None
        ),
        workflow_type=ApprovalWorkflowType(workflow["workflow_type"]),
        reference_type=workflow.get("reference_type"),
        reference_id=(
            str(workflow["reference_id"]) if workflow.get("reference_id") else None
        ),
        amount=Decimal(str(workflow["amount"])),
        status=ApprovalStatus(workflow["status"]),
        current_step=int(workflow.get("current_step") or 1),
        total_steps=int(workflow.get("total_steps") or 0),
        created_by=str(workflow["created_by"]) if workflow.get("created_by") else None,
        completed_at=workflow.get("completed_at"),
        created_at=workflow.get("created_at"),
        steps=[ApprovalStep.from_record(step) for step in steps],
    )
