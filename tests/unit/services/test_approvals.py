"""Unit tests for approval limits and approval workflows."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from brokerdesk.models.approval import (
    ApprovalAction,
    ApprovalDecision,
    ApprovalRequest,
    ApprovalStatus,
    ApprovalWorkflowType,
)
from brokerdesk.models.role import CurrentUser, RoleId
from brokerdesk.services.approvals import ApprovalPolicy, ApprovalService

W = ApprovalWorkflowType


def workflow_row(**overrides):
    row = {
        "id": "wf-1",
        "organization_id": "org-1",
        "workflow_type": "underwriting",
        "reference_type": "quote",
        "reference_id": "quote-1",
        "amount": Decimal("2000000"),
        "status": "pending",
        "current_step": 1,
        "total_steps": 1,
        "created_by": "user-agent",
        "completed_at": None,
        "created_at": datetime.now(timezone.utc),
    }
    row.update(overrides)
    return row


def step_row(**overrides):
    row = {
        "id": "step-1",
        "workflow_id": "wf-1",
        "step_number": 1,
        "step_name": "underwriting Approval Required",
        "role_required": "Underwriter",
        "status": "pending",
    }
    row.update(overrides)
    return row


def user(role: str, user_id: str = "user-1") -> CurrentUser:
    return CurrentUser(user_id=user_id, role=role, organization_id="org-1")


class TestApprovalPolicy:
    @pytest.mark.parametrize(
        ("workflow_type", "amount", "role", "expected"),
        [
            (W.UNDERWRITING, "500000", "Agent", False),
            (W.UNDERWRITING, "1000000", "Agent", False),
            (W.UNDERWRITING, "1000000.01", "Agent", True),
            (W.UNDERWRITING, "3000000", "Underwriter", False),
            (W.UNDERWRITING, "3000000", "BrokerAdmin", True),
            (W.CLAIMS, "4000000", "Compliance", False),
            (W.PAYMENTS, "10", "Agent", True),
            (W.PAYMENTS, "10", "SuperAdmin", True),
        ],
    )
    def test_requires_approval(self, workflow_type, amount, role, expected):
        policy = ApprovalPolicy()
        assert policy.requires_approval(workflow_type, Decimal(amount), role) is expected

    @pytest.mark.parametrize(
        ("workflow_type", "amount", "role", "approver"),
        [
            (W.UNDERWRITING, "2000000", "Agent", RoleId.UNDERWRITER),
            (W.UNDERWRITING, "7000000", "Underwriter", RoleId.BROKER_ADMIN),
            (W.UNDERWRITING, "500000", "BrokerAdmin", RoleId.AGENT),
            (W.UNDERWRITING, "500000", "Agent", RoleId.UNDERWRITER),
            (W.PAYMENTS, "150000000", "Agent", RoleId.SUPER_ADMIN),
            (W.REMITTANCE, "600000000", "BrokerAdmin", RoleId.SUPER_ADMIN),
        ],
    )
    def test_next_approver_is_smallest_sufficient_limit(
        self, workflow_type, amount, role, approver
    ):
        policy = ApprovalPolicy()
        assert policy.next_approver(workflow_type, Decimal(amount), role) is approver

    def test_plan_steps(self):
        policy = ApprovalPolicy()

        assert policy.plan_steps(W.UNDERWRITING, Decimal("100"), "Agent") == []
        (step,) = policy.plan_steps(W.CLAIMS, Decimal("20000000"), "Underwriter")
        assert step.name == "claims Approval Required"
        assert step.role_required is RoleId.BROKER_ADMIN
        assert step.approval_limit == Decimal("20000000")


class TestCreateWorkflow:
    def test_requires_database(self):
        with pytest.raises(ValueError, match="Database connection required"):
            ApprovalService(None)

    async def test_pending_workflow_with_step(self, mock_db, mock_conn):
        mock_conn.fetchrow.side_effect = [workflow_row(), step_row()]
        service = ApprovalService(mock_db)

        result = await service.create_workflow(
            ApprovalRequest(
                workflow_type=W.UNDERWRITING,
                amount=Decimal("2000000"),
                reference_type="quote",
                reference_id="quote-1",
            ),
            user("Agent", "user-agent"),
        )

        workflow = result.ok_value
        assert workflow.status is ApprovalStatus.PENDING
        assert [s.role_required for s in workflow.steps] == ["Underwriter"]
        insert_workflow, insert_step = mock_conn.fetchrow.await_args_list
        assert insert_workflow.args[6:9] == ("pending", 1, "user-agent")
        assert insert_step.args[1:] == (
            "wf-1",
            1,
            "underwriting Approval Required",
            "Underwriter",
        )

    async def test_within_limit_is_approved_immediately(self, mock_db, mock_conn):
        mock_conn.fetchrow.return_value = workflow_row(
            amount=Decimal("100"), status="approved", total_steps=0
        )
        service = ApprovalService(mock_db)

        result = await service.create_workflow(
            ApprovalRequest(workflow_type=W.UNDERWRITING, amount=Decimal("100")),
            user("Underwriter"),
        )

        assert result.ok_value.status is ApprovalStatus.APPROVED
        assert result.ok_value.steps == []
        assert mock_conn.fetchrow.await_count == 1
        assert mock_conn.fetchrow.await_args.args[6:8] == ("approved", 0)

    async def test_insert_failure(self, mock_db, mock_conn):
        mock_conn.fetchrow.side_effect = RuntimeError("relation does not exist")

        result = await ApprovalService(mock_db).create_workflow(
            ApprovalRequest(workflow_type=W.PAYMENTS, amount=Decimal("1")),
            user("Agent"),
        )

        assert result.err_value == (
            "Failed to create approval workflow: relation does not exist"
        )


class TestProcessStep:
    @pytest.fixture
    def joined(self):
        def _make(**overrides):
            row = {
                "id": "step-1",
                "workflow_id": "wf-1",
                "step_number": 1,
                "role_required": "Underwriter",
                "status": "pending",
                "total_steps": 1,
                "workflow_status": "pending",
                "organization_id": "org-1",
            }
            row.update(overrides)
            return row

        return _make

    async def test_approving_last_step_approves_workflow(
        self, mock_db, mock_conn, joined
    ):
        mock_db.fetchrow.side_effect = [joined(), workflow_row(status="approved")]
        mock_db.fetch.return_value = [step_row(status="approved", approved_by="user-1")]

        result = await ApprovalService(mock_db).process_step(
            "step-1",
            ApprovalDecision(action=ApprovalAction.APPROVE, comments="ok"),
            user("Underwriter"),
        )

        assert result.ok_value.status is ApprovalStatus.APPROVED
        step_update, workflow_update = mock_conn.execute.await_args_list
        assert step_update.args[1:] == ("step-1", "approved", "user-1", "ok")
        assert "status = 'approved'" in workflow_update.args[0]

    async def test_approving_earlier_step_advances(self, mock_db, mock_conn, joined):
        mock_db.fetchrow.side_effect = [
            joined(total_steps=2),
            workflow_row(current_step=2, total_steps=2),
        ]

        result = await ApprovalService(mock_db).process_step(
            "step-1", ApprovalDecision(action=ApprovalAction.APPROVE), user("SuperAdmin")
        )

        assert result.ok_value.current_step == 2
        assert mock_conn.execute.await_args.args[1:] == ("wf-1", 2)

    async def test_rejection_rejects_workflow(self, mock_db, mock_conn, joined):
        mock_db.fetchrow.side_effect = [joined(), workflow_row(status="rejected")]

        result = await ApprovalService(mock_db).process_step(
            "step-1", ApprovalDecision(action=ApprovalAction.REJECT), user("Underwriter")
        )

        assert result.ok_value.status is ApprovalStatus.REJECTED
        assert "status = 'rejected'" in mock_conn.execute.await_args.args[0]

    async def test_wrong_role(self, mock_db, mock_conn, joined):
        mock_db.fetchrow.return_value = joined()

        result = await ApprovalService(mock_db).process_step(
            "step-1", ApprovalDecision(action=ApprovalAction.APPROVE), user("BrokerAdmin")
        )

        assert result.err_value == "Step requires the Underwriter role"
        mock_conn.execute.assert_not_awaited()

    @pytest.mark.parametrize(
        ("overrides", "message"),
        [
            ({"status": "approved"}, "Approval step step-1 is already approved"),
            ({"workflow_status": "rejected"}, "Approval workflow is already rejected"),
        ],
    )
    async def test_decided_steps_are_final(self, mock_db, joined, overrides, message):
        mock_db.fetchrow.return_value = joined(**overrides)

        result = await ApprovalService(mock_db).process_step(
            "step-1", ApprovalDecision(action=ApprovalAction.APPROVE), user("SuperAdmin")
        )

        assert result.err_value == message

    async def test_step_of_other_organization_is_not_found(
        self, mock_db, mock_conn, joined
    ):
        mock_db.fetchrow.return_value = joined(organization_id="org-OTHER")

        result = await ApprovalService(mock_db).process_step(
            "step-1", ApprovalDecision(action=ApprovalAction.APPROVE), user("Underwriter")
        )

        assert result.err_value == "Approval step step-1 not found"
        mock_conn.execute.assert_not_awaited()

    async def test_unknown_step(self, mock_db):
        result = await ApprovalService(mock_db).process_step(
            "step-404", ApprovalDecision(action=ApprovalAction.APPROVE), user("SuperAdmin")
        )

        assert result.err_value == "Approval step step-404 not found"


class TestGetWorkflow:
    async def test_not_found(self, mock_db):
        result = await ApprovalService(mock_db).get_workflow("wf-404")

        assert result.err_value == "Approval workflow wf-404 not found"

    async def test_steps_are_attached(self, mock_db):
        mock_db.fetchrow.return_value = workflow_row()
        mock_db.fetch.return_value = [step_row()]

        workflow = (await ApprovalService(mock_db).get_workflow("wf-1")).ok_value

        assert workflow.steps[0].name == "underwriting Approval Required"

    async def test_other_organization_is_not_found(self, mock_db):
        mock_db.fetchrow.return_value = workflow_row(organization_id="org-OTHER")

        result = await ApprovalService(mock_db).get_workflow("wf-1", "org-1")

        assert result.err_value == "Approval workflow wf-1 not found"
        mock_db.fetch.assert_not_awaited()
