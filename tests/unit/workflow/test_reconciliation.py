"""Unit tests for workflow resync."""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from brokerdesk.core.result_types import Err, Ok
from brokerdesk.models.payment import PaymentTransaction
from brokerdesk.models.quote import (
    PaymentStatus,
    QuoteSnapshot,
    QuoteStatus,
    WorkflowStage,
)
from brokerdesk.services.workflow import (
    QuoteWorkflowStore,
    WorkflowReconciler,
    canonical_state,
)


def _snapshot(stage, status, payment_status=None):
    return QuoteSnapshot(
        id="quote-1",
        organization_id="org-1",
        client_id="client-1",
        premium=Decimal("1000"),
        workflow_stage=stage,
        status=status,
        payment_status=payment_status,
    )


@pytest.fixture
def payments(payment_row):
    service = MagicMock()
    service.ensure_for_quote = AsyncMock(
        return_value=Ok(PaymentTransaction.from_record(payment_row(id="tx-1")))
    )
    return service


class TestCanonicalState:
    def test_valid_stage_with_matching_status_is_unchanged(self):
        snapshot = _snapshot("rfq-generation", "sent")
        canonical = canonical_state(snapshot)
        assert canonical.stage is WorkflowStage.RFQ_GENERATION
        assert canonical.status is QuoteStatus.SENT
        assert canonical.payment_status is None
        assert not canonical.differs_from(snapshot)

    def test_legacy_alias_maps_to_payment_processing(self):
        canonical = canonical_state(_snapshot("client_approved", "accepted"))
        assert canonical.stage is WorkflowStage.PAYMENT_PROCESSING
        assert canonical.payment_status is PaymentStatus.PENDING

    def test_unknown_stage_resets_to_draft(self):
        canonical = canonical_state(_snapshot("bogus-stage", "sent"))
        assert canonical.stage is WorkflowStage.DRAFT
        assert canonical.status is QuoteStatus.DRAFT

    def test_missing_stage_resets_to_draft(self):
        assert canonical_state(_snapshot(None, None)).stage is WorkflowStage.DRAFT

    def test_status_follows_stage(self):
        canonical = canonical_state(_snapshot("quote-evaluation", "draft"))
        assert canonical.status is QuoteStatus.SENT

    @pytest.mark.parametrize("terminal", ["rejected", "expired"])
    def test_terminal_status_is_preserved(self, terminal):
        canonical = canonical_state(_snapshot("client-selection", terminal))
        assert canonical.status is QuoteStatus(terminal)

    def test_payment_processing_keeps_valid_payment_status(self):
        canonical = canonical_state(
            _snapshot("payment-processing", "accepted", "failed")
        )
        assert canonical.payment_status is PaymentStatus.FAILED

    def test_payment_processing_defaults_invalid_payment_status_to_pending(self):
        canonical = canonical_state(
            _snapshot("payment-processing", "accepted", "mystery")
        )
        assert canonical.payment_status is PaymentStatus.PENDING

    @pytest.mark.parametrize("stage", ["contract-generation", "completed"])
    def test_settled_stages_force_completed_payment(self, stage):
        canonical = canonical_state(_snapshot(stage, "accepted", "pending"))
        assert canonical.payment_status is PaymentStatus.COMPLETED

    def test_early_stages_leave_payment_status_alone(self):
        snapshot = _snapshot("draft", "draft", "failed")
        assert canonical_state(snapshot).payment_status is None
        assert not canonical_state(snapshot).differs_from(snapshot)


class TestWorkflowReconciler:
    async def test_resync_writes_canonical_state(
        self, mock_db, mock_cache, quote_row, payments
    ):
        mock_db.fetchrow.side_effect = [
            quote_row(workflow_stage="client_approved", status="sent"),
            quote_row(
                workflow_stage="payment-processing",
                status="accepted",
                payment_status="pending",
            ),
        ]
        reconciler = WorkflowReconciler(QuoteWorkflowStore(mock_db, mock_cache), payments)

        result = await reconciler.resync("quote-1")

        assert result.is_ok()
        outcome = result.ok_value
        assert outcome.changed is True
        assert outcome.previous_stage == "client_approved"
        assert outcome.workflow_stage is WorkflowStage.PAYMENT_PROCESSING
        assert outcome.status is QuoteStatus.ACCEPTED
        assert outcome.payment_status is PaymentStatus.PENDING
        assert outcome.payment_transaction_id == "tx-1"

        update_args = mock_db.fetchrow.call_args_list[1].args
        assert update_args[1:] == ("quote-1", "payment-processing", "accepted", "pending")
        mock_cache.delete.assert_awaited_with("quote:workflow:quote-1")
        payments.ensure_for_quote.assert_awaited_once()

    async def test_resync_of_canonical_quote_writes_nothing(
        self, mock_db, mock_cache, quote_row, payments
    ):
        mock_db.fetchrow.return_value = quote_row(
            workflow_stage="insurer-matching", status="sent"
        )
        reconciler = WorkflowReconciler(QuoteWorkflowStore(mock_db, mock_cache), payments)

        result = await reconciler.resync("quote-1")

        assert result.is_ok()
        assert result.ok_value.changed is False
        assert mock_db.fetchrow.await_count == 1
        payments.ensure_for_quote.assert_not_awaited()

    async def test_resync_skips_cached_snapshot(
        self, mock_db, mock_cache, quote_row, payments
    ):
        mock_cache.get.return_value = {"id": "quote-1", "workflow_stage": "draft"}
        mock_db.fetchrow.return_value = quote_row(
            workflow_stage="rfq-generation", status="sent"
        )
        reconciler = WorkflowReconciler(QuoteWorkflowStore(mock_db, mock_cache), payments)

        result = await reconciler.resync("quote-1")

        assert result.ok_value.workflow_stage is WorkflowStage.RFQ_GENERATION
        mock_cache.get.assert_not_awaited()

    async def test_missing_quote_is_an_error(self, mock_db, mock_cache, payments):
        reconciler = WorkflowReconciler(QuoteWorkflowStore(mock_db, mock_cache), payments)

        result = await reconciler.resync("missing")

        assert result.is_err()
        assert result.err_value == "Quote missing not found"

    async def test_payment_failure_does_not_fail_resync(
        self, mock_db, mock_cache, quote_row, payments
    ):
        payments.ensure_for_quote.return_value = Err("Quote quote-1 not found")
        mock_db.fetchrow.return_value = quote_row(
            workflow_stage="contract-generation",
            status="accepted",
            payment_status="completed",
        )
        reconciler = WorkflowReconciler(QuoteWorkflowStore(mock_db, mock_cache), payments)

        result = await reconciler.resync("quote-1")

        assert result.is_ok()
        assert result.ok_value.payment_transaction_id is None


DRIFTED = [
    ("client_approved", "sent", None),
    ("  rfq-generation  ", "draft", None),
    ("bogus-stage", "accepted", "pending"),
    (None, None, None),
    ("payment-processing", "rejected", None),
    ("payment-processing", "accepted", "failed"),
    ("payment-processing", "sent", "mystery"),
    ("contract-generation", "expired", "pending"),
    ("completed", "sent", None),
]


def _apply(snapshot, canonical):
    """The snapshot as it reads back after writing ``canonical``."""
    return snapshot.model_copy(
        update={
            "workflow_stage": canonical.stage.value,
            "status": canonical.status.value,
            "payment_status": (
                canonical.payment_status.value
                if canonical.payment_status
                else snapshot.payment_status
            ),
        }
    )


@pytest.mark.parametrize(("stage", "status", "payment_status"), DRIFTED)
def test_canonical_state_is_a_fixpoint(stage, status, payment_status):
    snapshot = _snapshot(stage, status, payment_status)
    canonical = canonical_state(snapshot)

    written = _apply(snapshot, canonical)

    assert canonical_state(written) == canonical
    assert not canonical.differs_from(written)


@pytest.fixture
def stored(mock_db, quote_row):
    """One mutable quote row behind the store's SELECT and UPDATE."""
    row = quote_row()

    async def fetchrow(query, *args):
        if "UPDATE quotes" in query:
            row["workflow_stage"], row["status"] = args[1], args[2]
            if args[3] is not None:
                row["payment_status"] = args[3]
        return dict(row)

    mock_db.fetchrow.side_effect = fetchrow
    return row


@pytest.mark.parametrize(("stage", "status", "payment_status"), DRIFTED)
async def test_second_resync_changes_nothing(
    stage, status, payment_status, stored, mock_db, mock_cache, payments
):
    stored.update(workflow_stage=stage, status=status, payment_status=payment_status)
    reconciler = WorkflowReconciler(QuoteWorkflowStore(mock_db, mock_cache), payments)

    first = await reconciler.resync("quote-1")
    row_after_first = dict(stored)
    mock_db.fetchrow.reset_mock()
    second = await reconciler.resync("quote-1")

    assert first.is_ok()
    assert second.ok_value.changed is False
    assert second.ok_value.workflow_stage is first.ok_value.workflow_stage
    assert second.ok_value.status is first.ok_value.status
    assert stored == row_after_first
    assert mock_db.fetchrow.await_count == 1


async def test_resync_of_other_organization_is_not_found(
    stored, mock_db, mock_cache, payments
):
    stored["workflow_stage"] = "client_approved"
    reconciler = WorkflowReconciler(QuoteWorkflowStore(mock_db, mock_cache), payments)

    result = await reconciler.resync("quote-1", organization_id="org-OTHER")

    assert result.err_value == "Quote quote-1 not found"
    assert stored["workflow_stage"] == "client_approved"
    payments.ensure_for_quote.assert_not_awaited()
