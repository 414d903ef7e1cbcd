# BrokerDesk - Insurance Brokerage Workflow Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Resync of a quote's stage, status and payment status.

``canonical_state`` derives what the workflow fields should be from what
is stored. ``WorkflowReconciler.resync`` writes the difference back and
makes sure payment-stage quotes have a payment transaction. Running it
twice in a row is a no-op the second time.
"""

from attrs import field, frozen
from beartype import beartype

from ...core.logging_utils import get_logger
from ...core.result_types import Err, Ok, Result
from ...models.quote import (
    PaymentStatus,
    QuoteSnapshot,
    QuoteStatus,
    ReconciliationResult,
    WorkflowStage,
    WorkflowStateUpdate,
)
from ..payments import PaymentTransactionService
from ..performance_monitor import performance_monitor
from .quote_store import QuoteWorkflowStore
from .transitions import (
    PAYMENT_SETTLED_STAGES,
    PAYMENT_STAGES,
    expected_status_for_stage,
    parse_stage,
)

logger = get_logger(__name__)

TERMINAL_STATUSES = frozenset({QuoteStatus.REJECTED, QuoteStatus.EXPIRED})


@frozen
class CanonicalState:
    """Workflow fields as they should be stored.

    ``payment_status`` is None when the stage does not constrain it.
    """

    stage: WorkflowStage = field()
    status: QuoteStatus = field()
    payment_status: PaymentStatus | None = field(default=None)

    @beartype
    def differs_from(self, snapshot: QuoteSnapshot) -> bool:
        if snapshot.workflow_stage != self.stage.value:
            return True
        if snapshot.status != self.status.value:
            return True
        return (
            self.payment_status is not None
            and snapshot.payment_status != self.payment_status.value
        )


def _parse_status(raw: str | None) -> QuoteStatus | None:
    try:
        return QuoteStatus(raw) if raw else None
    except ValueError:
        return None


def _parse_payment_status(raw: str | None) -> PaymentStatus | None:
    try:
        return PaymentStatus(raw) if raw else None
    except ValueError:
        return None


@beartype
def canonical_state(snapshot: QuoteSnapshot) -> CanonicalState:
    """Derive canonical workflow fields from a stored snapshot."""
    stage = parse_stage(snapshot.workflow_stage) or WorkflowStage.DRAFT

    stored_status = _parse_status(snapshot.status)
    if stored_status in TERMINAL_STATUSES:
        status = stored_status
    else:
        status = expected_status_for_stage(stage)

    payment_status: PaymentStatus | None = None
    if stage in PAYMENT_SETTLED_STAGES:
        payment_status = PaymentStatus.COMPLETED
    elif stage is WorkflowStage.PAYMENT_PROCESSING:
        payment_status = (
            _parse_payment_status(snapshot.payment_status) or PaymentStatus.PENDING
        )

    return CanonicalState(stage=stage, status=status, payment_status=payment_status)


class WorkflowReconciler:
    """Bring a stored quote back to its canonical workflow state."""

    def __init__(
        self, store: QuoteWorkflowStore, payments: PaymentTransactionService
    ) -> None:
        self._store = store
        self._payments = payments

    @performance_monitor("workflow_resync", max_duration_ms=1500)
    @beartype
    async def resync(
        self, quote_id: str, organization_id: str | None = None
    ) -> Result[ReconciliationResult, str]:
        loaded = await self._store.get_snapshot(
            quote_id, use_cache=False, organization_id=organization_id
        )
        if loaded.is_err():
            return Err(loaded.err_value)

        snapshot = loaded.ok_value
        canonical = canonical_state(snapshot)
        changed = canonical.differs_from(snapshot)

        current = snapshot
        if changed:
            written = await self._store.update_workflow_state(
                quote_id,
                WorkflowStateUpdate(
                    workflow_stage=canonical.stage,
                    status=canonical.status,
                    payment_status=canonical.payment_status,
                ),
            )
            if written.is_err():
                return Err(written.err_value)
            current = written.ok_value
            logger.info(
                "Resynced quote %s: stage %s -> %s, status %s -> %s",
                quote_id,
                snapshot.workflow_stage,
                canonical.stage.value,
                snapshot.status,
                canonical.status.value,
            )

        payment_transaction_id = None
        if canonical.stage in PAYMENT_STAGES:
            ensured = await self._payments.ensure_for_quote(
                quote_id,
                client_id=current.client_id,
                amount=current.premium,
                organization_id=current.organization_id,
            )
            if ensured.is_ok():
                payment_transaction_id = ensured.ok_value.id
            else:
                logger.warning(
                    "Quote %s is in %s without a payment transaction: %s",
                    quote_id,
                    canonical.stage.value,
                    ensured.err_value,
                )

        return Ok(
            ReconciliationResult(
                quote_id=quote_id,
                changed=changed,
                previous_stage=snapshot.workflow_stage,
                previous_status=snapshot.status,
                previous_payment_status=snapshot.payment_status,
                workflow_stage=canonical.stage,
                status=canonical.status,
                payment_status=canonical.payment_status
                or _parse_payment_status(current.payment_status),
                payment_transaction_id=payment_transaction_id,
            )
        )
