# BrokerDesk - Insurance Brokerage Workflow Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Quote workflow transition execution."""

from attrs import define, field
from beartype import beartype

from ...core.logging_utils import get_logger
from ...core.result_types import Err, Ok, Result
from ...models.quote import (
    QuoteSnapshot,
    TransitionOutcome,
    WorkflowStage,
    WorkflowStateUpdate,
)
from ..audit import QuoteAuditLogger
from ..notifications import NotificationService, NotificationType
from ..payments import PaymentTransactionService
from ..performance_monitor import performance_monitor
from ..portal_links import PortalLinkService
from .quote_store import QuoteWorkflowStore
from .reconciliation import WorkflowReconciler
from .transitions import (
    NotificationKind,
    SideEffect,
    StageRequirements,
    get_transition,
    is_forward,
    next_stage,
    parse_stage,
    requirements_for_stage,
)
from .transitions import can_transition as _can_transition

logger = get_logger(__name__)


@define
class _SideEffectResults:
    portal_link_id: str | None = field(default=None)
    portal_url: str | None = field(default=None)
    payment_transaction_id: str | None = field(default=None)
    executed: list[str] = field(factory=list)


class WorkflowTransitionService:
    """Move quotes through the workflow.

    Side effects a transition requires run before anything is written; if
    one fails, the quote is left exactly as it was. Steps after the write
    are reported in the outcome and never undo the move.
    """

    def __init__(
        self,
        store: QuoteWorkflowStore,
        reconciler: WorkflowReconciler,
        portal_links: PortalLinkService,
        payments: PaymentTransactionService,
        audit: QuoteAuditLogger,
        notifications: NotificationService | None = None,
    ) -> None:
        self._store = store
        self._reconciler = reconciler
        self._portal_links = portal_links
        self._payments = payments
        self._audit = audit
        self._notifications = notifications

    @beartype
    def can_transition(self, stage: WorkflowStage) -> bool:
        return _can_transition(stage)

    @beartype
    def get_next_stage(self, stage: WorkflowStage) -> WorkflowStage | None:
        return next_stage(stage)

    @performance_monitor("workflow_transition", max_duration_ms=3000)
    @beartype
    async def transition(
        self,
        quote_id: str,
        current_stage: WorkflowStage,
        force_stage: WorkflowStage | None = None,
        user_id: str | None = None,
        organization_id: str | None = None,
    ) -> Result[TransitionOutcome, str]:
        """Advance ``quote_id`` one stage, or move it to ``force_stage``.

        Args:
            quote_id: Quote to move
            current_stage: Stage the caller believes the quote is in
            force_stage: Explicit target, bypassing the transition table
            user_id: Internal user requesting the move, for the audit trail
            organization_id: Organization the caller belongs to; quotes of
                other organizations are not found
        """
        loaded = await self._store.get_snapshot(
            quote_id, use_cache=False, organization_id=organization_id
        )
        if loaded.is_err():
            return Err(loaded.err_value)
        snapshot = loaded.ok_value

        stored_stage = parse_stage(snapshot.workflow_stage) or WorkflowStage.DRAFT
        if stored_stage is not current_stage:
            return Err(
                f"Quote {quote_id} is in stage '{stored_stage.value}', "
                f"not '{current_stage.value}'; reload and retry"
            )

        if force_stage is not None:
            if force_stage is current_stage:
                return Err(f"Quote {quote_id} is already in stage '{current_stage.value}'")
            requirements = requirements_for_stage(force_stage)
            if not is_forward(current_stage, force_stage):
                logger.warning(
                    "Quote %s forced back from %s to %s",
                    quote_id,
                    current_stage.value,
                    force_stage.value,
                )
        else:
            transition = get_transition(current_stage)
            if transition is None:
                return Err(f"No transition defined from stage '{current_stage.value}'")
            requirements = requirements_for_stage(transition.target)

        effects = await self._run_side_effects(snapshot, requirements)
        if effects.is_err():
            logger.warning(
                "Transition of quote %s to %s aborted: %s",
                quote_id,
                requirements.stage.value,
                effects.err_value,
            )
            return Err(effects.err_value)

        written = await self._store.update_workflow_state(
            quote_id,
            WorkflowStateUpdate(
                workflow_stage=requirements.stage,
                status=requirements.status,
                payment_status=requirements.payment_status,
            ),
        )
        if written.is_err():
            return Err(written.err_value)

        # The move is stored from here on; later failures are reported, not returned.
        reconciled = await self._reconciler.resync(quote_id)
        reconciliation = reconciled.ok_value if reconciled.is_ok() else None
        resync_error = reconciled.err_value if reconciled.is_err() else None
        if resync_error is not None:
            logger.warning(
                "Quote %s moved to %s but resync failed: %s",
                quote_id,
                requirements.stage.value,
                resync_error,
            )

        side_effects = effects.ok_value
        await self._audit.log_workflow_stage(
            quote_id=quote_id,
            organization_id=snapshot.organization_id,
            stage=requirements.stage.value,
            action="workflow_forced" if force_stage else "workflow_transition",
            details={
                "from_stage": current_stage.value,
                "to_stage": requirements.stage.value,
                "status": requirements.status.value,
                "direction": (
                    "forward"
                    if is_forward(current_stage, requirements.stage)
                    else "backward"
                ),
                "side_effects": side_effects.executed,
                "resync_changed": reconciliation.changed if reconciliation else None,
                "resync_error": resync_error,
            },
            user_id=user_id,
        )

        notified = await self._notify(
            requirements.notification, written.ok_value, side_effects
        )

        return Ok(
            TransitionOutcome(
                quote_id=quote_id,
                from_stage=current_stage,
                to_stage=requirements.stage,
                status=reconciliation.status if reconciliation else requirements.status,
                payment_status=(
                    reconciliation.payment_status
                    if reconciliation
                    else requirements.payment_status
                ),
                forced=force_stage is not None,
                side_effects=side_effects.executed,
                portal_link_id=side_effects.portal_link_id,
                payment_transaction_id=side_effects.payment_transaction_id
                or (reconciliation.payment_transaction_id if reconciliation else None),
                notification_sent=notified,
                reconciliation=reconciliation,
                resync_error=resync_error,
            )
        )

    async def _run_side_effects(
        self, snapshot: QuoteSnapshot, requirements: StageRequirements
    ) -> Result[_SideEffectResults, str]:
        results = _SideEffectResults()
        for effect in requirements.side_effects:
            if effect is SideEffect.ISSUE_PORTAL_LINK:
                link = await self._portal_links.ensure_client_portal_link(snapshot.id)
                if link.is_err():
                    return Err(f"Could not issue client portal link: {link.err_value}")
                results.portal_link_id = link.ok_value.id
                results.portal_url = self._portal_links.client_portal_url(
                    link.ok_value.token
                )
            elif effect is SideEffect.CREATE_PAYMENT_TRANSACTION:
                transaction = await self._payments.ensure_for_quote(
                    snapshot.id,
                    client_id=snapshot.client_id,
                    amount=snapshot.premium,
                    organization_id=snapshot.organization_id,
                )
                if transaction.is_err():
                    return Err(
                        f"Could not create payment transaction: {transaction.err_value}"
                    )
                results.payment_transaction_id = transaction.ok_value.id
            results.executed.append(effect.value)
        return Ok(results)

    async def _notify(
        self,
        kind: NotificationKind | None,
        snapshot: QuoteSnapshot,
        side_effects: _SideEffectResults,
    ) -> bool:
        if kind is None or self._notifications is None:
            return False

        data = {
            "client_name": snapshot.client_name or "Valued Client",
            "client_email": snapshot.client_email,
            "quote_number": snapshot.quote_number or snapshot.id,
            "quote_id": snapshot.id,
        }
        if kind is NotificationKind.QUOTE_READY:
            data["portal_url"] = side_effects.portal_url or ""
        elif kind is NotificationKind.PAYMENT_RECEIVED:
            data["amount"] = snapshot.premium

        try:
            sent = await self._notifications.send(NotificationType(kind.value), data)
        except Exception as e:
            logger.warning(
                "Quote %s moved but %s notification raised: %s", snapshot.id, kind.value, e
            )
            return False
        if sent.is_err():
            logger.warning(
                "Quote %s moved but %s notification failed: %s",
                snapshot.id,
                kind.value,
                sent.err_value,
            )
        return sent.is_ok()
