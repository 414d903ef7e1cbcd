# BrokerDesk - Insurance Brokerage Workflow Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Declarative quote workflow transition table.

Each non-terminal stage has exactly one outgoing transition. A transition
names the status the quote takes on, an optional payment status, the
side effects that must succeed before the move is persisted and the
notification sent once it has been.
"""

from collections.abc import Mapping
from enum import Enum
from types import MappingProxyType

from attrs import field, frozen
from beartype import beartype

from ...models.quote import PaymentStatus, QuoteStatus, WorkflowStage

S = WorkflowStage

LEGACY_STAGE_ALIASES: Mapping[str, WorkflowStage] = MappingProxyType(
    {"client_approved": S.PAYMENT_PROCESSING}
)

STAGE_ORDER: tuple[WorkflowStage, ...] = tuple(WorkflowStage)

PAYMENT_STAGES: frozenset[WorkflowStage] = frozenset(
    {S.PAYMENT_PROCESSING, S.CONTRACT_GENERATION}
)

PAYMENT_SETTLED_STAGES: frozenset[WorkflowStage] = frozenset(
    {S.CONTRACT_GENERATION, S.COMPLETED}
)


class SideEffect(str, Enum):
    """Capabilities a transition needs before it may be persisted."""

    ISSUE_PORTAL_LINK = "issue_portal_link"
    CREATE_PAYMENT_TRANSACTION = "create_payment_transaction"


class NotificationKind(str, Enum):
    """Client notifications sent after a transition."""

    QUOTE_READY = "quote_ready"
    PAYMENT_RECEIVED = "payment_received"


@frozen
class Transition:
    """One edge of the workflow graph."""

    source: WorkflowStage = field()
    target: WorkflowStage = field()
    status: QuoteStatus = field()
    payment_status: PaymentStatus | None = field(default=None)
    side_effects: tuple[SideEffect, ...] = field(default=())
    notification: NotificationKind | None = field(default=None)


@frozen
class StageRequirements:
    """What must hold for a quote to sit in a given stage."""

    stage: WorkflowStage = field()
    status: QuoteStatus = field()
    payment_status: PaymentStatus | None = field(default=None)
    side_effects: tuple[SideEffect, ...] = field(default=())
    notification: NotificationKind | None = field(default=None)


TRANSITIONS: Mapping[WorkflowStage, Transition] = MappingProxyType(
    {
        t.source: t
        for t in (
            Transition(S.DRAFT, S.CLIENT_ONBOARDING, QuoteStatus.DRAFT),
            Transition(S.CLIENT_ONBOARDING, S.QUOTE_DRAFTING, QuoteStatus.DRAFT),
            Transition(
                S.QUOTE_DRAFTING, S.CLAUSE_RECOMMENDATION, QuoteStatus.DRAFT
            ),
            Transition(S.CLAUSE_RECOMMENDATION, S.RFQ_GENERATION, QuoteStatus.SENT),
            Transition(S.RFQ_GENERATION, S.INSURER_MATCHING, QuoteStatus.SENT),
            Transition(S.INSURER_MATCHING, S.QUOTE_EVALUATION, QuoteStatus.SENT),
            Transition(
                S.QUOTE_EVALUATION,
                S.CLIENT_SELECTION,
                QuoteStatus.SENT,
                side_effects=(SideEffect.ISSUE_PORTAL_LINK,),
                notification=NotificationKind.QUOTE_READY,
            ),
            Transition(
                S.CLIENT_SELECTION,
                S.PAYMENT_PROCESSING,
                QuoteStatus.ACCEPTED,
                payment_status=PaymentStatus.PENDING,
                side_effects=(SideEffect.CREATE_PAYMENT_TRANSACTION,),
            ),
            Transition(
                S.PAYMENT_PROCESSING,
                S.CONTRACT_GENERATION,
                QuoteStatus.ACCEPTED,
                payment_status=PaymentStatus.COMPLETED,
                notification=NotificationKind.PAYMENT_RECEIVED,
            ),
            Transition(
                S.CONTRACT_GENERATION,
                S.COMPLETED,
                QuoteStatus.ACCEPTED,
                payment_status=PaymentStatus.COMPLETED,
            ),
        )
    }
)

_ENTERING: Mapping[WorkflowStage, Transition] = MappingProxyType(
    {t.target: t for t in TRANSITIONS.values()}
)


@beartype
def parse_stage(raw: str | WorkflowStage | None) -> WorkflowStage | None:
    """Parse a stored stage value, accepting legacy aliases."""
    if raw is None:
        return None
    if isinstance(raw, WorkflowStage):
        return raw
    value = raw.strip()
    if value in LEGACY_STAGE_ALIASES:
        return LEGACY_STAGE_ALIASES[value]
    try:
        return WorkflowStage(value)
    except ValueError:
        return None


@beartype
def get_transition(stage: WorkflowStage) -> Transition | None:
    return TRANSITIONS.get(stage)


@beartype
def can_transition(stage: WorkflowStage) -> bool:
    return stage in TRANSITIONS


@beartype
def next_stage(stage: WorkflowStage) -> WorkflowStage | None:
    transition = TRANSITIONS.get(stage)
    return transition.target if transition else None


@beartype
def expected_status_for_stage(stage: WorkflowStage) -> QuoteStatus:
    """Status a quote carries while it sits in ``stage``."""
    position = STAGE_ORDER.index(stage)
    if position < STAGE_ORDER.index(S.RFQ_GENERATION):
        return QuoteStatus.DRAFT
    if position < STAGE_ORDER.index(S.PAYMENT_PROCESSING):
        return QuoteStatus.SENT
    return QuoteStatus.ACCEPTED


@beartype
def requirements_for_stage(stage: WorkflowStage) -> StageRequirements:
    """Requirements of the transition entering ``stage``.

    ``draft`` has no entering transition and requires nothing.
    """
    entering = _ENTERING.get(stage)
    if entering is None:
        return StageRequirements(stage=stage, status=expected_status_for_stage(stage))
    return StageRequirements(
        stage=stage,
        status=entering.status,
        payment_status=entering.payment_status,
        side_effects=entering.side_effects,
        notification=entering.notification,
    )


@beartype
def is_forward(source: WorkflowStage, target: WorkflowStage) -> bool:
    return STAGE_ORDER.index(target) > STAGE_ORDER.index(source)
