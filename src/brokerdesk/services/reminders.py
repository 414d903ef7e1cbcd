# BrokerDesk - Insurance Brokerage Workflow Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Follow-up reminders for quotes that stall."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any

from beartype import beartype

from ..core.config import Settings, get_settings
from ..core.database import Database
from ..core.logging_utils import get_logger
from ..core.result_types import Err, Ok, Result
from ..models.quote import QuoteStatus, WorkflowStage
from ..models.reminder import (
    ReminderBatch,
    ReminderCandidate,
    ReminderDispatch,
    ReminderKind,
)
from .notifications import NotificationService, NotificationType

logger = get_logger(__name__)

IDLE_STAGES = (WorkflowStage.QUOTE_EVALUATION, WorkflowStage.CLIENT_SELECTION)

_CANDIDATE_QUERY = """
    SELECT q.id, q.quote_number, q.client_name, q.workflow_stage, q.status,
           q.created_at, p.email AS broker_email,
           (SELECT COUNT(*) FROM evaluated_quotes e WHERE e.quote_id = q.id)
               AS evaluated_count
    FROM quotes q
    LEFT JOIN profiles p ON p.id = q.created_by
"""

_REASONS = {
    ReminderKind.IDLE: "insurer offers are waiting for the client's selection",
    ReminderKind.NO_INSURER_MATCH: "no insurer has responded to the RFQ yet",
}


class QuoteReminderService:
    """Find stalled quotes and remind the broker who owns them."""

    def __init__(
        self,
        db: Database,
        notifications: NotificationService,
        settings: Settings | None = None,
    ) -> None:
        """Initialize service with dependency validation."""
        if not db or not hasattr(db, "fetch"):
            raise ValueError("Database connection required and must be active")

        self._db = db
        self._notifications = notifications
        self._settings = settings or get_settings()

    @beartype
    async def get_idle_quotes(
        self, now: datetime | None = None, organization_id: str | None = None
    ) -> Result[list[ReminderCandidate], str]:
        """Sent quotes with insurer offers the client has not acted on."""
        query, args = _scoped(
            "WHERE q.workflow_stage = ANY($1::text[]) AND q.status = $2",
            ([stage.value for stage in IDLE_STAGES], QuoteStatus.SENT.value),
            organization_id,
        )
        try:
            rows = await self._db.fetch(query, *args)
        except Exception as e:
            return Err(f"Failed to load idle quotes: {str(e)}")

        cutoff = self._cutoff(self._settings.idle_quote_threshold_days, now)
        candidates = [ReminderCandidate.from_record(dict(row)) for row in rows]
        return Ok(
            [
                c
                for c in candidates
                if c.evaluated_count > 0 and _aware(c.created_at) <= cutoff
            ]
        )

    @beartype
    async def get_quotes_without_insurer_match(
        self, now: datetime | None = None, organization_id: str | None = None
    ) -> Result[list[ReminderCandidate], str]:
        """RFQs that have gone out without any insurer response."""
        query, args = _scoped(
            "WHERE q.workflow_stage = $1",
            (WorkflowStage.RFQ_GENERATION.value,),
            organization_id,
        )
        try:
            rows = await self._db.fetch(query, *args)
        except Exception as e:
            return Err(f"Failed to load quotes without insurer match: {str(e)}")

        cutoff = self._cutoff(self._settings.no_insurer_match_threshold_days, now)
        candidates = [ReminderCandidate.from_record(dict(row)) for row in rows]
        return Ok(
            [
                c
                for c in candidates
                if c.evaluated_count == 0 and _aware(c.created_at) <= cutoff
            ]
        )

    @beartype
    async def get_quotes_needing_reminders(
        self, now: datetime | None = None, organization_id: str | None = None
    ) -> Result[ReminderBatch, str]:
        idle, no_match = await asyncio.gather(
            self.get_idle_quotes(now, organization_id),
            self.get_quotes_without_insurer_match(now, organization_id),
        )
        if idle.is_err():
            return Err(idle.err_value)
        if no_match.is_err():
            return Err(no_match.err_value)
        return Ok(
            ReminderBatch(idle_quotes=idle.ok_value, no_match_quotes=no_match.ok_value)
        )

    @beartype
    async def send_quote_reminders(
        self,
        quote_ids: list[str],
        kind: ReminderKind,
        organization_id: str | None = None,
    ) -> Result[ReminderDispatch, str]:
        """Email the owning broker of each quote.

        Ids that do not resolve to a quote of ``organization_id`` are
        reported as failed.
        """
        if not quote_ids:
            return Ok(ReminderDispatch(kind=kind))

        query, args = _scoped(
            "WHERE q.id = ANY($1::uuid[])", (quote_ids,), organization_id
        )
        try:
            rows = await self._db.fetch(query, *args)
        except Exception as e:
            return Err(f"Failed to load quotes for reminders: {str(e)}")

        found = {str(row["id"]): ReminderCandidate.from_record(dict(row)) for row in rows}
        failed: list[str] = []
        sent = 0
        for quote_id in quote_ids:
            candidate = found.get(quote_id)
            if candidate is None:
                failed.append(quote_id)
                continue

            result = await self._notifications.send(
                NotificationType.QUOTE_REMINDER,
                {
                    "quote_id": candidate.quote_id,
                    "quote_number": candidate.quote_number or candidate.quote_id,
                    "client_name": candidate.client_name or "the client",
                    "broker_email": candidate.broker_email,
                    "reason": _REASONS[kind],
                },
            )
            if result.is_ok():
                sent += 1
            else:
                failed.append(quote_id)

        logger.info("Sent %s/%s %s reminders", sent, len(quote_ids), kind.value)
        return Ok(
            ReminderDispatch(kind=kind, requested=len(quote_ids), sent=sent, failed=failed)
        )

    @staticmethod
    def _cutoff(days: int, now: datetime | None) -> datetime:
        return (now or datetime.now(timezone.utc)) - timedelta(days=days)


def _scoped(
    where: str, args: tuple[Any, ...], organization_id: str | None
) -> tuple[str, tuple[Any, ...]]:
    if organization_id is None:
        return _CANDIDATE_QUERY + where, args
    return (
        f"{_CANDIDATE_QUERY}{where} AND q.organization_id = ${len(args) + 1}",
        (*args, organization_id),
    )


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
