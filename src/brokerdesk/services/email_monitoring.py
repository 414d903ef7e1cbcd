# BrokerDesk - Insurance Brokerage Workflow Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Polling for insurer quote responses during RFQ.

An ``EmailMonitor`` is an explicit handle owned by whoever starts it. Each
poll delivers only responses stored after the previous poll, so a callback
never sees the same response twice.
"""

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from types import TracebackType
from typing import Any

from beartype import beartype

from ..core.database import Database
from ..core.logging_utils import get_logger
from ..core.result_types import Err, Ok, Result
from ..integrations.email import InboxClient
from ..models.insurer import InsurerQuoteResponse

logger = get_logger(__name__)

QuoteCallback = Callable[[InsurerQuoteResponse], Awaitable[None] | None]


class EmailMonitor:
    """Watch one quote's insurer responses on a fixed interval."""

    def __init__(
        self,
        db: Database,
        organization_id: str,
        inbox_client: InboxClient | None = None,
        poll_interval_seconds: float = 600.0,
    ) -> None:
        """Initialize monitor with dependency validation."""
        if not db or not hasattr(db, "fetch"):
            raise ValueError("Database connection required and must be active")
        if poll_interval_seconds <= 0:
            raise ValueError("Poll interval must be positive")

        self._db = db
        self._organization_id = organization_id
        self._inbox_client = inbox_client
        self._poll_interval = poll_interval_seconds

        self._mailbox: str | None = None
        self._quote_id: str | None = None
        self._callback: QuoteCallback | None = None
        self._last_check: datetime | None = None
        self._stop_event: asyncio.Event | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def last_check(self) -> datetime | None:
        return self._last_check

    @beartype
    async def get_monitoring_email(self) -> Result[str, str]:
        """The organization's configured email address."""
        if self._mailbox:
            return Ok(self._mailbox)

        try:
            email = await self._db.fetchval(
                "SELECT email FROM organizations WHERE id = $1",
                self._organization_id,
            )
        except Exception as e:
            return Err(f"Failed to load organization email: {str(e)}")

        if not email:
            return Err("Organization email not configured")

        self._mailbox = str(email)
        return Ok(self._mailbox)

    @beartype
    async def start(
        self,
        quote_id: str,
        on_quote_received: QuoteCallback,
        since: datetime | None = None,
    ) -> Result[str, str]:
        """Start polling for ``quote_id``; returns the monitored address."""
        if self.is_running:
            return Err(f"Email monitoring already active for quote {self._quote_id}")

        mailbox = await self.get_monitoring_email()
        if mailbox.is_err():
            return Err(mailbox.err_value)

        self._quote_id = quote_id
        self._callback = on_quote_received
        self._last_check = since or datetime.now(timezone.utc)
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(
            self._run(self._stop_event), name=f"email-monitor-{quote_id}"
        )
        logger.info(
            "Started email monitoring of %s for quote %s every %.0fs",
            mailbox.ok_value,
            quote_id,
            self._poll_interval,
        )
        return Ok(mailbox.ok_value)

    @beartype
    async def stop(self) -> None:
        """Stop polling and wait for the loop to finish."""
        if self._stop_event is not None:
            self._stop_event.set()

        task = self._task
        self._task = None
        if task is not None:
            await task
            logger.info("Email monitoring stopped for quote %s", self._quote_id)

    @beartype
    async def poll_once(self) -> Result[list[InsurerQuoteResponse], str]:
        """Deliver responses stored or received since the previous poll."""
        if self._quote_id is None or self._callback is None:
            return Err("Email monitoring has not been started")

        since = self._last_check or datetime.now(timezone.utc)
        poll_started = datetime.now(timezone.utc)
        delivered: list[InsurerQuoteResponse] = []

        try:
            rows = await self._db.fetch(
                """
                SELECT insurer_name, premium_quoted, terms_conditions, exclusions,
                       coverage_limits, document_url, response_date, created_at
                FROM insurer_responses
                WHERE quote_id = $1 AND created_at > $2
                ORDER BY created_at ASC
                """,
                self._quote_id,
                since,
            )
        except Exception as e:
            return Err(f"Failed to check insurer responses: {str(e)}")

        newest = since
        for row in rows:
            delivered.append(InsurerQuoteResponse.from_record(dict(row)))
            newest = max(newest, row["created_at"])

        if self._inbox_client is not None and self._mailbox:
            inbox = await self._inbox_client.check_new_quotes(
                self._quote_id, self._mailbox, since
            )
            if inbox.is_ok():
                delivered.extend(inbox.ok_value)
                newest = max(newest, poll_started)
            else:
                logger.warning("Inbox check failed: %s", inbox.err_value)

        self._last_check = newest
        for response in delivered:
            await self._deliver(self._callback, response)
        return Ok(delivered)

    @beartype
    async def save_insurer_response(
        self,
        quote_id: str,
        response: InsurerQuoteResponse,
        organization_id: str | None = None,
    ) -> Result[str, str]:
        """Persist a parsed insurer response; returns its id."""
        try:
            response_id = await self._db.fetchval(
                """
                INSERT INTO insurer_responses (
                    quote_id, organization_id, insurer_name, premium_quoted,
                    terms_conditions, exclusions, coverage_limits, document_url,
                    response_date
                ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                RETURNING id
                """,
                quote_id,
                organization_id or self._organization_id,
                response.insurer_name,
                response.premium_quoted,
                response.terms_conditions,
                response.exclusions,
                response.coverage_limits,
                response.document_url,
                response.response_date,
            )
        except Exception as e:
            return Err(f"Failed to save insurer response: {str(e)}")

        return Ok(str(response_id))

    async def _run(self, stop_event: asyncio.Event) -> None:
        while not stop_event.is_set():
            result = await self.poll_once()
            if result.is_err():
                logger.warning("Email poll failed: %s", result.err_value)
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self._poll_interval)
            except asyncio.TimeoutError:
                continue

    async def _deliver(
        self, callback: QuoteCallback, response: InsurerQuoteResponse
    ) -> None:
        try:
            outcome: Any = callback(response)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception:
            logger.exception(
                "Quote callback failed for response from %s", response.insurer_name
            )

    async def __aenter__(self) -> "EmailMonitor":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.stop()
