# BrokerDesk - Insurance Brokerage Workflow Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""HTTP clients for the external email service and insurer inbox checker."""

from datetime import datetime
from typing import Any, Protocol, runtime_checkable

import httpx
from attrs import field, frozen
from beartype import beartype
from pydantic import ValidationError

from ..core.config import Settings, get_settings
from ..core.logging_utils import get_logger
from ..core.result_types import Err, Ok, Result
from ..models.insurer import InsurerQuoteResponse

logger = get_logger(__name__)


@frozen
class OutgoingEmail:
    """A single notification email."""

    notification_type: str = field()
    recipients: tuple[str, ...] = field()
    subject: str = field()
    body: str = field()
    priority: str = field(default="medium")
    metadata: dict[str, Any] = field(factory=dict)


@runtime_checkable
class EmailSender(Protocol):
    async def send(self, email: OutgoingEmail) -> Result[None, str]: ...


@runtime_checkable
class InboxClient(Protocol):
    async def check_new_quotes(
        self, quote_id: str, mailbox: str, since: datetime
    ) -> Result[list[InsurerQuoteResponse], str]: ...


class HttpEmailSender:
    """Posts notification emails to the email service."""

    def __init__(
        self,
        url: str,
        token: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url
        self._token = token
        self._timeout = timeout
        self._transport = transport

    @beartype
    async def send(self, email: OutgoingEmail) -> Result[None, str]:
        headers = {"Authorization": f"Bearer {self._token}"} if self._token else {}
        payload = {
            "type": email.notification_type,
            "recipients": list(email.recipients),
            "subject": email.subject,
            "message": email.body,
            "priority": email.priority,
            "metadata": email.metadata,
        }
        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.post(
                    self._url, json=payload, headers=headers, timeout=self._timeout
                )
        except httpx.HTTPError as e:
            return Err(f"Email service unreachable: {str(e)}")

        if response.status_code >= 400:
            return Err(f"Email service rejected message: HTTP {response.status_code}")
        return Ok(None)


class LogOnlyEmailSender:
    """Used when no email service is configured; records what would be sent."""

    @beartype
    async def send(self, email: OutgoingEmail) -> Result[None, str]:
        logger.info(
            "Email service not configured; %s email to %s not sent",
            email.notification_type,
            ", ".join(email.recipients),
        )
        return Ok(None)


class HttpInboxClient:
    """Asks the inbox checker for insurer quote emails received since a time."""

    def __init__(
        self,
        url: str,
        token: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url
        self._token = token
        self._timeout = timeout
        self._transport = transport

    @beartype
    async def check_new_quotes(
        self, quote_id: str, mailbox: str, since: datetime
    ) -> Result[list[InsurerQuoteResponse], str]:
        headers = {"Authorization": f"Bearer {self._token}"} if self._token else {}
        payload = {
            "quoteId": quote_id,
            "email": mailbox,
            "lastCheck": since.isoformat(),
        }
        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.post(
                    self._url, json=payload, headers=headers, timeout=self._timeout
                )
        except httpx.HTTPError as e:
            return Err(f"Inbox checker unreachable: {str(e)}")

        if response.status_code != 200:
            return Err(f"Inbox checker failed: HTTP {response.status_code}")

        try:
            new_quotes = response.json().get("newQuotes") or []
            return Ok([_parse_inbox_quote(item) for item in new_quotes])
        except (ValueError, ValidationError, KeyError) as e:
            return Err(f"Malformed inbox checker response: {str(e)}")


def _parse_inbox_quote(item: dict[str, Any]) -> InsurerQuoteResponse:
    return InsurerQuoteResponse(
        insurer_name=item["insurerName"],
        premium_quoted=item["premiumQuoted"],
        terms_conditions=item.get("termsConditions"),
        exclusions=item.get("exclusions") or [],
        coverage_limits=item.get("coverageLimits") or {},
        document_url=item.get("documentUrl"),
        response_date=item["responseDate"],
    )


@beartype
def build_email_sender(settings: Settings | None = None) -> EmailSender:
    """Email sender for the configured environment."""
    settings = settings or get_settings()
    if settings.email_service_url:
        return HttpEmailSender(
            settings.email_service_url,
            settings.email_service_token,
            settings.http_timeout_seconds,
        )
    return LogOnlyEmailSender()


@beartype
def build_inbox_client(settings: Settings | None = None) -> InboxClient | None:
    settings = settings or get_settings()
    if not settings.inbox_check_url:
        return None
    return HttpInboxClient(
        settings.inbox_check_url,
        settings.email_service_token,
        settings.http_timeout_seconds,
    )
