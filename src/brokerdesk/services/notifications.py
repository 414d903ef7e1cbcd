# BrokerDesk - Insurance Brokerage Workflow Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Notification templates and delivery."""

from collections.abc import Mapping
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any

from attrs import field, frozen
from beartype import beartype

from ..core.logging_utils import get_logger
from ..core.result_types import Err, Ok, Result
from ..integrations.email import EmailSender, OutgoingEmail
from .financials import format_naira

logger = get_logger(__name__)


class NotificationType(str, Enum):
    QUOTE_READY = "quote_ready"
    APPROVAL_REQUIRED = "approval_required"
    POLICY_RENEWAL = "policy_renewal"
    CLAIM_UPDATE = "claim_update"
    PAYMENT_RECEIVED = "payment_received"
    REMITTANCE_READY = "remittance_ready"
    CLIENT_PORTAL_LINK = "client_portal_link"
    CLAIM_PORTAL_LINK = "claim_portal_link"
    QUOTE_REMINDER = "quote_reminder"


class NotificationPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


@frozen
class NotificationTemplate:
    """Subject and body are ``str.format`` templates over the notification data."""

    subject: str = field()
    body: str = field()
    recipient_key: str = field()
    priority: NotificationPriority = field(default=NotificationPriority.MEDIUM)


_TEMPLATES: Mapping[NotificationType, NotificationTemplate] = MappingProxyType(
    {
        NotificationType.QUOTE_READY: NotificationTemplate(
            subject="Quote Ready for Review",
            body=(
                "Dear {client_name}, your quote {quote_number} is ready for review. "
                "Please open your portal to view the insurer offers: {portal_url}"
            ),
            recipient_key="client_email",
        ),
        NotificationType.APPROVAL_REQUIRED: NotificationTemplate(
            subject="Approval Required - High Value Transaction",
            body=(
                "A {workflow_type} transaction requires your approval. "
                "Amount: {amount}. Please review and approve via your dashboard."
            ),
            recipient_key="approver_email",
            priority=NotificationPriority.HIGH,
        ),
        NotificationType.POLICY_RENEWAL: NotificationTemplate(
            subject="Policy Renewal Reminder",
            body=(
                "Your policy {policy_number} expires on {expiry_date}. "
                "Please contact us to renew and avoid coverage gaps."
            ),
            recipient_key="client_email",
            priority=NotificationPriority.HIGH,
        ),
        NotificationType.CLAIM_UPDATE: NotificationTemplate(
            subject="Claim Status Update",
            body=(
                "Your claim {claim_number} status has been updated to {status}. "
                "{additional_info}"
            ),
            recipient_key="client_email",
        ),
        NotificationType.PAYMENT_RECEIVED: NotificationTemplate(
            subject="Payment Confirmation",
            body=(
                "We have received your payment of {amount} for quote {quote_number}. "
                "Your contract is now being prepared."
            ),
            recipient_key="client_email",
        ),
        NotificationType.REMITTANCE_READY: NotificationTemplate(
            subject="Remittance Advice Ready",
            body="Remittance advice {remittance_id} for {amount} is ready for processing.",
            recipient_key="underwriter_email",
            priority=NotificationPriority.HIGH,
        ),
        NotificationType.CLIENT_PORTAL_LINK: NotificationTemplate(
            subject="Your Quote Portal Link",
            body=(
                "Dear {client_name}, use this secure link to review and select your "
                "quote {quote_number}: {portal_url}. The link expires on {expires_at}."
            ),
            recipient_key="client_email",
        ),
        NotificationType.CLAIM_PORTAL_LINK: NotificationTemplate(
            subject="Complete Your Claim Registration",
            body=(
                "Dear {client_name}, please use this secure link to complete your "
                "claim registration: {portal_url}. The link expires on {expires_at}."
            ),
            recipient_key="client_email",
            priority=NotificationPriority.HIGH,
        ),
        NotificationType.QUOTE_REMINDER: NotificationTemplate(
            subject="Quote Follow-up Required",
            body="Quote {quote_number} for {client_name} needs attention: {reason}.",
            recipient_key="broker_email",
        ),
    }
)


@beartype
def get_template(notification_type: NotificationType) -> NotificationTemplate:
    return _TEMPLATES[notification_type]


class _DefaultBlank(dict):  # type: ignore[type-arg]
    def __missing__(self, key: str) -> str:
        return ""


@beartype
def render_notification(
    notification_type: NotificationType, data: Mapping[str, Any]
) -> OutgoingEmail:
    """Fill a template. Decimal ``amount`` values are rendered in naira."""
    template = _TEMPLATES[notification_type]
    values = _DefaultBlank(data)
    if isinstance(data.get("amount"), (Decimal, int, float)):
        values["amount"] = format_naira(data["amount"])

    recipient = data.get(template.recipient_key)
    return OutgoingEmail(
        notification_type=notification_type.value,
        recipients=(recipient,) if recipient else (),
        subject=template.subject.format_map(values),
        body=template.body.format_map(values).strip(),
        priority=template.priority.value,
        metadata={
            k: str(v) for k, v in data.items() if k.endswith("_id") and v is not None
        },
    )


class NotificationService:
    """Renders notifications and hands them to the email sender."""

    def __init__(self, sender: EmailSender) -> None:
        if not sender or not hasattr(sender, "send"):
            raise ValueError("Email sender required")
        self._sender = sender

    @beartype
    async def send(
        self, notification_type: NotificationType, data: Mapping[str, Any]
    ) -> Result[OutgoingEmail, str]:
        email = render_notification(notification_type, data)
        if not email.recipients:
            return Err(
                f"No recipient for {notification_type.value} notification "
                f"({_TEMPLATES[notification_type].recipient_key} missing)"
            )

        result = await self._sender.send(email)
        if result.is_err():
            logger.warning(
                "Failed to send %s notification: %s",
                notification_type.value,
                result.err_value,
            )
            return Err(result.err_value)

        logger.info(
            "Sent %s notification to %s",
            notification_type.value,
            ", ".join(email.recipients),
        )
        return Ok(email)
