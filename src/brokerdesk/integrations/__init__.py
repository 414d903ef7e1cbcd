# BrokerDesk - Insurance Brokerage Workflow Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""External service clients."""

from .email import (
    EmailSender,
    HttpEmailSender,
    HttpInboxClient,
    InboxClient,
    LogOnlyEmailSender,
    OutgoingEmail,
    build_email_sender,
    build_inbox_client,
)

__all__ = [
    "EmailSender",
    "HttpEmailSender",
    "HttpInboxClient",
    "InboxClient",
    "LogOnlyEmailSender",
    "OutgoingEmail",
    "build_email_sender",
    "build_inbox_client",
]
