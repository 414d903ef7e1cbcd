# BrokerDesk - Insurance Brokerage Workflow Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Quote audit trail."""

from typing import Any

from beartype import beartype

from ..core.database import Database
from ..core.logging_utils import get_logger

logger = get_logger(__name__)


class QuoteAuditLogger:
    """Record workflow actions taken on quotes."""

    def __init__(self, db: Database) -> None:
        """Initialize audit logger with dependency validation."""
        if not db or not hasattr(db, "execute"):
            raise ValueError("Database connection required and must be active")

        self._db = db

    @beartype
    async def log_quote_action(
        self,
        quote_id: str,
        organization_id: str | None,
        stage: str,
        action: str,
        user_id: str | None = None,
        details: dict[str, Any] | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> bool:
        """Insert an audit row.

        Audit writes never fail the operation being audited; a failed insert
        is logged and reported as ``False``.

        Args:
            quote_id: Quote the action was taken on
            organization_id: Owning organization
            stage: Workflow stage the quote is in after the action
            action: What happened (e.g. 'workflow_transition', 'resync')
            user_id: Internal user who triggered it, if any
            details: Free-form context stored as JSON
            ip_address: Client IP address
            user_agent: Client user agent, truncated to 255 characters
        """
        try:
            await self._db.execute(
                """
                INSERT INTO quote_audit_trail (
                    quote_id, organization_id, stage, action, user_id,
                    details, ip_address, user_agent, created_at
                ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, NOW())
                """,
                quote_id,
                organization_id,
                stage,
                action,
                user_id,
                details or {},
                ip_address or "unknown",
                (user_agent or "system")[:255],
            )
        except Exception as e:
            logger.warning("Failed to write audit entry for quote %s: %s", quote_id, e)
            return False
        return True

    @beartype
    async def log_workflow_stage(
        self,
        quote_id: str,
        organization_id: str | None,
        stage: str,
        action: str,
        details: dict[str, Any] | None = None,
        user_id: str | None = None,
    ) -> bool:
        return await self.log_quote_action(
            quote_id=quote_id,
            organization_id=organization_id,
            stage=stage,
            action=action,
            user_id=user_id,
            details=details,
        )
