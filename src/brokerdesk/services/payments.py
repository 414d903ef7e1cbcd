# BrokerDesk - Insurance Brokerage Workflow Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Payment transactions attached to accepted quotes."""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from beartype import beartype

from ..core.config import Settings, get_settings
from ..core.database import Database
from ..core.logging_utils import get_logger
from ..core.result_types import Err, Ok, Result
from ..models.payment import PaymentTransaction
from ..models.quote import PaymentStatus
from .performance_monitor import performance_monitor

logger = get_logger(__name__)


class PaymentTransactionService:
    """Create and track the payment transaction of a quote.

    A quote has at most one live transaction. ``ensure_for_quote`` keeps the
    newest row and removes older duplicates left behind by retries.
    """

    def __init__(self, db: Database, settings: Settings | None = None) -> None:
        """Initialize service with dependency validation."""
        if not db or not hasattr(db, "execute"):
            raise ValueError("Database connection required and must be active")

        self._db = db
        self._settings = settings or get_settings()

    @performance_monitor("ensure_payment_transaction", max_duration_ms=1000)
    @beartype
    async def ensure_for_quote(
        self,
        quote_id: str,
        client_id: str | None = None,
        amount: Decimal | None = None,
        organization_id: str | None = None,
    ) -> Result[PaymentTransaction, str]:
        """Return the quote's transaction, creating a pending one if needed."""
        try:
            existing = await self._db.fetch(
                """
                SELECT * FROM payment_transactions
                WHERE quote_id = $1
                ORDER BY created_at DESC
                """,
                quote_id,
            )
        except Exception as e:
            return Err(f"Failed to check payment transactions: {str(e)}")

        if len(existing) > 1:
            duplicate_ids = [row["id"] for row in existing[1:]]
            try:
                await self._db.execute(
                    "DELETE FROM payment_transactions WHERE id = ANY($1::uuid[])",
                    duplicate_ids,
                )
                logger.warning(
                    "Removed %s duplicate payment transactions for quote %s",
                    len(duplicate_ids),
                    quote_id,
                )
            except Exception as e:
                logger.error(
                    "Failed to clean up duplicate payment transactions for quote %s: %s",
                    quote_id,
                    e,
                )

        if existing:
            return Ok(PaymentTransaction.from_record(dict(existing[0])))

        if not client_id or amount is None or not organization_id:
            try:
                quote = await self._db.fetchrow(
                    "SELECT client_id, premium, organization_id FROM quotes WHERE id = $1",
                    quote_id,
                )
            except Exception as e:
                return Err(f"Failed to load quote for payment transaction: {str(e)}")
            if not quote:
                return Err(f"Quote {quote_id} not found")

            client_id = client_id or _as_str(quote["client_id"])
            organization_id = organization_id or _as_str(quote["organization_id"])
            if amount is None and quote["premium"] is not None:
                amount = Decimal(str(quote["premium"]))

        if not client_id or not organization_id:
            return Err("Missing client ID or organization ID for payment transaction")

        return await self._insert(
            quote_id,
            client_id,
            organization_id,
            amount or Decimal("0"),
            {
                "created_by": "system",
                "auto_created": True,
                "created_at": datetime.now(timezone.utc).isoformat(),
            },
        )

    @beartype
    async def create_for_quote(
        self,
        quote_id: str,
        client_id: str,
        organization_id: str,
        amount: Decimal,
    ) -> Result[PaymentTransaction, str]:
        """Create a transaction from an explicit workflow step."""
        return await self._insert(
            quote_id,
            client_id,
            organization_id,
            amount,
            {"created_by": "workflow", "workflow_created": True},
        )

    @beartype
    async def get_by_quote_id(
        self, quote_id: str
    ) -> Result[PaymentTransaction | None, str]:
        """Newest transaction of a quote, if any."""
        try:
            row = await self._db.fetchrow(
                """
                SELECT * FROM payment_transactions
                WHERE quote_id = $1
                ORDER BY created_at DESC
                LIMIT 1
                """,
                quote_id,
            )
        except Exception as e:
            return Err(f"Failed to fetch payment transaction: {str(e)}")

        return Ok(PaymentTransaction.from_record(dict(row)) if row else None)

    @beartype
    async def update_status(
        self,
        transaction_id: str,
        status: PaymentStatus,
        metadata: dict[str, Any] | None = None,
    ) -> Result[PaymentTransaction, str]:
        """Update status; completing a payment stamps ``paid_at``."""
        try:
            row = await self._db.fetchrow(
                """
                UPDATE payment_transactions
                SET status = $2,
                    metadata = COALESCE($3, metadata),
                    paid_at = CASE WHEN $2 = 'completed' THEN NOW() ELSE paid_at END,
                    updated_at = NOW()
                WHERE id = $1
                RETURNING *
                """,
                transaction_id,
                status.value,
                metadata,
            )
        except Exception as e:
            return Err(f"Failed to update payment transaction: {str(e)}")

        if not row:
            return Err(f"Payment transaction {transaction_id} not found")

        logger.info("Payment transaction %s is now %s", transaction_id, status.value)
        return Ok(PaymentTransaction.from_record(dict(row)))

    async def _insert(
        self,
        quote_id: str,
        client_id: str,
        organization_id: str,
        amount: Decimal,
        metadata: dict[str, Any],
    ) -> Result[PaymentTransaction, str]:
        try:
            row = await self._db.fetchrow(
                """
                INSERT INTO payment_transactions (
                    quote_id, client_id, organization_id, amount, currency,
                    payment_method, status, metadata
                ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
                RETURNING *
                """,
                quote_id,
                client_id,
                organization_id,
                amount,
                self._settings.payment_currency,
                self._settings.payment_default_method,
                PaymentStatus.PENDING.value,
                metadata,
            )
        except Exception as e:
            return Err(f"Failed to create payment transaction: {str(e)}")

        if not row:
            return Err("Payment transaction insert returned no row")

        transaction = PaymentTransaction.from_record(dict(row))
        logger.info(
            "Created payment transaction %s for quote %s", transaction.id, quote_id
        )
        return Ok(transaction)


def _as_str(value: Any) -> str | None:
    return None if value is None else str(value)
