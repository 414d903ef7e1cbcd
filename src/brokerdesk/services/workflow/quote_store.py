# BrokerDesk - Insurance Brokerage Workflow Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Reads and writes of the workflow fields of a quote."""

from beartype import beartype

from ...core.cache import Cache
from ...core.database import Database
from ...core.logging_utils import get_logger
from ...core.result_types import Err, Ok, Result
from ...models.quote import QuoteSnapshot, WorkflowStateUpdate

logger = get_logger(__name__)

_SNAPSHOT_COLUMNS = """
    q.id, q.organization_id, q.quote_number, q.client_id,
    q.client_name, COALESCE(q.client_email, c.email) AS client_email,
    q.policy_type, q.premium, q.workflow_stage, q.status,
    q.payment_status, q.created_at, q.updated_at
"""


class QuoteWorkflowStore:
    """Persistence of quote stage, status and payment status."""

    def __init__(self, db: Database, cache: Cache) -> None:
        """Initialize store with dependency validation."""
        if not db or not hasattr(db, "execute"):
            raise ValueError("Database connection required and must be active")
        if not cache or not hasattr(cache, "get"):
            raise ValueError("Cache connection required and must be available")

        self._db = db
        self._cache = cache
        self._cache_prefix = "quote:workflow:"
        self._cache_ttl = 300

    @beartype
    def cache_key(self, quote_id: str) -> str:
        return f"{self._cache_prefix}{quote_id}"

    @beartype
    async def get_snapshot(
        self,
        quote_id: str,
        *,
        use_cache: bool = True,
        organization_id: str | None = None,
    ) -> Result[QuoteSnapshot, str]:
        """Load the workflow snapshot of a quote.

        Writers that decide on the snapshot pass ``use_cache=False`` so the
        decision is made against the stored row. With ``organization_id``,
        a quote owned by another organization is reported as not found.
        """
        cache_key = self.cache_key(quote_id)
        if use_cache:
            cached = await self._cache.get(cache_key)
            if cached:
                return _visible(
                    QuoteSnapshot.model_validate(cached), quote_id, organization_id
                )

        try:
            row = await self._db.fetchrow(
                f"""
                SELECT {_SNAPSHOT_COLUMNS}
                FROM quotes q
                LEFT JOIN clients c ON c.id = q.client_id
                WHERE q.id = $1
                """,
                quote_id,
            )
        except Exception as e:
            return Err(f"Failed to load quote {quote_id}: {str(e)}")

        if not row:
            return Err(f"Quote {quote_id} not found")

        snapshot = QuoteSnapshot.from_record(dict(row))
        await self._cache.set(
            cache_key, snapshot.model_dump(mode="json"), self._cache_ttl
        )
        return _visible(snapshot, quote_id, organization_id)

    @beartype
    async def update_workflow_state(
        self, quote_id: str, update: WorkflowStateUpdate
    ) -> Result[QuoteSnapshot, str]:
        """Persist stage, status and (when given) payment status."""
        payment_status = update.payment_status.value if update.payment_status else None
        try:
            row = await self._db.fetchrow(
                f"""
                WITH updated AS (
                    UPDATE quotes
                    SET workflow_stage = $2,
                        status = $3,
                        payment_status = COALESCE($4, payment_status),
                        updated_at = NOW()
                    WHERE id = $1
                    RETURNING *
                )
                SELECT {_SNAPSHOT_COLUMNS}
                FROM updated q
                LEFT JOIN clients c ON c.id = q.client_id
                """,
                quote_id,
                update.workflow_stage.value,
                update.status.value,
                payment_status,
            )
        except Exception as e:
            return Err(f"Failed to update workflow state: {str(e)}")
        finally:
            await self._cache.delete(self.cache_key(quote_id))

        if not row:
            return Err(f"Quote {quote_id} not found")

        logger.info(
            "Quote %s moved to %s (status=%s, payment=%s)",
            quote_id,
            update.workflow_stage.value,
            update.status.value,
            payment_status or "unchanged",
        )
        return Ok(QuoteSnapshot.from_record(dict(row)))

    @beartype
    async def invalidate(self, quote_id: str) -> None:
        await self._cache.delete(self.cache_key(quote_id))


def _visible(
    snapshot: QuoteSnapshot, quote_id: str, organization_id: str | None
) -> Result[QuoteSnapshot, str]:
    if organization_id is not None and snapshot.organization_id != organization_id:
        logger.warning(
            "Quote %s requested from organization %s it does not belong to",
            quote_id,
            organization_id,
        )
        return Err(f"Quote {quote_id} not found")
    return Ok(snapshot)
