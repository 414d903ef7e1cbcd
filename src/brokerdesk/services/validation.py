# BrokerDesk - Insurance Brokerage Workflow Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Data integrity checks and self-healing for quotes and clients."""

import asyncio
from datetime import datetime, timezone

from beartype import beartype

from ..core.cache import Cache
from ..core.database import Database
from ..core.logging_utils import get_logger
from ..core.result_types import Err, Ok, Result
from ..models.quote import WorkflowStage
from ..models.validation import FixReport, TableValidationResult, ValidationReport
from .workflow.transitions import LEGACY_STAGE_ALIASES

logger = get_logger(__name__)

VALID_STAGES = [stage.value for stage in WorkflowStage]


def _affected_rows(status: str) -> int:
    """Row count from an asyncpg command tag such as ``UPDATE 3``."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (ValueError, AttributeError):
        return 0


class DatabaseValidator:
    """Find and repair quotes and clients the workflow cannot handle."""

    def __init__(self, db: Database, cache: Cache | None = None) -> None:
        """Initialize validator with dependency validation."""
        if not db or not hasattr(db, "execute"):
            raise ValueError("Database connection required and must be active")

        self._db = db
        self._cache = cache

    @beartype
    async def validate_quotes_table(self) -> TableValidationResult:
        orphaned_records: list[str] = []
        type_issues: list[str] = []
        errors: list[str] = []

        try:
            orphaned = await self._db.fetchval(
                "SELECT COUNT(*) FROM quotes WHERE client_id IS NULL"
            )
            if orphaned:
                orphaned_records.append(
                    f"Found {orphaned} quotes without client references"
                )

            invalid = await self._db.fetchval(
                """
                SELECT COUNT(*) FROM quotes
                WHERE workflow_stage IS NULL
                   OR NOT (workflow_stage = ANY($1::text[]))
                """,
                VALID_STAGES,
            )
            if invalid:
                type_issues.append(
                    f"Found {invalid} quotes with invalid workflow stages"
                )
        except Exception as e:
            logger.error("Quote table validation failed: %s", e)
            errors.append(f"Quote validation failed: {str(e)}")

        return TableValidationResult(
            table="quotes",
            orphaned_records=orphaned_records,
            type_issues=type_issues,
            errors=errors,
        )

    @beartype
    async def validate_clients_table(self) -> TableValidationResult:
        missing_columns: list[str] = []
        errors: list[str] = []

        try:
            incomplete = await self._db.fetchval(
                """
                SELECT COUNT(*) FROM clients
                WHERE name IS NULL OR TRIM(name) = '' OR client_code IS NULL
                """
            )
            if incomplete:
                missing_columns.append(
                    f"Found {incomplete} clients with missing required fields"
                )
        except Exception as e:
            logger.error("Client table validation failed: %s", e)
            errors.append(f"Client validation failed: {str(e)}")

        return TableValidationResult(
            table="clients", missing_columns=missing_columns, errors=errors
        )

    @beartype
    async def run_validation(self) -> ValidationReport:
        quotes, clients = await asyncio.gather(
            self.validate_quotes_table(), self.validate_clients_table()
        )
        report = ValidationReport(
            quotes=quotes, clients=clients, validated_at=datetime.now(timezone.utc)
        )
        if report.has_issues:
            logger.warning(
                "Data validation found %s issues: %s",
                report.total_issues,
                "; ".join(report.all_issues()),
            )
        return report

    @beartype
    async def fix_orphaned_quotes(self) -> Result[int, str]:
        """Link quotes without a client to a same-named client.

        Names are compared case-insensitively and only within the quote's
        organization.
        """
        try:
            orphans = await self._db.fetch(
                """
                SELECT id, client_name, organization_id FROM quotes
                WHERE client_id IS NULL AND client_name IS NOT NULL
                """
            )
        except Exception as e:
            return Err(f"Failed to load orphaned quotes: {str(e)}")

        linked = 0
        for quote in orphans:
            try:
                client_id = await self._db.fetchval(
                    """
                    SELECT id FROM clients
                    WHERE LOWER(name) = LOWER($1) AND organization_id = $2
                    ORDER BY created_at
                    LIMIT 1
                    """,
                    quote["client_name"],
                    quote["organization_id"],
                )
                if client_id is None:
                    continue
                await self._db.execute(
                    "UPDATE quotes SET client_id = $2, updated_at = NOW() WHERE id = $1",
                    quote["id"],
                    client_id,
                )
            except Exception as e:
                logger.warning("Could not link quote %s to a client: %s", quote["id"], e)
                continue

            linked += 1
            await self._invalidate(str(quote["id"]))

        logger.info("Linked %s orphaned quotes to clients", linked)
        return Ok(linked)

    @beartype
    async def fix_invalid_workflow_stages(self) -> Result[int, str]:
        """Map legacy stage aliases forward; reset anything else to draft."""
        fixed = 0
        try:
            for alias, stage in LEGACY_STAGE_ALIASES.items():
                status = await self._db.execute(
                    """
                    UPDATE quotes SET workflow_stage = $2, updated_at = NOW()
                    WHERE workflow_stage = $1
                    """,
                    alias,
                    stage.value,
                )
                fixed += _affected_rows(status)

            status = await self._db.execute(
                """
                UPDATE quotes SET workflow_stage = $2, updated_at = NOW()
                WHERE workflow_stage IS NULL
                   OR NOT (workflow_stage = ANY($1::text[]))
                """,
                VALID_STAGES,
                WorkflowStage.DRAFT.value,
            )
            fixed += _affected_rows(status)
        except Exception as e:
            return Err(f"Failed to fix workflow stages: {str(e)}")

        if fixed and self._cache is not None:
            await self._cache.clear_pattern("quote:workflow:*")
        logger.info("Fixed %s quotes with invalid workflow stages", fixed)
        return Ok(fixed)

    @beartype
    async def fix_issues(self) -> Result[FixReport, str]:
        """Repair what can be repaired, then validate again."""
        linked, stages = await asyncio.gather(
            self.fix_orphaned_quotes(), self.fix_invalid_workflow_stages()
        )
        if linked.is_err():
            return Err(linked.err_value)
        if stages.is_err():
            return Err(stages.err_value)

        return Ok(
            FixReport(
                orphaned_quotes_linked=linked.ok_value,
                workflow_stages_fixed=stages.ok_value,
                validation=await self.run_validation(),
            )
        )

    async def _invalidate(self, quote_id: str) -> None:
        if self._cache is not None:
            await self._cache.delete(f"quote:workflow:{quote_id}")
