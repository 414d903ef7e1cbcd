# BrokerDesk - Insurance Brokerage Workflow Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Data integrity report models."""

from datetime import datetime

from beartype import beartype
from pydantic import ConfigDict, Field, computed_field

from .base import BaseModelConfig


@beartype
class _ReportModel(BaseModelConfig):
    """Reports accept their own dumps back, computed keys included."""

    model_config = ConfigDict(extra="ignore")


@beartype
class TableValidationResult(_ReportModel):
    """Integrity findings for a single table."""

    table: str
    missing_columns: list[str] = Field(default_factory=list)
    type_issues: list[str] = Field(default_factory=list)
    orphaned_records: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def issue_count(self) -> int:
        return (
            len(self.missing_columns)
            + len(self.type_issues)
            + len(self.orphaned_records)
        )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_valid(self) -> bool:
        return self.issue_count == 0 and not self.errors

    @beartype
    def all_issues(self) -> list[str]:
        return [*self.missing_columns, *self.type_issues, *self.orphaned_records]


@beartype
class ValidationReport(_ReportModel):
    """Combined integrity report for quotes and clients."""

    quotes: TableValidationResult
    clients: TableValidationResult
    validated_at: datetime

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_issues(self) -> int:
        return self.quotes.issue_count + self.clients.issue_count

    @computed_field  # type: ignore[prop-decorator]
    @property
    def has_issues(self) -> bool:
        return self.total_issues > 0

    @beartype
    def all_issues(self) -> list[str]:
        return [*self.quotes.all_issues(), *self.clients.all_issues()]


@beartype
class FixReport(BaseModelConfig):
    """What the self-healing pass repaired."""

    orphaned_quotes_linked: int = Field(default=0, ge=0)
    workflow_stages_fixed: int = Field(default=0, ge=0)
    validation: ValidationReport
