# BrokerDesk - Insurance Brokerage Workflow Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Insurer response models."""

from collections.abc import Mapping
from datetime import datetime
from decimal import Decimal
from typing import Any

from beartype import beartype
from pydantic import Field

from .base import BaseModelConfig


@beartype
class InsurerQuoteResponse(BaseModelConfig):
    """A quote returned by an insurer, usually parsed from email."""

    insurer_name: str = Field(..., min_length=1)
    premium_quoted: Decimal = Field(..., ge=Decimal("0"))
    terms_conditions: str | None = None
    exclusions: list[str] = Field(default_factory=list)
    coverage_limits: dict[str, Any] = Field(default_factory=dict)
    document_url: str | None = None
    response_date: datetime

    @classmethod
    def from_record(cls, row: Mapping[str, Any]) -> "InsurerQuoteResponse":
        """Map an ``insurer_responses`` row."""
        return cls(
            insurer_name=row["insurer_name"],
            premium_quoted=Decimal(str(row.get("premium_quoted") or 0)),
            terms_conditions=row.get("terms_conditions"),
            exclusions=list(row.get("exclusions") or []),
            coverage_limits=dict(row.get("coverage_limits") or {}),
            document_url=row.get("document_url"),
            response_date=row.get("response_date") or row["created_at"],
        )
