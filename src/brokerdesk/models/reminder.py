# BrokerDesk - Insurance Brokerage Workflow Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Quote follow-up reminder models."""

from collections.abc import Mapping
from datetime import datetime
from enum import Enum
from typing import Any

from beartype import beartype
from pydantic import Field

from .base import BaseModelConfig


class ReminderKind(str, Enum):
    IDLE = "idle"
    NO_INSURER_MATCH = "no_insurer_match"


@beartype
class ReminderCandidate(BaseModelConfig):
    """A quote that may need a follow-up."""

    quote_id: str
    quote_number: str | None = None
    client_name: str | None = None
    workflow_stage: str | None = None
    status: str | None = None
    evaluated_count: int = Field(default=0, ge=0)
    broker_email: str | None = None
    created_at: datetime

    @classmethod
    def from_record(cls, row: Mapping[str, Any]) -> "ReminderCandidate":
        return cls(
            quote_id=str(row["id"]),
            quote_number=row.get("quote_number"),
            client_name=row.get("client_name"),
            workflow_stage=row.get("workflow_stage"),
            status=row.get("status"),
            evaluated_count=int(row.get("evaluated_count") or 0),
            broker_email=row.get("broker_email"),
            created_at=row["created_at"],
        )


@beartype
class ReminderBatch(BaseModelConfig):
    idle_quotes: list[ReminderCandidate] = Field(default_factory=list)
    no_match_quotes: list[ReminderCandidate] = Field(default_factory=list)


@beartype
class ReminderDispatch(BaseModelConfig):
    """Outcome of sending reminders."""

    kind: ReminderKind
    requested: int = Field(default=0, ge=0)
    sent: int = Field(default=0, ge=0)
    failed: list[str] = Field(default_factory=list)
