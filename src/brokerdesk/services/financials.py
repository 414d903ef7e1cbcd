# BrokerDesk - Insurance Brokerage Workflow Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Premium, commission and VAT arithmetic."""

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal

from beartype import beartype
from pydantic import Field

from ..models.base import BaseModelConfig

NAIRA_SIGN = "₦"
_CENT = Decimal("0.01")
_SPLIT_TOLERANCE = Decimal("0.01")


@beartype
class FinancialBreakdown(BaseModelConfig):
    """Commission and VAT on a gross premium."""

    gross_premium: Decimal
    net_premium: Decimal
    vat: Decimal
    commission: Decimal
    vat_rate: Decimal
    commission_rate: Decimal = Field(..., ge=Decimal("0"), le=Decimal("100"))


@beartype
def calculate_financials(
    gross_premium: Decimal,
    commission_rate: Decimal = Decimal("10"),
    vat_flag: bool = True,
    vat_rate: Decimal = Decimal("7.5"),
) -> FinancialBreakdown:
    """Commission is taken on the gross; VAT is added on top of it."""
    commission = (gross_premium * commission_rate / 100).quantize(
        _CENT, rounding=ROUND_HALF_UP
    )
    vat = (
        (gross_premium * vat_rate / 100).quantize(_CENT, rounding=ROUND_HALF_UP)
        if vat_flag
        else Decimal("0.00")
    )
    return FinancialBreakdown(
        gross_premium=gross_premium,
        net_premium=gross_premium + vat,
        vat=vat,
        commission=commission,
        vat_rate=vat_rate,
        commission_rate=commission_rate,
    )


@beartype
def validate_splits(
    percentages: Iterable[Decimal | float | int], target_total: Decimal = Decimal("100")
) -> bool:
    """Split percentages must add up to ``target_total`` within a cent."""
    total = sum((Decimal(str(p)) for p in percentages), Decimal("0"))
    return abs(total - target_total) < _SPLIT_TOLERANCE


@beartype
def format_currency(amount: Decimal | float | int, currency: str = "NGN") -> str:
    return f"{currency} {Decimal(str(amount)):,.2f}"


@beartype
def format_naira(amount: Decimal | float | int) -> str:
    return f"{NAIRA_SIGN}{Decimal(str(amount)):,.2f}"
