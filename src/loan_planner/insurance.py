"""Insurance overlay: adds per-period insurance charges and the all-in cash flow."""
from __future__ import annotations

from dataclasses import replace
from decimal import Decimal
from typing import Iterable

from .config import ZERO
from .errors import InvalidRate, InvalidScheduleConfiguration
from .schedule import Installment


def apply_insurance(
    installments: Iterable[Installment],
    balance_insurance_rate: Decimal,
    property_insurance_rate: Decimal,
    property_value: Decimal,
) -> list[Installment]:
    """Return new installments with insurance and cash flow populated.

    balance_insurance  = closing_balance * balance_insurance_rate
    property_insurance = property_value * property_insurance_rate (same every period)
    cash_flow          = fee + balance_insurance + property_insurance
    """
    for name, rate in (
        ("balance_insurance_rate", balance_insurance_rate),
        ("property_insurance_rate", property_insurance_rate),
    ):
        if not rate.is_finite() or rate < ZERO:
            raise InvalidRate(f"{name} must be a finite number >= 0, got {rate}")
    if not property_value.is_finite() or property_value < ZERO:
        raise InvalidScheduleConfiguration(f"property_value must be >= 0, got {property_value}")

    property_insurance = property_value * property_insurance_rate

    rows: list[Installment] = []
    for row in installments:
        balance_insurance = row.closing_balance * balance_insurance_rate
        rows.append(
            replace(
                row,
                balance_insurance=balance_insurance,
                property_insurance=property_insurance,
                cash_flow=row.fee + balance_insurance + property_insurance,
            )
        )
    return rows
