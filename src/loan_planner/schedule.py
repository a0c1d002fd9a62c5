"""French-method schedule generation.

All monetary values use decimal.Decimal at full precision; rounding to
cents is left to the presentation layer.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from dateutil.relativedelta import relativedelta

from .config import CENT, ONE, ZERO, InstallmentKind
from .errors import InvalidRate, InvalidScheduleConfiguration

logger = logging.getLogger(__name__)


def round_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Installment:
    period: int
    kind: InstallmentKind
    opening_balance: Decimal
    fee: Decimal            # principal + interest, zero during total grace
    interest: Decimal
    amortization: Decimal
    closing_balance: Decimal
    balance_insurance: Decimal = ZERO
    property_insurance: Decimal = ZERO
    cash_flow: Decimal = ZERO   # fee + both insurance charges
    due_date: Optional[date] = None


def compute_constant_fee(principal: Decimal, periodic_rate: Decimal, periods: int) -> Decimal:
    """Return the constant French installment.

        C = P * r * (1 + r)^n / ((1 + r)^n - 1)

    Special case: if periodic_rate == 0, C = P / n.
    """
    if periods <= 0:
        raise InvalidScheduleConfiguration("amortizing periods must be > 0")
    if periodic_rate == ZERO:
        return principal / Decimal(periods)
    factor = (ONE + periodic_rate) ** periods
    if factor == ONE:
        # Rate below Decimal resolution: indistinguishable from zero
        return principal / Decimal(periods)
    return principal * periodic_rate * factor / (factor - ONE)


def _validate(net_principal: Decimal, periodic_rate: Decimal, term: int,
              total_grace: int, partial_grace: int) -> None:
    if not periodic_rate.is_finite() or periodic_rate < ZERO:
        raise InvalidRate(f"periodic rate must be a finite number >= 0, got {periodic_rate}")
    if not net_principal.is_finite() or net_principal <= ZERO:
        raise InvalidScheduleConfiguration(f"principal must be > 0, got {net_principal}")
    if term < 1:
        raise InvalidScheduleConfiguration(f"term must be >= 1, got {term}")
    if total_grace < 0 or partial_grace < 0:
        raise InvalidScheduleConfiguration("grace periods must be >= 0")
    if total_grace + partial_grace >= term:
        raise InvalidScheduleConfiguration(
            f"grace periods ({total_grace} total + {partial_grace} partial) "
            f"leave no amortizing period in a {term}-month term"
        )


def generate_schedule(
    net_principal: Decimal,
    periodic_rate: Decimal,
    term: int,
    total_grace: int = 0,
    partial_grace: int = 0,
    start_date: Optional[date] = None,
) -> list[Installment]:
    """Build the month-by-month schedule.

    Periods 1..total_grace capitalize interest, the next partial_grace
    periods pay interest only, and the rest pay the constant installment
    computed from the balance left at the end of the grace phase.
    """
    _validate(net_principal, periodic_rate, term, total_grace, partial_grace)

    grace = total_grace + partial_grace
    amortizing_periods = term - grace

    rows: list[Installment] = []
    balance = net_principal
    constant_fee: Optional[Decimal] = None

    for period in range(1, term + 1):
        opening = balance
        interest = opening * periodic_rate

        if period <= total_grace:
            kind: InstallmentKind = "total_grace"
            fee = ZERO
            amortization = ZERO
            balance = opening + interest
        elif period <= grace:
            kind = "partial_grace"
            fee = interest
            amortization = ZERO
        else:
            kind = "amortizing"
            if constant_fee is None:
                constant_fee = compute_constant_fee(opening, periodic_rate, amortizing_periods)
            fee = constant_fee
            amortization = fee - interest
            balance = opening - amortization

        # Floor residual drift on the final period
        if balance < ZERO:
            balance = ZERO

        rows.append(
            Installment(
                period=period,
                kind=kind,
                opening_balance=opening,
                fee=fee,
                interest=interest,
                amortization=amortization,
                closing_balance=balance,
                cash_flow=fee,
                due_date=start_date + relativedelta(months=period) if start_date else None,
            )
        )

    logger.debug(
        "Generated %d periods (%d total grace, %d partial grace), constant fee %s",
        term, total_grace, partial_grace, constant_fee,
    )
    return rows
