"""Financial indicators: TEA, TCEA, VAN and TIR.

Rates are returned as Decimal fractions (0.10 for 10%) except TIR, which
is reported as a percentage (10.0 for 10%).
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence

from .config import (
    MONTHS_PER_YEAR, ONE, TIR_INITIAL_GUESS, TIR_MAX_ITERATIONS, TIR_TOLERANCE, ZERO,
)
from .errors import InvalidRate, InvalidScheduleConfiguration, TIRNonConvergent
from .rates import periodic_to_annual
from .schedule import Installment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FinancialIndicators:
    tea: Decimal               # effective annual rate
    tcea: Decimal              # annualized all-in cost rate
    total_cost_ratio: Decimal  # total cost / principal - 1, over the whole term
    trea: Decimal              # lender's effective annual rate
    van: Decimal               # net present value at the discount rate
    tir: Decimal               # internal rate of return, percentage


def _check_principal(principal: Decimal) -> None:
    if not principal.is_finite() or principal <= ZERO:
        raise InvalidScheduleConfiguration(f"principal must be > 0, got {principal}")


def _check_activation_fee(activation_fee: Decimal) -> None:
    if not activation_fee.is_finite() or activation_fee < ZERO:
        raise InvalidScheduleConfiguration(f"activation_fee must be >= 0, got {activation_fee}")


def _check_discount_rate(discount_rate: Decimal) -> None:
    if not discount_rate.is_finite() or discount_rate < ZERO:
        raise InvalidRate(f"discount rate must be a finite number >= 0, got {discount_rate}")


def check_indicator_inputs(discount_rate: Decimal, activation_fee: Decimal) -> None:
    """Validate the charges the indicators depend on, before any schedule is built."""
    _check_discount_rate(discount_rate)
    _check_activation_fee(activation_fee)


def compute_tea(periodic_rate: Decimal) -> Decimal:
    return periodic_to_annual(periodic_rate)


def compute_total_cost_ratio(
    principal: Decimal,
    installments: Sequence[Installment],
    activation_fee: Decimal = ZERO,
) -> Decimal:
    """Ungrossed cost ratio: (sum of cash flows + activation fee) / principal - 1."""
    _check_principal(principal)
    _check_activation_fee(activation_fee)
    total_cost = sum((row.cash_flow for row in installments), ZERO) + activation_fee
    return total_cost / principal - ONE


def compute_tcea(
    principal: Decimal,
    installments: Sequence[Installment],
    activation_fee: Decimal = ZERO,
) -> Decimal:
    """Annualize the total cost ratio over the plan's length.

        TCEA = (1 + ratio)^(12 / term) - 1
    """
    if not installments:
        raise InvalidScheduleConfiguration("cannot compute TCEA of an empty schedule")
    ratio = compute_total_cost_ratio(principal, installments, activation_fee)
    growth = ONE + ratio
    if growth <= ZERO:
        # Total cost is nil: nothing was paid back
        return -ONE
    return growth ** (Decimal(MONTHS_PER_YEAR) / Decimal(len(installments))) - ONE


def compute_van(
    principal: Decimal,
    cash_flows: Sequence[Decimal],
    discount_rate: Decimal,
) -> Decimal:
    """VAN = -P + sum_t cf_t / (1 + d/12)^t, t = 1..n."""
    _check_discount_rate(discount_rate)
    monthly_factor = ONE + discount_rate / Decimal(MONTHS_PER_YEAR)
    van = -principal
    for t, cf in enumerate(cash_flows, start=1):
        van += cf / monthly_factor ** t
    return van


def _npv_and_derivative(principal: float, cash_flows: Sequence[float], rate: float) -> tuple[float, float]:
    # Cash flow t is discounted over t/12 years at the annual rate
    npv = -principal
    dnpv = 0.0
    base = 1 + rate
    for t, cf in enumerate(cash_flows, start=1):
        years = t / MONTHS_PER_YEAR
        npv += cf * base ** -years
        dnpv -= years * cf * base ** (-years - 1)
    return npv, dnpv


def compute_tir(
    principal: Decimal,
    cash_flows: Sequence[Decimal],
    guess: float = TIR_INITIAL_GUESS,
    strict: bool = False,
) -> Decimal:
    """Solve -P + sum_t cf_t (1 + r)^(-t/12) = 0 for r by Newton-Raphson.

    Returns r * 100. Stops once two iterates differ by less than
    TIR_TOLERANCE. After TIR_MAX_ITERATIONS the last iterate is returned,
    or TIRNonConvergent is raised when *strict* is set.

    Raises TIRNonConvergent if the derivative vanishes or an iterate
    leaves the domain r > -1.
    """
    P = float(principal)
    flows = [float(cf) for cf in cash_flows]
    r = guess

    for iteration in range(1, TIR_MAX_ITERATIONS + 1):
        if r <= -1:
            raise TIRNonConvergent(f"TIR iterate {r:.6f} left the domain r > -1")
        try:
            npv, dnpv = _npv_and_derivative(P, flows, r)
        except (OverflowError, ZeroDivisionError) as exc:
            raise TIRNonConvergent(f"TIR evaluation overflowed at r={r:.6f}") from exc
        if dnpv == 0 or not math.isfinite(npv) or not math.isfinite(dnpv):
            raise TIRNonConvergent(f"NPV derivative vanished at r={r:.6f}")

        r_next = r - npv / dnpv
        logger.debug("TIR iteration %d: r=%.10f npv=%.6f", iteration, r_next, npv)
        if not math.isfinite(r_next):
            raise TIRNonConvergent("TIR iterate is not finite")
        if abs(r_next - r) < TIR_TOLERANCE:
            return Decimal(str(r_next * 100))
        r = r_next

    if strict:
        raise TIRNonConvergent(f"TIR did not converge in {TIR_MAX_ITERATIONS} iterations")
    logger.warning(
        "TIR did not converge in %d iterations; returning last iterate %.6f",
        TIR_MAX_ITERATIONS, r,
    )
    return Decimal(str(r * 100))


def compute_indicators(
    principal: Decimal,
    periodic_rate: Decimal,
    installments: Sequence[Installment],
    discount_rate: Decimal,
    activation_fee: Decimal = ZERO,
    strict: bool = False,
) -> FinancialIndicators:
    """Derive all indicators from a finished (insured) schedule."""
    _check_principal(principal)
    check_indicator_inputs(discount_rate, activation_fee)

    cash_flows = [row.cash_flow for row in installments]
    tea = compute_tea(periodic_rate)
    return FinancialIndicators(
        tea=tea,
        tcea=compute_tcea(principal, installments, activation_fee),
        total_cost_ratio=compute_total_cost_ratio(principal, installments, activation_fee),
        trea=tea,
        van=compute_van(principal, cash_flows, discount_rate),
        tir=compute_tir(principal, cash_flows, strict=strict),
    )
