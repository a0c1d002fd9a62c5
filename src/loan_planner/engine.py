"""Loan engine entry point: normalize -> schedule -> insurance -> indicators."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from .config import DEFAULT_DISCOUNT_RATE, ZERO
from .indicators import FinancialIndicators, check_indicator_inputs, compute_indicators
from .insurance import apply_insurance
from .rates import AnnualRate, normalize
from .schedule import Installment, generate_schedule


@dataclass(frozen=True)
class LoanTerms:
    principal: Decimal          # net financed amount (after down payment and bonus)
    rate: AnnualRate
    term: int                   # months
    property_value: Decimal = ZERO
    total_grace: int = 0
    partial_grace: int = 0
    balance_insurance_rate: Decimal = ZERO
    property_insurance_rate: Decimal = ZERO
    activation_fee: Decimal = ZERO
    discount_rate: Decimal = DEFAULT_DISCOUNT_RATE
    start_date: Optional[date] = None


@dataclass(frozen=True)
class PaymentPlan:
    installments: tuple[Installment, ...]
    constant_fee: Decimal
    total_interest: Decimal
    total_insurance: Decimal
    total_paid: Decimal         # sum of cash flows


@dataclass(frozen=True)
class LoanResult:
    periodic_rate: Decimal
    plan: PaymentPlan
    indicators: FinancialIndicators


def _summarize(installments: list[Installment]) -> PaymentPlan:
    return PaymentPlan(
        installments=tuple(installments),
        constant_fee=installments[-1].fee,
        total_interest=sum((row.interest for row in installments), ZERO),
        total_insurance=sum(
            (row.balance_insurance + row.property_insurance for row in installments), ZERO
        ),
        total_paid=sum((row.cash_flow for row in installments), ZERO),
    )


def build_payment_plan(terms: LoanTerms) -> tuple[Decimal, PaymentPlan]:
    """Return the periodic rate and the insured payment plan for *terms*."""
    periodic_rate = normalize(terms.rate)
    installments = generate_schedule(
        terms.principal,
        periodic_rate,
        terms.term,
        terms.total_grace,
        terms.partial_grace,
        start_date=terms.start_date,
    )
    installments = apply_insurance(
        installments,
        terms.balance_insurance_rate,
        terms.property_insurance_rate,
        terms.property_value,
    )
    return periodic_rate, _summarize(installments)


def calculate(terms: LoanTerms, strict: bool = False) -> LoanResult:
    """Run the whole engine.

    Raises InvalidRate, InvalidScheduleConfiguration or TIRNonConvergent.
    """
    check_indicator_inputs(terms.discount_rate, terms.activation_fee)
    periodic_rate, plan = build_payment_plan(terms)
    indicators = compute_indicators(
        terms.principal,
        periodic_rate,
        plan.installments,
        terms.discount_rate,
        terms.activation_fee,
        strict=strict,
    )
    return LoanResult(periodic_rate=periodic_rate, plan=plan, indicators=indicators)
