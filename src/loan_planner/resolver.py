"""Request resolution: user-level loan inputs -> engine LoanTerms.

Resolution order:
1. financed_amount = property_price - down_payment - bonus.
2. The rate is tagged as effective or nominal (with its capitalization).
3. Each optional charge falls back to the configured default if not user-supplied.
4. Currency defaults to PEN and is a display label only.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional

from .config import (
    DEFAULT_ACTIVATION_FEE, DEFAULT_BALANCE_INSURANCE_RATE, DEFAULT_CAPITALIZATION,
    DEFAULT_CURRENCY, DEFAULT_DISCOUNT_RATE, DEFAULT_PROPERTY_INSURANCE_RATE,
    MAX_GRACE_MONTHS, MIN_TERM_MONTHS, MONTHS_PER_YEAR, SUPPORTED_CURRENCIES, ZERO, RateKind,
)
from .engine import LoanTerms
from .errors import InvalidScheduleConfiguration
from .rates import make_rate


@dataclass
class LoanRequest:
    """Raw user-supplied values.  None means 'not provided, use the default'."""
    # Mandatory
    property_price: Decimal
    down_payment: Decimal
    rate_value: Decimal
    term_months: int
    # Rate representation
    rate_kind: RateKind = "effective"
    capitalization: str = DEFAULT_CAPITALIZATION
    # Optional
    bonus: Decimal = ZERO
    total_grace: int = 0
    partial_grace: int = 0
    balance_insurance_rate: Optional[Decimal] = None
    property_insurance_rate: Optional[Decimal] = None
    activation_fee: Optional[Decimal] = None
    discount_rate: Optional[Decimal] = None
    currency: Optional[str] = None
    start_date: Optional[date] = None


@dataclass(frozen=True)
class ResolvedLoan:
    terms: LoanTerms
    property_price: Decimal
    down_payment: Decimal
    bonus: Decimal
    financed_amount: Decimal
    down_payment_ratio: Decimal
    currency: str
    # Provenance: 'user' or 'default' for each optional charge
    sources: dict[str, str] = field(default_factory=dict)


def parse_duration(raw: str) -> int:
    """Parse a term given in months ('240') or years ('20y')."""
    value = raw.strip().lower()
    try:
        if value.endswith("y"):
            months = int(value[:-1]) * MONTHS_PER_YEAR
        else:
            months = int(value)
    except ValueError:
        raise InvalidScheduleConfiguration(
            f"Invalid duration '{raw}'. Use months (e.g. 240) or years (e.g. 20y)."
        ) from None
    if months < MIN_TERM_MONTHS:
        raise InvalidScheduleConfiguration(f"duration must be at least {MIN_TERM_MONTHS} month(s)")
    return months


def resolve(request: LoanRequest) -> ResolvedLoan:
    """Resolve all parameters and return engine-ready terms."""
    sources: dict[str, str] = {}

    # --- Step 1: amounts ---
    for name in ("property_price", "down_payment", "bonus"):
        amount = getattr(request, name)
        if not amount.is_finite():
            raise InvalidScheduleConfiguration(f"{name} must be a finite number, got {amount}")
        if amount < ZERO:
            raise InvalidScheduleConfiguration(f"{name} must be >= 0")
    if request.property_price <= ZERO:
        raise InvalidScheduleConfiguration("property_price must be > 0")

    financed_amount = request.property_price - request.down_payment - request.bonus
    if financed_amount <= ZERO:
        raise InvalidScheduleConfiguration(
            f"Down payment ({request.down_payment:,.2f}) plus bonus ({request.bonus:,.2f}) "
            f"cover the whole property price ({request.property_price:,.2f}); nothing to finance."
        )

    # --- Step 2: grace limits ---
    for name in ("total_grace", "partial_grace"):
        months = getattr(request, name)
        if months > MAX_GRACE_MONTHS:
            raise InvalidScheduleConfiguration(
                f"{name} cannot exceed {MAX_GRACE_MONTHS} months (got {months})"
            )

    # --- Step 3: rate ---
    rate = make_rate(request.rate_kind, request.rate_value, request.capitalization)

    # --- Step 4: optional charges ---
    def _resolve(user_val, default_val, name: str):
        if user_val is not None:
            sources[name] = "user"
            return user_val
        sources[name] = "default"
        return default_val

    balance_insurance_rate = _resolve(
        request.balance_insurance_rate, DEFAULT_BALANCE_INSURANCE_RATE, "balance_insurance_rate"
    )
    property_insurance_rate = _resolve(
        request.property_insurance_rate, DEFAULT_PROPERTY_INSURANCE_RATE, "property_insurance_rate"
    )
    activation_fee = _resolve(request.activation_fee, DEFAULT_ACTIVATION_FEE, "activation_fee")
    discount_rate = _resolve(request.discount_rate, DEFAULT_DISCOUNT_RATE, "discount_rate")

    # --- Step 5: currency ---
    currency = _resolve(
        request.currency.upper() if request.currency else None, DEFAULT_CURRENCY, "currency"
    )
    if currency not in SUPPORTED_CURRENCIES:
        raise InvalidScheduleConfiguration(
            f"Unsupported currency '{currency}'. Valid values: {', '.join(sorted(SUPPORTED_CURRENCIES))}"
        )

    terms = LoanTerms(
        principal=financed_amount,
        rate=rate,
        term=request.term_months,
        property_value=request.property_price,
        total_grace=request.total_grace,
        partial_grace=request.partial_grace,
        balance_insurance_rate=balance_insurance_rate,
        property_insurance_rate=property_insurance_rate,
        activation_fee=activation_fee,
        discount_rate=discount_rate,
        start_date=request.start_date,
    )

    return ResolvedLoan(
        terms=terms,
        property_price=request.property_price,
        down_payment=request.down_payment,
        bonus=request.bonus,
        financed_amount=financed_amount,
        down_payment_ratio=request.down_payment / request.property_price,
        currency=currency,
        sources=sources,
    )
