"""Application-wide constants and configuration defaults.

All tuneable defaults live here so there is a single place to adjust them.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Literal

# ── Type aliases ──────────────────────────────────────────────────────────────

RateKind = Literal["effective", "nominal"]
InstallmentKind = Literal["total_grace", "partial_grace", "amortizing"]

# ── Calendar ──────────────────────────────────────────────────────────────────

MONTHS_PER_YEAR: int = 12

# Periods per year for each named capitalization frequency (commercial year)
CAPITALIZATION_FREQUENCIES: dict[str, int] = {
    "daily": 360,
    "biweekly": 24,
    "monthly": 12,
    "bimonthly": 6,
    "quarterly": 4,
    "four_monthly": 3,
    "semiannual": 2,
    "annual": 1,
}
DEFAULT_CAPITALIZATION: str = "monthly"

# ── Loan defaults ─────────────────────────────────────────────────────────────

DEFAULT_DISCOUNT_RATE = Decimal("0.10")             # annual, used for VAN
DEFAULT_BALANCE_INSURANCE_RATE = Decimal("0.0005")  # 0.05% of the balance per month
DEFAULT_PROPERTY_INSURANCE_RATE = Decimal("0.0003")  # 0.03% of the property value per month
DEFAULT_ACTIVATION_FEE = Decimal("0")
DEFAULT_CURRENCY: str = "PEN"
SUPPORTED_CURRENCIES: frozenset[str] = frozenset({"PEN", "USD"})

MAX_GRACE_MONTHS: int = 24
MIN_TERM_MONTHS: int = 1

# ── TIR solver ────────────────────────────────────────────────────────────────

TIR_INITIAL_GUESS: float = 0.10
TIR_TOLERANCE: float = 1e-4
TIR_MAX_ITERATIONS: int = 100

# ── Numeric convenience ───────────────────────────────────────────────────────

ZERO = Decimal("0")
ONE = Decimal("1")
CENT = Decimal("0.01")
