"""Rate normalization.

Every rate the user can enter is reduced to a single effective monthly
rate before the schedule is built:

    effective annual  i_a       ->  (1 + i_a)^(1/12) - 1
    nominal annual    j, m      ->  i_a = (1 + j/m)^m - 1, then as above
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Union

from .config import CAPITALIZATION_FREQUENCIES, MONTHS_PER_YEAR, ONE, ZERO, RateKind
from .errors import InvalidRate


@dataclass(frozen=True)
class EffectiveAnnual:
    value: Decimal


@dataclass(frozen=True)
class NominalAnnual:
    value: Decimal
    capitalization_frequency: int = 12


AnnualRate = Union[EffectiveAnnual, NominalAnnual]


def _check_rate(value: Decimal) -> None:
    if not value.is_finite():
        raise InvalidRate(f"rate must be a finite number, got {value}")
    if value < ZERO:
        raise InvalidRate(f"rate must be >= 0, got {value}")


def capitalization_frequency(spec: Union[str, int]) -> int:
    """Resolve a named frequency ('monthly', 'daily', ...) or a raw count to periods per year."""
    if isinstance(spec, int):
        frequency = spec
    else:
        key = spec.strip().lower().replace("-", "_")
        if key in CAPITALIZATION_FREQUENCIES:
            frequency = CAPITALIZATION_FREQUENCIES[key]
        else:
            try:
                frequency = int(key)
            except ValueError:
                raise InvalidRate(
                    f"Unknown capitalization frequency '{spec}'. "
                    f"Valid values: {', '.join(CAPITALIZATION_FREQUENCIES)}"
                ) from None
    if frequency <= 0:
        raise InvalidRate(f"capitalization frequency must be > 0, got {frequency}")
    return frequency


def nominal_to_effective(nominal: Decimal, frequency: int) -> Decimal:
    """Effective annual rate of a nominal annual rate capitalized *frequency* times a year."""
    _check_rate(nominal)
    if frequency <= 0:
        raise InvalidRate(f"capitalization frequency must be > 0, got {frequency}")
    return (ONE + nominal / Decimal(frequency)) ** frequency - ONE


def effective_to_periodic(annual: Decimal) -> Decimal:
    """Effective monthly rate equivalent to an effective annual rate."""
    _check_rate(annual)
    if annual == ZERO:
        return ZERO
    return (ONE + annual) ** (ONE / Decimal(MONTHS_PER_YEAR)) - ONE


def periodic_to_annual(periodic_rate: Decimal) -> Decimal:
    """Compound a monthly rate over a year."""
    return (ONE + periodic_rate) ** MONTHS_PER_YEAR - ONE


def annual_to_nominal(annual: Decimal, frequency: int = MONTHS_PER_YEAR) -> Decimal:
    """Nominal annual rate that, capitalized *frequency* times, yields *annual*."""
    if frequency <= 0:
        raise InvalidRate(f"capitalization frequency must be > 0, got {frequency}")
    if annual <= -ONE:
        raise InvalidRate(f"annual rate must be > -1, got {annual}")
    return ((ONE + annual) ** (ONE / Decimal(frequency)) - ONE) * Decimal(frequency)


def normalize(rate: AnnualRate) -> Decimal:
    """Return the effective monthly rate for *rate*."""
    if isinstance(rate, EffectiveAnnual):
        return effective_to_periodic(rate.value)
    if isinstance(rate, NominalAnnual):
        return effective_to_periodic(
            nominal_to_effective(rate.value, rate.capitalization_frequency)
        )
    raise InvalidRate(f"Unsupported rate representation: {rate!r}")


def make_rate(kind: RateKind, value: Decimal, frequency: Union[str, int, None] = None) -> AnnualRate:
    """Build the tagged rate from a kind string as entered by the user."""
    if kind == "effective":
        return EffectiveAnnual(value)
    if kind == "nominal":
        return NominalAnnual(value, capitalization_frequency(frequency if frequency is not None else 12))
    raise InvalidRate(f"Unknown rate kind '{kind}'. Valid values: effective, nominal")


def normalize_rate(kind: RateKind, value: Decimal, frequency: Union[str, int, None] = None) -> Decimal:
    """Flat form of :func:`normalize`: ``normalize_rate("nominal", Decimal("0.10"), 12)``."""
    return normalize(make_rate(kind, value, frequency))
