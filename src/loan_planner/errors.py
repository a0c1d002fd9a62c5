"""Exception hierarchy for the loan engine."""


class LoanPlannerError(ValueError):
    """Base exception for all engine errors."""


class InvalidRate(LoanPlannerError):
    """Raised for a negative or non-finite rate, or a non-positive capitalization frequency."""


class InvalidScheduleConfiguration(LoanPlannerError):
    """Raised when the loan terms cannot produce an amortizing schedule."""


class TIRNonConvergent(LoanPlannerError):
    """Raised when the Newton-Raphson TIR solver cannot produce a finite root."""
