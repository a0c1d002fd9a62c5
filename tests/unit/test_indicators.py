"""Unit tests for indicators.py — TEA, TCEA, VAN, TIR."""
from decimal import Decimal

import pytest

from loan_planner import indicators
from loan_planner.errors import InvalidRate, InvalidScheduleConfiguration, TIRNonConvergent
from loan_planner.indicators import (
    compute_indicators,
    compute_tcea,
    compute_tea,
    compute_tir,
    compute_total_cost_ratio,
    compute_van,
)
from loan_planner.insurance import apply_insurance
from loan_planner.rates import EffectiveAnnual, NominalAnnual, annual_to_nominal, normalize
from loan_planner.schedule import generate_schedule

ZERO = Decimal("0")
PRINCIPAL = Decimal("100000")
TEA_10 = normalize(EffectiveAnnual(Decimal("0.10")))
TNA_10 = normalize(NominalAnnual(Decimal("0.10"), 12))


def _flows(schedule):
    return [row.cash_flow for row in schedule]


class TestTEA:
    def test_zero_rate(self):
        assert compute_tea(ZERO) == ZERO

    def test_round_trip(self):
        assert abs(compute_tea(TEA_10) - Decimal("0.10")) < Decimal("1e-15")


class TestTCEA:
    def test_one_year_plan_equals_total_cost_ratio(self):
        schedule = generate_schedule(PRINCIPAL, TEA_10, 12)
        ratio = compute_total_cost_ratio(PRINCIPAL, schedule)
        assert abs(compute_tcea(PRINCIPAL, schedule) - ratio) < Decimal("1e-20")

    def test_annualized_over_two_years(self):
        schedule = generate_schedule(PRINCIPAL, TEA_10, 24)
        ratio = compute_total_cost_ratio(PRINCIPAL, schedule)
        expected = (1 + ratio) ** Decimal("0.5") - 1
        assert abs(compute_tcea(PRINCIPAL, schedule) - expected) < Decimal("1e-20")

    def test_activation_fee_raises_cost(self):
        schedule = generate_schedule(PRINCIPAL, TEA_10, 24)
        assert compute_tcea(PRINCIPAL, schedule, Decimal("500")) > compute_tcea(PRINCIPAL, schedule)

    @pytest.mark.parametrize("fee", [Decimal("-1"), Decimal("NaN"), Decimal("Infinity")])
    def test_invalid_activation_fee(self, fee):
        schedule = generate_schedule(PRINCIPAL, TEA_10, 12)
        with pytest.raises(InvalidScheduleConfiguration, match="activation_fee"):
            compute_total_cost_ratio(PRINCIPAL, schedule, fee)
        with pytest.raises(InvalidScheduleConfiguration, match="activation_fee"):
            compute_tcea(PRINCIPAL, schedule, fee)

    def test_total_cost_ratio(self):
        schedule = generate_schedule(Decimal("1200"), ZERO, 12)
        assert compute_total_cost_ratio(Decimal("1200"), schedule, Decimal("120")) == Decimal("0.1")


class TestVAN:
    def test_zero_discount_is_undiscounted_sum(self):
        flows = [Decimal("60"), Decimal("60")]
        assert compute_van(Decimal("100"), flows, ZERO) == Decimal("20")

    def test_single_flow(self):
        # 1 + 1.2/12 = 1.1 -> 110 / 1.1 = 100
        assert compute_van(Decimal("100"), [Decimal("110")], Decimal("1.2")) == ZERO

    def test_negative_discount(self):
        with pytest.raises(InvalidRate):
            compute_van(PRINCIPAL, [PRINCIPAL], Decimal("-0.1"))


class TestTIR:
    def test_matches_tea_without_insurance(self):
        schedule = generate_schedule(PRINCIPAL, TEA_10, 12)
        tir = compute_tir(PRINCIPAL, _flows(schedule))
        assert abs(tir - Decimal("10")) < Decimal("0.001")

    def test_van_at_tir_is_zero(self):
        schedule = apply_insurance(
            generate_schedule(PRINCIPAL, TNA_10, 36, 2, 1), Decimal("0.0005"), Decimal("0.0003"), Decimal("150000")
        )
        tir = compute_tir(PRINCIPAL, _flows(schedule))
        discount = annual_to_nominal(tir / 100, 12)
        assert abs(compute_van(PRINCIPAL, _flows(schedule), discount)) < Decimal("1")

    def test_vanishing_derivative(self):
        with pytest.raises(TIRNonConvergent, match="derivative"):
            compute_tir(Decimal("1000"), [ZERO])

    def test_iterate_leaves_domain(self):
        with pytest.raises(TIRNonConvergent):
            compute_tir(Decimal("100"), [Decimal("1")])

    def test_iteration_cap_returns_last_iterate(self, monkeypatch):
        monkeypatch.setattr(indicators, "TIR_MAX_ITERATIONS", 1)
        schedule = generate_schedule(PRINCIPAL, TNA_10, 12)
        tir = compute_tir(PRINCIPAL, _flows(schedule))
        assert Decimal("10.4") < tir < Decimal("10.55")

    def test_iteration_cap_strict(self, monkeypatch):
        monkeypatch.setattr(indicators, "TIR_MAX_ITERATIONS", 1)
        schedule = generate_schedule(PRINCIPAL, TNA_10, 12)
        with pytest.raises(TIRNonConvergent, match="did not converge"):
            compute_tir(PRINCIPAL, _flows(schedule), strict=True)


class TestComputeIndicators:
    def test_all_fields(self):
        schedule = apply_insurance(
            generate_schedule(PRINCIPAL, TEA_10, 24), Decimal("0.0005"), Decimal("0.0003"), Decimal("150000")
        )
        result = compute_indicators(PRINCIPAL, TEA_10, schedule, Decimal("0.10"), Decimal("300"))
        assert abs(result.tea - Decimal("0.10")) < Decimal("1e-15")
        assert result.trea == result.tea
        assert result.tcea == compute_tcea(PRINCIPAL, schedule, Decimal("300"))
        assert result.van == compute_van(PRINCIPAL, _flows(schedule), Decimal("0.10"))
        # Insurance makes the borrower's return exceed the bare TEA
        assert result.tir > Decimal("10")

    def test_non_positive_principal(self):
        schedule = generate_schedule(PRINCIPAL, TEA_10, 12)
        with pytest.raises(InvalidScheduleConfiguration):
            compute_indicators(ZERO, TEA_10, schedule, Decimal("0.10"))

    def test_negative_discount_rate(self):
        schedule = generate_schedule(PRINCIPAL, TEA_10, 12)
        with pytest.raises(InvalidRate):
            compute_indicators(PRINCIPAL, TEA_10, schedule, Decimal("-0.10"))
