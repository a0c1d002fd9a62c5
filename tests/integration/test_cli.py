"""Integration tests for the CLI — full pipeline from arguments to displayed plan."""
from decimal import Decimal

import pytest
from click.testing import CliRunner

from loan_planner import cli
from loan_planner.cli import main, run_simulation
from loan_planner.resolver import LoanRequest

BASE_ARGS = [
    "--property-price", "250000",
    "--down-payment", "25000",
    "--rate", "0.095",
    "--duration", "20y",
]


def _invoke(args, input_text="exit\n"):
    runner = CliRunner()
    return runner.invoke(main, args, input=input_text)


class TestRunSimulation:
    def test_returns_simulation(self):
        sim = run_simulation(LoanRequest(
            property_price=Decimal("250000"),
            down_payment=Decimal("25000"),
            rate_value=Decimal("0.095"),
            term_months=240,
            total_grace=3,
        ))
        assert sim is not None
        assert sim.indicators is not None
        assert len(sim.plan.installments) == 240
        assert sim.van == sim.indicators.van

    def test_invalid_request_returns_none(self):
        sim = run_simulation(LoanRequest(
            property_price=Decimal("100"),
            down_payment=Decimal("100"),
            rate_value=Decimal("0.095"),
            term_months=12,
        ))
        assert sim is None


class TestCLIRunner:
    """Smoke tests via Click test runner (non-interactive flag paths)."""

    def test_help(self):
        result = _invoke(["--help"])
        assert result.exit_code == 0
        assert "payment plan" in result.output.lower()

    def test_full_run_via_args(self):
        result = _invoke(BASE_ARGS)
        assert result.exit_code == 0
        assert "Payment Plan" in result.output
        assert "TCEA" in result.output
        assert "Goodbye" in result.output

    def test_nominal_rate_with_grace(self):
        result = _invoke(BASE_ARGS + [
            "--rate-kind", "nominal", "--capitalization", "daily",
            "--total-grace", "2", "--partial-grace", "3", "--currency", "USD",
        ])
        assert result.exit_code == 0
        assert "USD" in result.output

    def test_schedule_action(self):
        result = _invoke(BASE_ARGS + ["--start-date", "2025-01-15"], input_text="schedule\nexit\n")
        assert result.exit_code == 0
        assert "Payment Schedule" in result.output

    def test_indicators_and_params_actions(self):
        result = _invoke(BASE_ARGS, input_text="indicators\nparams\nexit\n")
        assert result.exit_code == 0
        assert "Financial Indicators" in result.output
        assert "Current Parameters" in result.output

    def test_update_action_reruns(self):
        result = _invoke(BASE_ARGS, input_text="update\nterm_months\n10y\nexit\n")
        assert result.exit_code == 0
        assert "120 months" in result.output

    def test_prompts_for_missing_rate(self):
        result = _invoke(
            ["--property-price", "250000", "--down-payment", "25000", "--duration", "240"],
            input_text="0.10\nexit\n",
        )
        assert result.exit_code == 0
        assert "Payment Plan" in result.output

    def test_grace_consuming_term_is_reported(self):
        result = _invoke([
            "--property-price", "250000", "--down-payment", "25000",
            "--rate", "0.095", "--duration", "12", "--total-grace", "12",
        ])
        assert result.exit_code == 0
        assert "Cannot build a schedule" in result.output

    def test_nothing_to_finance(self):
        result = _invoke([
            "--property-price", "250000", "--down-payment", "250000",
            "--rate", "0.095", "--duration", "240",
        ])
        assert result.exit_code == 0
        assert "Parameter error" in result.output

    @pytest.mark.parametrize("duration", ["abc", "0"])
    def test_invalid_duration(self, duration):
        result = _invoke([
            "--property-price", "250000", "--down-payment", "25000",
            "--rate", "0.095", "--duration", duration,
        ])
        assert result.exit_code == 1

    def test_invalid_number(self):
        result = _invoke(["--property-price", "lots"] + BASE_ARGS[2:])
        assert result.exit_code == 1

    def test_fetch_without_series(self, monkeypatch):
        monkeypatch.delenv("LOAN_PLANNER_BCRP_SERIES", raising=False)
        result = _invoke(BASE_ARGS, input_text="fetch\nexit\n")
        assert result.exit_code == 0
        assert "Fetch failed" in result.output

    def test_unknown_action(self):
        result = _invoke(BASE_ARGS, input_text="dance\nexit\n")
        assert result.exit_code == 0
        assert "Unknown action" in result.output

    def test_nan_argument_rejected(self):
        result = _invoke(["--property-price", "nan"] + BASE_ARGS[2:])
        assert result.exit_code == 1
        assert "Invalid value for --property-price" in result.output

    def test_nan_prompt_asks_again(self):
        result = _invoke(
            ["--property-price", "250000", "--down-payment", "25000", "--duration", "240"],
            input_text="nan\n0.10\nexit\n",
        )
        assert result.exit_code == 0
        assert "Invalid number" in result.output
        assert "Payment Plan" in result.output

    def test_fetch_uses_series_option(self, monkeypatch):
        requested = []

        def fake_fetch(series=None):
            requested.append(series)
            return Decimal("0.08")

        monkeypatch.setattr(cli, "fetch_reference_rate", fake_fetch)
        result = _invoke(BASE_ARGS + ["--series", "PN00000XM"], input_text="fetch\ny\nexit\n")
        assert result.exit_code == 0
        assert requested == ["PN00000XM"]
        assert "Applied fetched TEA" in result.output
