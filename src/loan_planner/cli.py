"""Interactive CLI — click entry point + interactive action loop.

Session startup:
  1. Prompt for mandatory fields (property price, down payment, rate, duration).
  2. Run the engine and display the summary.
  3. Enter the interactive action loop.

Action loop:
  - Show the full schedule or the indicators.
  - Update any request field and re-run.
  - Fetch a reference rate online, or exit.
"""
from __future__ import annotations

import sys
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional

import click
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .config import CAPITALIZATION_FREQUENCIES, DEFAULT_CAPITALIZATION, SUPPORTED_CURRENCIES
from .engine import LoanResult, PaymentPlan, build_payment_plan, calculate
from .errors import LoanPlannerError, TIRNonConvergent
from .fetcher import FetchError, fetch_reference_rate
from .indicators import FinancialIndicators, compute_van
from .log import setup_logging
from .resolver import LoanRequest, ResolvedLoan, parse_duration, resolve
from .schedule import round_money

console = Console()
err_console = Console(stderr=True, style="bold red")


@dataclass(frozen=True)
class Simulation:
    resolved: ResolvedLoan
    periodic_rate: Decimal
    plan: PaymentPlan
    van: Decimal
    indicators: Optional[FinancialIndicators]  # None when TIR did not converge


# ──────────────────────────────────────────────────────────────────────────────
# Formatting helpers
# ──────────────────────────────────────────────────────────────────────────────

def _fmt_money(value: Decimal, currency: str) -> str:
    return f"{round_money(value):,.2f} {currency}"


def _fmt_pct(value: Decimal) -> str:
    return f"{float(value) * 100:.4f}%"


def _fmt_months(n: int) -> str:
    years, months = divmod(n, 12)
    if months == 0:
        return f"{n} months ({years} years)"
    return f"{n} months ({years}y {months}m)"


# ──────────────────────────────────────────────────────────────────────────────
# Result display
# ──────────────────────────────────────────────────────────────────────────────

def display_result(sim: Simulation) -> None:
    cur = sim.resolved.currency
    terms = sim.resolved.terms
    plan = sim.plan

    console.print()
    console.print(Panel(
        f"[bold green]Payment Plan[/bold green] — French method, {_fmt_months(terms.term)}",
        expand=False,
    ))

    t = Table(box=box.SIMPLE, show_header=False, padding=(0, 2))
    t.add_column("Field", style="cyan")
    t.add_column("Value", justify="right")

    t.add_row("Property price", _fmt_money(sim.resolved.property_price, cur))
    t.add_row("Down payment", _fmt_money(sim.resolved.down_payment, cur))
    t.add_row("  └ share of price", _fmt_pct(sim.resolved.down_payment_ratio))
    t.add_row("Bonus", _fmt_money(sim.resolved.bonus, cur))
    t.add_row("Financed amount", _fmt_money(sim.resolved.financed_amount, cur))
    t.add_row("Grace (total / partial)", f"{terms.total_grace} / {terms.partial_grace} months")
    t.add_row("Monthly rate (TEM)", _fmt_pct(sim.periodic_rate))
    t.add_row("Constant installment", _fmt_money(plan.constant_fee, cur))
    t.add_row("Total interest", _fmt_money(plan.total_interest, cur))
    t.add_row("Total insurance", _fmt_money(plan.total_insurance, cur))
    t.add_row("Activation fee", _fmt_money(terms.activation_fee, cur))
    t.add_row("Total paid", _fmt_money(plan.total_paid, cur))
    console.print(t)
    display_indicators(sim)


def display_indicators(sim: Simulation) -> None:
    cur = sim.resolved.currency
    t = Table(title="Financial Indicators", box=box.SIMPLE, show_header=False, padding=(0, 2))
    t.add_column("Indicator", style="cyan")
    t.add_column("Value", justify="right")

    ind = sim.indicators
    if ind is not None:
        t.add_row("TEA", _fmt_pct(ind.tea))
        t.add_row("TCEA", _fmt_pct(ind.tcea))
        t.add_row("  └ total cost over term", _fmt_pct(ind.total_cost_ratio))
        t.add_row("TREA", _fmt_pct(ind.trea))
    t.add_row(
        f"VAN (at {_fmt_pct(sim.resolved.terms.discount_rate)})",
        _fmt_money(sim.van, cur),
    )
    if ind is not None:
        t.add_row("TIR", f"{float(ind.tir):.4f}%")
    else:
        t.add_row("TIR", "[yellow]n/a (did not converge)[/yellow]")
    console.print(t)


def display_schedule(sim: Simulation) -> None:
    cur = sim.resolved.currency
    t = Table(title="Payment Schedule", box=box.MINIMAL_HEAVY_HEAD)
    columns = ["Period", "Due", "Opening Bal.", "Fee", "Interest", "Amortization",
               "Closing Bal.", "Life Ins.", "Property Ins.", "Cash Flow"]
    for col in columns:
        t.add_column(col, justify="right")

    for row in sim.plan.installments:
        period = str(row.period) if row.kind == "amortizing" else f"{row.period} (G{row.kind[0].upper()})"
        t.add_row(
            period,
            row.due_date.isoformat() if row.due_date else "",
            _fmt_money(row.opening_balance, cur),
            _fmt_money(row.fee, cur),
            _fmt_money(row.interest, cur),
            _fmt_money(row.amortization, cur),
            _fmt_money(row.closing_balance, cur),
            _fmt_money(row.balance_insurance, cur),
            _fmt_money(row.property_insurance, cur),
            _fmt_money(row.cash_flow, cur),
        )
    console.print(t)


def display_params(request: LoanRequest, resolved: ResolvedLoan) -> None:
    t = Table(title="Current Parameters", box=box.SIMPLE, show_header=True, padding=(0, 2))
    t.add_column("Parameter", style="cyan")
    t.add_column("Value", justify="right")
    t.add_column("Source", style="dim")

    cur = resolved.currency
    terms = resolved.terms
    t.add_row("property_price", _fmt_money(request.property_price, cur))
    t.add_row("down_payment", _fmt_money(request.down_payment, cur))
    t.add_row("bonus", _fmt_money(request.bonus, cur))
    t.add_row("rate_kind", request.rate_kind)
    t.add_row("rate_value", _fmt_pct(request.rate_value))
    if request.rate_kind == "nominal":
        t.add_row("capitalization", request.capitalization)
    t.add_row("term_months", _fmt_months(request.term_months))
    t.add_row("total_grace", str(request.total_grace))
    t.add_row("partial_grace", str(request.partial_grace))
    t.add_row("balance_insurance_rate", _fmt_pct(terms.balance_insurance_rate),
              resolved.sources.get("balance_insurance_rate", ""))
    t.add_row("property_insurance_rate", _fmt_pct(terms.property_insurance_rate),
              resolved.sources.get("property_insurance_rate", ""))
    t.add_row("activation_fee", _fmt_money(terms.activation_fee, cur),
              resolved.sources.get("activation_fee", ""))
    t.add_row("discount_rate", _fmt_pct(terms.discount_rate), resolved.sources.get("discount_rate", ""))
    t.add_row("currency", cur, resolved.sources.get("currency", ""))
    console.print(t)


# ──────────────────────────────────────────────────────────────────────────────
# Input helpers
# ──────────────────────────────────────────────────────────────────────────────

def _parse_decimal(raw: str) -> Decimal:
    value = Decimal(raw.replace(",", ".").replace(" ", ""))
    # NaN and Infinity parse but cannot be compared or amortized
    if not value.is_finite():
        raise InvalidOperation(f"not a finite number: {raw}")
    return value


def _prompt_decimal(prompt: str, *, allow_zero: bool = False) -> Decimal:
    while True:
        raw = console.input(f"[bold]{prompt}[/bold] ").strip()
        try:
            value = _parse_decimal(raw)
        except InvalidOperation:
            err_console.print(f"  Invalid number: '{raw}'")
            continue
        if value < 0 or (value == 0 and not allow_zero):
            err_console.print("  Value must be >= 0." if allow_zero else "  Value must be > 0.")
            continue
        return value


def _prompt_int(prompt: str, *, min_val: int = 0) -> int:
    while True:
        raw = console.input(f"[bold]{prompt}[/bold] ").strip()
        try:
            value = int(raw)
        except ValueError:
            err_console.print(f"  Invalid integer: '{raw}'")
            continue
        if value < min_val:
            err_console.print(f"  Value must be >= {min_val}.")
            continue
        return value


def _prompt_duration() -> int:
    while True:
        raw = console.input("[bold]Duration (months, e.g. 240, or years, e.g. 20y):[/bold] ").strip()
        try:
            return parse_duration(raw)
        except LoanPlannerError as exc:
            err_console.print(f"  {exc}")


def _prompt_choice(prompt: str, choices) -> str:
    options = sorted(choices)
    while True:
        raw = console.input(f"[bold]{prompt} ({' / '.join(options)}):[/bold] ").strip().lower()
        if raw in options:
            return raw
        err_console.print(f"  Enter one of: {', '.join(options)}.")


# ──────────────────────────────────────────────────────────────────────────────
# Simulation runner
# ──────────────────────────────────────────────────────────────────────────────

def run_simulation(request: LoanRequest) -> Optional[Simulation]:
    """Resolve and run the engine. Prints errors and returns None on failure."""
    try:
        resolved = resolve(request)
    except LoanPlannerError as exc:
        err_console.print(f"Parameter error: {exc}")
        return None

    terms = resolved.terms
    try:
        result: LoanResult = calculate(terms)
        sim = Simulation(
            resolved=resolved,
            periodic_rate=result.periodic_rate,
            plan=result.plan,
            van=result.indicators.van,
            indicators=result.indicators,
        )
    except TIRNonConvergent as exc:
        # Schedule and VAN are still meaningful without a TIR
        console.print(Panel(f"[bold yellow]TIR unavailable[/bold yellow]\n{exc}", expand=False))
        periodic_rate, plan = build_payment_plan(terms)
        van = compute_van(terms.principal, [row.cash_flow for row in plan.installments], terms.discount_rate)
        sim = Simulation(resolved=resolved, periodic_rate=periodic_rate, plan=plan, van=van, indicators=None)
    except LoanPlannerError as exc:
        console.print(Panel(f"[bold red]Cannot build a schedule[/bold red]\n{exc}", expand=False))
        return None

    display_result(sim)
    return sim


# ──────────────────────────────────────────────────────────────────────────────
# Online reference rate
# ──────────────────────────────────────────────────────────────────────────────

def _apply_online_rate(request: LoanRequest, series: Optional[str] = None) -> bool:
    console.print("  Fetching latest reference rate…")
    try:
        fetched = fetch_reference_rate(series)
    except FetchError as exc:
        err_console.print(f"  Fetch failed: {exc}")
        return False

    console.print(
        f"  Fetched TEA: [bold]{_fmt_pct(fetched)}[/bold]  "
        f"(current {request.rate_kind} rate: {_fmt_pct(request.rate_value)})"
    )
    confirm = console.input("[bold]Use it as the loan TEA? (y/n): [/bold]").strip().lower()
    if confirm != "y":
        console.print("  Keeping current value.")
        return False
    request.rate_kind = "effective"
    request.rate_value = fetched
    console.print(f"  [green]Applied fetched TEA: {_fmt_pct(fetched)}[/green]")
    return True


# ──────────────────────────────────────────────────────────────────────────────
# Interactive loop
# ──────────────────────────────────────────────────────────────────────────────

_UPDATABLE_FIELDS = {
    "property_price", "down_payment", "bonus", "rate_kind", "rate_value",
    "capitalization", "term_months", "total_grace", "partial_grace",
    "balance_insurance_rate", "property_insurance_rate", "activation_fee",
    "discount_rate", "currency",
}


def interactive_loop(request: LoanRequest, show_schedule: bool = False, series: Optional[str] = None) -> None:
    last: Optional[Simulation] = run_simulation(request)
    if last and show_schedule:
        display_schedule(last)

    while True:
        console.print()
        console.print(
            "[bold]Actions:[/bold] "
            "[cyan]schedule[/cyan] · [cyan]indicators[/cyan] · [cyan]params[/cyan] · "
            "[cyan]update[/cyan] · [cyan]fetch[/cyan] · [cyan]exit[/cyan]"
        )
        action = console.input("[bold]> [/bold]").strip().lower()

        if action in ("exit", "quit", "q"):
            console.print("Goodbye.")
            break

        elif action in ("schedule", "indicators", "params"):
            if last is None:
                err_console.print("No valid simulation yet. Use 'update' to fix the inputs.")
            elif action == "schedule":
                display_schedule(last)
            elif action == "indicators":
                display_indicators(last)
            else:
                display_params(request, last.resolved)

        elif action == "update":
            console.print(f"  Fields: {', '.join(sorted(_UPDATABLE_FIELDS))}")
            field = console.input("[bold]Field to update: [/bold]").strip().lower()
            if field not in _UPDATABLE_FIELDS:
                err_console.print(f"  Unknown field '{field}'.")
                continue
            _apply_update(field, request)
            last = run_simulation(request)

        elif action == "fetch":
            if _apply_online_rate(request, series):
                last = run_simulation(request)

        else:
            err_console.print(f"  Unknown action '{action}'.")


def _apply_update(field: str, request: LoanRequest) -> None:
    try:
        if field == "property_price":
            request.property_price = _prompt_decimal("New property price:")
        elif field == "down_payment":
            request.down_payment = _prompt_decimal("New down payment:", allow_zero=True)
        elif field == "bonus":
            request.bonus = _prompt_decimal("New bonus amount:", allow_zero=True)
        elif field == "rate_kind":
            request.rate_kind = _prompt_choice("Rate kind", ("effective", "nominal"))  # type: ignore[assignment]
        elif field == "rate_value":
            request.rate_value = _prompt_decimal("New annual rate (e.g. 0.10 for 10%):", allow_zero=True)
        elif field == "capitalization":
            request.capitalization = _prompt_choice("Capitalization", CAPITALIZATION_FREQUENCIES)
        elif field == "term_months":
            request.term_months = _prompt_duration()
        elif field == "total_grace":
            request.total_grace = _prompt_int("Total grace months:")
        elif field == "partial_grace":
            request.partial_grace = _prompt_int("Partial grace months:")
        elif field == "balance_insurance_rate":
            request.balance_insurance_rate = _prompt_decimal(
                "Monthly life insurance rate on balance (e.g. 0.0005):", allow_zero=True
            )
        elif field == "property_insurance_rate":
            request.property_insurance_rate = _prompt_decimal(
                "Monthly property insurance rate (e.g. 0.0003):", allow_zero=True
            )
        elif field == "activation_fee":
            request.activation_fee = _prompt_decimal("Activation fee:", allow_zero=True)
        elif field == "discount_rate":
            request.discount_rate = _prompt_decimal("Annual discount rate for VAN (e.g. 0.10):", allow_zero=True)
        elif field == "currency":
            request.currency = _prompt_choice("Currency", (c.lower() for c in SUPPORTED_CURRENCIES)).upper()
    except (KeyboardInterrupt, EOFError):
        console.print("\n  Update cancelled.")


# ──────────────────────────────────────────────────────────────────────────────
# Click entry point
# ──────────────────────────────────────────────────────────────────────────────

@click.command()
@click.option("--property-price", type=str, default=None, help="Property price")
@click.option("--down-payment", type=str, default=None, help="Down payment (cuota inicial)")
@click.option("--bonus", type=str, default=None, help="Housing bonus deducted from the financed amount")
@click.option("--rate", type=str, default=None, help="Annual rate as a fraction (e.g. 0.10 for 10%)")
@click.option("--rate-kind", type=click.Choice(["effective", "nominal"]), default="effective", show_default=True)
@click.option("--capitalization", type=click.Choice(list(CAPITALIZATION_FREQUENCIES)),
              default=DEFAULT_CAPITALIZATION, show_default=True, help="Capitalization of a nominal rate")
@click.option("--duration", type=str, default=None, help="Loan term: months (e.g. 240) or years (e.g. 20y)")
@click.option("--total-grace", type=click.IntRange(min=0), default=0, show_default=True)
@click.option("--partial-grace", type=click.IntRange(min=0), default=0, show_default=True)
@click.option("--life-insurance", type=str, default=None, help="Monthly insurance rate on the outstanding balance")
@click.option("--property-insurance", type=str, default=None, help="Monthly insurance rate on the property value")
@click.option("--activation-fee", type=str, default=None, help="One-time activation fee")
@click.option("--discount-rate", type=str, default=None, help="Annual discount rate (COK) for VAN")
@click.option("--currency", type=click.Choice(sorted(SUPPORTED_CURRENCIES)), default=None)
@click.option("--start-date", type=click.DateTime(formats=["%Y-%m-%d"]), default=None,
              help="Disbursement date; installments fall due monthly after it")
@click.option("--schedule", "show_schedule", is_flag=True, help="Print the full schedule after the summary")
@click.option("--series", type=str, default=None,
              help="BCRP series code for the 'fetch' action (default: $LOAN_PLANNER_BCRP_SERIES)")
@click.option("--log-level", type=str, default="WARNING", show_default=True)
def main(
    property_price: Optional[str],
    down_payment: Optional[str],
    bonus: Optional[str],
    rate: Optional[str],
    rate_kind: str,
    capitalization: str,
    duration: Optional[str],
    total_grace: int,
    partial_grace: int,
    life_insurance: Optional[str],
    property_insurance: Optional[str],
    activation_fee: Optional[str],
    discount_rate: Optional[str],
    currency: Optional[str],
    start_date,
    show_schedule: bool,
    series: Optional[str],
    log_level: str,
) -> None:
    """French-method mortgage payment plan simulator."""
    setup_logging(log_level)
    console.print(Panel("[bold blue]Loan Planner[/bold blue]", expand=False))

    def _parse_opt(s: Optional[str], name: str) -> Optional[Decimal]:
        if s is None:
            return None
        try:
            return _parse_decimal(s)
        except InvalidOperation:
            err_console.print(f"Invalid value for --{name}: '{s}'")
            sys.exit(1)

    pp = _parse_opt(property_price, "property-price")
    if pp is None:
        pp = _prompt_decimal("Property price?")

    dp = _parse_opt(down_payment, "down-payment")
    if dp is None:
        dp = _prompt_decimal("Down payment?", allow_zero=True)

    rv = _parse_opt(rate, "rate")
    if rv is None:
        rv = _prompt_decimal(f"Annual {rate_kind} rate (e.g. 0.10 for 10%)?", allow_zero=True)

    if duration is not None:
        try:
            term_months = parse_duration(duration)
        except LoanPlannerError as exc:
            err_console.print(str(exc))
            sys.exit(1)
    else:
        term_months = _prompt_duration()

    request = LoanRequest(
        property_price=pp,
        down_payment=dp,
        rate_value=rv,
        term_months=term_months,
        rate_kind=rate_kind,  # type: ignore[arg-type]
        capitalization=capitalization,
        bonus=_parse_opt(bonus, "bonus") or Decimal("0"),
        total_grace=total_grace,
        partial_grace=partial_grace,
        balance_insurance_rate=_parse_opt(life_insurance, "life-insurance"),
        property_insurance_rate=_parse_opt(property_insurance, "property-insurance"),
        activation_fee=_parse_opt(activation_fee, "activation-fee"),
        discount_rate=_parse_opt(discount_rate, "discount-rate"),
        currency=currency,
        start_date=start_date.date() if start_date else None,
    )

    try:
        interactive_loop(request, show_schedule=show_schedule, series=series)
    except (KeyboardInterrupt, EOFError):
        console.print("\nSession ended.")
