"""Console front-end — click entry point for quotes, the rate card and loan applications.

Commands:
  quote   Compute a repayment quote locally (optionally with its schedule).
  rates   Show the loan rate card, static or fetched from the backend.
  apply   Walk through the three-step loan application interactively.
"""
from __future__ import annotations

import logging
import sys
from decimal import Decimal
from typing import Any, Mapping, Optional

import click
from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from .api import ApiClient, to_api_payload
from .calculator import LoanQuote, build_repayment_schedule, compute_quote
from .config import CURRENCY_SYMBOL
from .exceptions import ExternalCallFailed, InvalidInput, InvalidTransition, ValidationFailed
from .flows import LOAN_PRODUCTS, build_loan_application_wizard
from .rates import DEFAULT_RATES, LOAN_TYPES, SMALL_BUSINESS, LoanRates
from .wizard import Wizard

console = Console()
err_console = Console(stderr=True, style="bold red")

# ──────────────────────────────────────────────────────────────────────────────
# Formatting helpers
# ──────────────────────────────────────────────────────────────────────────────

def _fmt_money(value: Decimal) -> str:
    return f"{CURRENCY_SYMBOL}{value:,.0f}"


def _fmt_pct(value: Decimal) -> str:
    return f"{value}%"


def _label(loan_type: str) -> str:
    product = LOAN_PRODUCTS.get(loan_type)
    return product.label if product else loan_type.replace("_", " ")


# ──────────────────────────────────────────────────────────────────────────────
# Result display
# ──────────────────────────────────────────────────────────────────────────────

def display_quote(quote: LoanQuote) -> None:
    t = Table(title="Loan Summary", box=box.SIMPLE, show_header=False, padding=(0, 2))
    t.add_column("Field", style="cyan")
    t.add_column("Value", justify="right")

    t.add_row("Loan amount", _fmt_money(quote.principal))
    t.add_row("Interest rate", _fmt_pct(quote.annual_rate_percent))
    t.add_row("Loan duration", f"{quote.term_months} months")
    t.add_row("Monthly payment", _fmt_money(quote.monthly_payment))
    if quote.final_payment != quote.monthly_payment:
        t.add_row("  └ Final payment", _fmt_money(quote.final_payment))
    t.add_row("Total interest", _fmt_money(quote.total_interest))
    t.add_row("Total payment", _fmt_money(quote.total_payment))
    console.print(t)


def display_schedule(quote: LoanQuote) -> None:
    t = Table(title="Repayment Schedule", box=box.MINIMAL_HEAVY_HEAD)
    for col in ("Month", "Opening Bal.", "Instalment", "Principal", "Interest", "Closing Bal."):
        t.add_column(col, justify="right")

    for row in build_repayment_schedule(quote):
        t.add_row(
            str(row.period),
            _fmt_money(row.opening_balance),
            _fmt_money(row.installment),
            _fmt_money(row.principal_component),
            _fmt_money(row.interest_component),
            _fmt_money(row.closing_balance),
        )
    console.print(t)


def display_rates(rates: LoanRates) -> None:
    t = Table(title="Loan Products", box=box.SIMPLE, show_header=True, padding=(0, 1))
    t.add_column("Loan type", style="cyan")
    t.add_column("Interest", justify="right")
    t.add_column("Max amount", justify="right")
    t.add_column("Durations (months)", justify="right", style="dim")

    for loan_type in rates.loan_types:
        product = LOAN_PRODUCTS.get(loan_type)
        durations = ", ".join(str(d) for d in product.durations) if product else ""
        t.add_row(
            _label(loan_type),
            _fmt_pct(rates.rate_for(loan_type)),
            _fmt_money(rates.max_amount_for(loan_type)),
            durations,
        )
    console.print(t)


# ──────────────────────────────────────────────────────────────────────────────
# Interactive loan application
# ──────────────────────────────────────────────────────────────────────────────

_STEP_TITLES = {
    "loan_details": "Loan Details",
    "additional_info": "Additional Info",
    "review": "Review & Submit",
}

_BACK = "back"


def _step_prompts(step_name: str, record: Mapping[str, Any]) -> list[tuple[str, str]]:
    """(record field, prompt label) pairs for a loan-application step."""
    if step_name == "loan_details":
        return [
            ("loan_type", f"Loan type ({', '.join(LOAN_TYPES)}; Enter keeps {record.get('loan_type') or 'none'})"),
            ("amount_requested", "Loan amount"),
            ("loan_duration", "Loan duration (months)"),
            ("purpose", "Loan purpose"),
        ]
    if step_name == "additional_info":
        product = LOAN_PRODUCTS.get(record.get("loan_type", ""))
        if product is None or product.details_key is None:
            return []
        return [
            (f"{product.details_key}.{spec.name}", f"{spec.label} (optional)")
            for spec in product.detail_fields
        ]
    return []


def _collect_step(wizard: Wizard) -> bool:
    """Prompt for the current step's fields. False means the user typed 'back'."""
    step = wizard.current_step
    if step.name == "review":
        quote = wizard.record.get("quote")
        if quote is not None:
            display_quote(quote)
        raw = console.input("[bold]Accept the Terms and Conditions? (y/n/back): [/bold]").strip().lower()
        if raw == _BACK:
            return False
        wizard.update_field("terms_accepted", raw in ("y", "yes"))
        return True

    for name, label in _step_prompts(step.name, wizard.record):
        raw = console.input(f"[bold]{label}:[/bold] ").strip()
        if raw.lower() == _BACK:
            return False
        if raw:
            wizard.update_field(name, raw)
    return True


def run_application(wizard: Wizard) -> Optional[Any]:
    """Drive *wizard* from the console until it is submitted. Returns the submission result."""
    while wizard.status == "active":
        index = wizard.current_step_index
        title = _STEP_TITLES.get(wizard.current_step.name, wizard.current_step.name)
        console.print()
        console.print(Panel(f"[bold]Step {index + 1} of {len(wizard.steps)}[/bold] — {title}", expand=False))

        if not _collect_step(wizard):
            wizard.retreat()
            continue

        try:
            if wizard.on_last_step:
                return wizard.submit()
            wizard.advance()
        except ValidationFailed as exc:
            for reason in exc.reasons:
                err_console.print(f"  {reason}")
        except (ExternalCallFailed, InvalidInput) as exc:
            err_console.print(f"  {exc}")
    return None


def _dry_run_submit(record: dict[str, Any]) -> str:
    console.print("[dim]No backend configured — application payload:[/dim]")
    console.print_json(data=to_api_payload(record))
    return "dry-run"


# ──────────────────────────────────────────────────────────────────────────────
# Click entry point
# ──────────────────────────────────────────────────────────────────────────────

def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Show debug logging.")
def main(verbose: bool) -> None:
    """Blueprint lending — loan quotes and applications."""
    _configure_logging(verbose)


@main.command()
@click.argument("amount", type=str)
@click.option("--duration", "-d", type=int, required=True, help="Loan duration in months")
@click.option("--rate", type=str, default=None, help="Annual interest rate in percent (overrides the loan type's rate)")
@click.option("--loan-type", type=click.Choice(list(LOAN_TYPES)), default=SMALL_BUSINESS, show_default=True)
@click.option("--schedule", is_flag=True, help="Also print the month-by-month repayment schedule")
def quote(amount: str, duration: int, rate: Optional[str], loan_type: str, schedule: bool) -> None:
    """Compute the monthly repayment for AMOUNT."""
    annual_rate = rate if rate is not None else DEFAULT_RATES.rate_for(loan_type)
    try:
        result = compute_quote(amount.replace(",", ""), annual_rate, duration)
    except InvalidInput as exc:
        err_console.print(f"Invalid input — {exc}")
        sys.exit(1)

    display_quote(result)
    if schedule:
        display_schedule(result)


@main.command()
@click.option("--online", is_flag=True, help="Fetch the current rate card from the backend")
def rates(online: bool) -> None:
    """Show interest rates and maximum amounts per loan type."""
    card = DEFAULT_RATES
    if online:
        try:
            card = ApiClient().fetch_rates()
        except ExternalCallFailed as exc:
            err_console.print(f"Failed to load loan information: {exc.message}")
            sys.exit(1)
    display_rates(card)


@main.command()
@click.option("--online", is_flag=True, help="Use the backend for rates, quotes and submission")
def apply(online: bool) -> None:
    """Apply for a loan interactively (type 'back' to return to the previous step)."""
    console.print(Panel("[bold blue]Apply for a Loan[/bold blue]", expand=False))

    if online:
        client = ApiClient()
        rates_lookup, submitter, quoter = client.fetch_rates, client.submit_application, client.fetch_quote
    else:
        rates_lookup, submitter, quoter = (lambda: DEFAULT_RATES), _dry_run_submit, None

    try:
        wizard = build_loan_application_wizard(rates_lookup, submitter, quoter=quoter)
    except ExternalCallFailed as exc:
        err_console.print(f"Failed to load loan information: {exc.message}")
        sys.exit(1)

    try:
        result = run_application(wizard)
    except (KeyboardInterrupt, EOFError):
        wizard.dispose()
        console.print("\nApplication abandoned.")
        return
    except InvalidTransition as exc:
        err_console.print(str(exc))
        sys.exit(1)

    if result is not None:
        console.print(f"[bold green]Loan application submitted successfully![/bold green] Reference: {result}")
