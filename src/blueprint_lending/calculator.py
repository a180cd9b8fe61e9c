"""Loan quote calculation.

All monetary values use decimal.Decimal; floats are converted via str().
Rounding: ROUND_HALF_UP to whole currency units for final outputs,
full precision for all intermediate steps.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import (
    MAX_EMAX,
    MIN_EMIN,
    ROUND_DOWN,
    ROUND_HALF_UP,
    Decimal,
    DecimalException,
    InvalidOperation,
    localcontext,
)
from typing import Any, Mapping, Union

from .config import CALC_PRECISION, HUNDRED, MONTHS_PER_YEAR, UNIT, ZERO
from .exceptions import InvalidInput

Number = Union[Decimal, int, float, str]


@dataclass(frozen=True)
class LoanQuote:
    # Inputs echoed back
    principal: Decimal
    annual_rate_percent: Decimal
    term_months: int
    # Outputs
    monthly_payment: Decimal
    total_interest: Decimal
    total_payment: Decimal
    final_payment: Decimal         # last instalment, absorbs any rounding remainder

    def to_payload(self) -> dict[str, Any]:
        """Render the quote in the backend calculator's response shape."""
        return {
            "monthlyPayment": self.monthly_payment,
            "totalInterest": self.total_interest,
            "totalPayment": self.total_payment,
            "interestRate": self.annual_rate_percent,
            "loanAmount": self.principal,
            "loanDuration": self.term_months,
        }


@dataclass(frozen=True)
class RepaymentRow:
    period: int
    opening_balance: Decimal
    installment: Decimal
    principal_component: Decimal
    interest_component: Decimal
    closing_balance: Decimal


def to_decimal(value: Number, field: str) -> Decimal:
    """Coerce *value* to a finite Decimal, raising InvalidInput otherwise."""
    if isinstance(value, bool):
        raise InvalidInput(field, "must be a number")
    try:
        if isinstance(value, Decimal):
            result = value
        elif isinstance(value, float):
            result = Decimal(str(value))
        elif isinstance(value, (int, str)):
            result = Decimal(value)
        else:
            raise InvalidInput(field, f"must be a number, got {type(value).__name__}")
    except InvalidOperation as exc:
        raise InvalidInput(field, f"'{value}' is not a number") from exc
    if not result.is_finite():
        raise InvalidInput(field, "must be finite")
    return result


def _check_term(term_months: Any) -> int:
    if isinstance(term_months, bool) or not isinstance(term_months, int):
        raise InvalidInput("term_months", "must be a whole number of months")
    if term_months < 1:
        raise InvalidInput("term_months", "must be >= 1")
    return term_months


def _round(value: Decimal, rounding: str = ROUND_HALF_UP) -> Decimal:
    return value.quantize(UNIT, rounding=rounding)


def compute_quote(
    principal: Number,
    annual_rate_percent: Number,
    term_months: int,
) -> LoanQuote:
    """Return the fixed-rate monthly repayment quote for a loan.

    Uses the standard reducing-balance formula:
        M = P * r * (1 + r)^n / ((1 + r)^n - 1),  r = annual% / 100 / 12

    Special case: if the rate is zero, M = P / n.

    The monthly payment is rounded half-up to a whole unit and the totals are
    recomputed from it (total = M * n, interest = total - P). When that would
    not repay exactly the principal-bound total (zero rate, or rounding that
    undershoots the principal) the total is pinned to P and the last
    instalment absorbs the remainder.
    """
    p = to_decimal(principal, "principal")
    rate = to_decimal(annual_rate_percent, "annual_rate_percent")
    n = _check_term(term_months)
    if p <= ZERO:
        raise InvalidInput("principal", "must be > 0")
    if rate < ZERO:
        raise InvalidInput("annual_rate_percent", "must be >= 0")

    try:
        with localcontext() as ctx:
            ctx.prec = CALC_PRECISION
            ctx.Emax = MAX_EMAX
            ctx.Emin = MIN_EMIN
            r = rate / HUNDRED / MONTHS_PER_YEAR
            if r == ZERO:
                exact = p / n
            else:
                factor = (1 + r) ** n
                exact = p * r * factor / (factor - 1)
            monthly = _round(exact)
            total = monthly * n

            if r != ZERO and total >= p:
                return LoanQuote(
                    principal=p,
                    annual_rate_percent=rate,
                    term_months=n,
                    monthly_payment=monthly,
                    total_interest=total - p,
                    total_payment=total,
                    final_payment=monthly,
                )

            final = p - monthly * (n - 1)
            if final < ZERO:
                monthly = _round(exact, ROUND_DOWN)
                final = p - monthly * (n - 1)
    except DecimalException as exc:
        raise InvalidInput("inputs", f"quote out of numeric range: {exc}") from exc

    return LoanQuote(
        principal=p,
        annual_rate_percent=rate,
        term_months=n,
        monthly_payment=monthly,
        total_interest=ZERO,
        total_payment=p,
        final_payment=final,
    )


def quote_from_payload(payload: Mapping[str, Any]) -> LoanQuote:
    """Build a LoanQuote from the backend calculator's response."""
    try:
        principal = to_decimal(payload["loanAmount"], "loanAmount")
        rate = to_decimal(payload["interestRate"], "interestRate")
        duration = to_decimal(payload["loanDuration"], "loanDuration")
        monthly = to_decimal(payload["monthlyPayment"], "monthlyPayment")
        total_interest = to_decimal(payload["totalInterest"], "totalInterest")
        total_payment = to_decimal(payload["totalPayment"], "totalPayment")
    except KeyError as exc:
        raise InvalidInput(str(exc.args[0]), "missing from quote response") from exc
    except TypeError as exc:
        raise InvalidInput("quote", f"malformed quote response: {exc}") from exc

    if duration != duration.to_integral_value():
        raise InvalidInput("loanDuration", f"not a whole number of months: {duration}")
    term = _check_term(int(duration))

    if total_payment == monthly * term:
        final = monthly
    else:
        final = total_payment - monthly * (term - 1)
    return LoanQuote(
        principal=principal,
        annual_rate_percent=rate,
        term_months=term,
        monthly_payment=monthly,
        total_interest=total_interest,
        total_payment=total_payment,
        final_payment=final,
    )


def build_repayment_schedule(quote: LoanQuote) -> list[RepaymentRow]:
    """Build the month-by-month repayment schedule for *quote*.

    Instalments are taken from the quote, so the rows add up to its
    total_payment and total_interest exactly.
    """
    r = quote.annual_rate_percent / HUNDRED / MONTHS_PER_YEAR
    n = quote.term_months

    rows: list[RepaymentRow] = []
    balance = quote.principal

    for period in range(1, n + 1):
        opening = balance
        if period == n:
            # Last period clears the balance; its interest is whatever is left
            # of the final instalment.
            installment = quote.final_payment
            principal_component = opening
        else:
            installment = quote.monthly_payment
            principal_component = installment - _round(opening * r)
            if principal_component > opening:
                principal_component = opening
        interest = installment - principal_component
        closing = opening - principal_component

        rows.append(
            RepaymentRow(
                period=period,
                opening_balance=opening,
                installment=installment,
                principal_component=principal_component,
                interest_component=interest,
                closing_balance=closing,
            )
        )
        balance = closing

    return rows
