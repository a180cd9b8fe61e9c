"""Step configuration for the loan-application and registration wizards.

Field rules are declared in tables (FieldSpec tuples) and the step validators
are derived from them. Fields that only exist for some loan types or
employment statuses are looked up by that tag rather than branched on inline.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Literal, Mapping, Optional, Sequence

from .calculator import LoanQuote, compute_quote, to_decimal
from .config import (
    BUSINESS_TYPES,
    BVN_LENGTH,
    COLLATERAL_TYPES,
    CURRENCY_SYMBOL,
    EMPLOYMENT_STATUSES,
    MIN_LOAN_AMOUNT,
    MIN_PASSWORD_LENGTH,
    PAYDAY_DURATIONS,
    TERM_DURATIONS,
    ZERO,
)
from .exceptions import InvalidInput
from .rates import COLLATERAL, PAYDAY, SMALL_BUSINESS, LoanRates
from .wizard import Step, Submitter, Wizard

logger = logging.getLogger(__name__)

FieldKind = Literal["text", "number", "choice", "digits", "date"]

Quoter = Callable[[Decimal, int, str], LoanQuote]

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@dataclass(frozen=True)
class FieldSpec:
    name: str
    label: str
    required: bool = False
    kind: FieldKind = "text"
    choices: frozenset[str] = frozenset()
    length: Optional[int] = None  # exact length, digits fields only


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def _as_decimal(value: Any) -> Optional[Decimal]:
    if isinstance(value, str):
        value = value.strip().replace(",", "")
    try:
        return to_decimal(value, "value")
    except InvalidInput:
        return None


def _as_int(value: Any) -> Optional[int]:
    number = _as_decimal(value)
    if number is None or number != number.to_integral_value():
        return None
    return int(number)


def _check_value(spec: FieldSpec, value: Any) -> Optional[str]:
    if spec.kind == "number":
        number = _as_decimal(value)
        if number is None:
            return f"{spec.label} must be a number"
        if number < ZERO:
            return f"{spec.label} cannot be negative"
    elif spec.kind == "choice":
        if not isinstance(value, str) or value not in spec.choices:
            return f"{spec.label} must be one of: {', '.join(sorted(spec.choices))}"
    elif spec.kind == "digits":
        text = str(value).strip()
        if not text.isdigit():
            return f"{spec.label} must contain digits only"
        if spec.length is not None and len(text) != spec.length:
            return f"{spec.label} must be {spec.length} digits"
    elif spec.kind == "date":
        if isinstance(value, date):
            return None
        try:
            date.fromisoformat(str(value).strip())
        except ValueError:
            return f"{spec.label} must be a date (YYYY-MM-DD)"
    return None


def check_fields(values: Mapping[str, Any], specs: Sequence[FieldSpec]) -> list[str]:
    """Return the reasons *values* break *specs*; blank optional fields are skipped."""
    reasons: list[str] = []
    for spec in specs:
        value = values.get(spec.name)
        if _is_blank(value):
            if spec.required:
                reasons.append(f"{spec.label} is required")
            continue
        problem = _check_value(spec, value)
        if problem:
            reasons.append(problem)
    return reasons


# ──────────────────────────────────────────────────────────────────────────────
# Loan application
# ──────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class LoanProduct:
    loan_type: str
    label: str
    durations: tuple[int, ...]
    # Record key holding the product-specific extra fields, if any
    details_key: Optional[str] = None
    detail_fields: tuple[FieldSpec, ...] = ()


LOAN_PRODUCTS: dict[str, LoanProduct] = {
    SMALL_BUSINESS: LoanProduct(
        loan_type=SMALL_BUSINESS,
        label="Small Business",
        durations=TERM_DURATIONS,
        details_key="business_details",
        detail_fields=(
            FieldSpec("name", "Business name"),
            FieldSpec("type", "Business type", kind="choice", choices=BUSINESS_TYPES),
            FieldSpec("revenue", "Monthly revenue", kind="number"),
            FieldSpec("years", "Years in business", kind="number"),
            FieldSpec("description", "Business description"),
        ),
    ),
    PAYDAY: LoanProduct(
        loan_type=PAYDAY,
        label="Payday Loan",
        durations=PAYDAY_DURATIONS,
    ),
    COLLATERAL: LoanProduct(
        loan_type=COLLATERAL,
        label="Collateral Loan",
        durations=TERM_DURATIONS,
        details_key="collateral_details",
        detail_fields=(
            FieldSpec("type", "Collateral type", kind="choice", choices=COLLATERAL_TYPES),
            FieldSpec("value", "Estimated value", kind="number"),
            FieldSpec("description", "Collateral description"),
        ),
    ),
}

LOAN_DETAIL_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("loan_type", "Loan type", required=True, kind="choice",
              choices=frozenset(LOAN_PRODUCTS)),
    FieldSpec("amount_requested", "Loan amount", required=True, kind="number"),
    FieldSpec("loan_duration", "Loan duration", required=True, kind="number"),
    FieldSpec("purpose", "Loan purpose", required=True),
)


def validate_loan_details(record: Mapping[str, Any], rates: LoanRates) -> list[str]:
    """Amount, duration and purpose for the chosen loan product."""
    reasons = check_fields(record, LOAN_DETAIL_FIELDS)
    if reasons:
        return reasons

    product = LOAN_PRODUCTS[record["loan_type"]]
    amount = _as_decimal(record["amount_requested"])

    if amount < MIN_LOAN_AMOUNT:
        reasons.append(f"Minimum loan amount is {CURRENCY_SYMBOL}{MIN_LOAN_AMOUNT:,}")
    try:
        max_amount = rates.max_amount_for(product.loan_type)
    except InvalidInput as exc:
        reasons.append(exc.message)
    else:
        if amount > max_amount:
            reasons.append(
                f"Maximum amount for {product.label.lower()} loan is "
                f"{CURRENCY_SYMBOL}{max_amount:,}"
            )

    duration = _as_int(record["loan_duration"])
    if duration not in product.durations:
        allowed = ", ".join(str(d) for d in product.durations)
        reasons.append(f"Loan duration for {product.label.lower()} must be one of {allowed} months")
    return reasons


def validate_additional_info(record: Mapping[str, Any]) -> list[str]:
    product = LOAN_PRODUCTS.get(record.get("loan_type", ""))
    if product is None or product.details_key is None:
        return []
    details = record.get(product.details_key) or {}
    if not isinstance(details, Mapping):
        return [f"{product.details_key} must be a set of fields"]
    return check_fields(details, product.detail_fields)


def quote_is_stale(record: Mapping[str, Any]) -> bool:
    """True when the attached quote no longer matches the loan details."""
    quote = record.get("quote")
    if quote is None:
        return False
    return (
        _as_decimal(record.get("amount_requested")) != quote.principal
        or _as_int(record.get("loan_duration")) != quote.term_months
        or record.get("quoted_loan_type", record.get("loan_type")) != record.get("loan_type")
    )


def validate_review(record: Mapping[str, Any]) -> list[str]:
    reasons: list[str] = []
    if quote_is_stale(record):
        reasons.append("Loan details changed since the quote; go back to Loan Details to recalculate")
    if record.get("terms_accepted") is not True:
        reasons.append("You must agree to the Terms and Conditions and Privacy Policy")
    return reasons


def _normalise_numbers(values: Mapping[str, Any], specs: Sequence[FieldSpec]) -> dict[str, Any]:
    normalised = dict(values)
    for spec in specs:
        if spec.kind != "number" or _is_blank(normalised.get(spec.name)):
            continue
        number = _as_decimal(normalised[spec.name])
        if number is not None:
            normalised[spec.name] = number
    return normalised


def normalise_loan_application(record: Mapping[str, Any]) -> dict[str, Any]:
    """Copy of *record* with numeric fields parsed ("1,500,000" -> Decimal)."""
    normalised = _normalise_numbers(record, LOAN_DETAIL_FIELDS)
    duration = _as_int(normalised.get("loan_duration"))
    if duration is not None:
        normalised["loan_duration"] = duration
    product = LOAN_PRODUCTS.get(normalised.get("loan_type", ""))
    if product is not None and product.details_key is not None:
        details = normalised.get(product.details_key)
        if isinstance(details, Mapping):
            normalised[product.details_key] = _normalise_numbers(details, product.detail_fields)
    return normalised


def _normalised_submitter(
    submitter: Submitter, normalise: Callable[[Mapping[str, Any]], dict[str, Any]]
) -> Submitter:
    def submit(record: dict[str, Any]) -> Any:
        return submitter(normalise(record))

    return submit


def make_quote_hook(
    rates: LoanRates, quoter: Optional[Quoter] = None
) -> Callable[[Mapping[str, Any]], dict[str, Any]]:
    """Completion hook for the loan-details step: attach a LoanQuote as record["quote"].

    Without a *quoter* the quote is computed locally from the published rate.
    """

    def attach_quote(record: Mapping[str, Any]) -> dict[str, Any]:
        loan_type = record["loan_type"]
        amount = _as_decimal(record["amount_requested"])
        duration = _as_int(record["loan_duration"])
        if quoter is None:
            quote = compute_quote(amount, rates.rate_for(loan_type), duration)
        else:
            quote = quoter(amount, duration, loan_type)
        logger.debug(
            "quoted %s %s over %d months: %s/month",
            loan_type, amount, duration, quote.monthly_payment,
        )
        return {"quote": quote, "quoted_loan_type": loan_type}

    return attach_quote


def loan_application_steps(rates: LoanRates, quoter: Optional[Quoter] = None) -> list[Step]:
    return [
        Step(
            name="loan_details",
            validate=lambda record: validate_loan_details(record, rates),
            on_complete=make_quote_hook(rates, quoter),
        ),
        Step(name="additional_info", validate=validate_additional_info),
        Step(name="review", validate=validate_review),
    ]


def build_loan_application_wizard(
    rates_lookup: Callable[[], LoanRates],
    submitter: Submitter,
    quoter: Optional[Quoter] = None,
    record: Optional[Mapping[str, Any]] = None,
) -> Wizard:
    """Fetch the current rate card and return a three-step loan-application wizard.

    A failing *rates_lookup* propagates (ExternalCallFailed for the API client).
    """
    rates = rates_lookup()
    initial: dict[str, Any] = {"loan_type": SMALL_BUSINESS}
    initial.update(record or {})
    return Wizard(
        loan_application_steps(rates, quoter),
        _normalised_submitter(submitter, normalise_loan_application),
        record=initial,
    )


# ──────────────────────────────────────────────────────────────────────────────
# Registration
# ──────────────────────────────────────────────────────────────────────────────

CREDENTIAL_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("first_name", "First name", required=True),
    FieldSpec("last_name", "Last name", required=True),
    FieldSpec("email", "Email address", required=True),
    FieldSpec("phone", "Phone number", required=True),
    FieldSpec("password", "Password", required=True),
    FieldSpec("confirm_password", "Password confirmation", required=True),
)

PERSONAL_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("date_of_birth", "Date of birth", required=True, kind="date"),
    FieldSpec("address", "Address", required=True),
    FieldSpec("city", "City", required=True),
    FieldSpec("state", "State", required=True),
    FieldSpec("bvn", "BVN", kind="digits", length=BVN_LENGTH),
)

BANKING_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("bank_account_number", "Bank account number", kind="digits"),
    FieldSpec("bank_name", "Bank name"),
    FieldSpec("account_name", "Account name"),
    FieldSpec("employment_status", "Employment status", required=True, kind="choice",
              choices=EMPLOYMENT_STATUSES),
)

# Extra fields shown for particular employment statuses
EMPLOYMENT_FIELDS: dict[str, tuple[FieldSpec, ...]] = {
    "employed": (
        FieldSpec("employer_name", "Employer name"),
        FieldSpec("job_title", "Job title"),
        FieldSpec("monthly_income", "Monthly income", kind="number"),
        FieldSpec("employment_duration", "Employment duration", kind="number"),
    ),
}


def validate_credentials(record: Mapping[str, Any]) -> list[str]:
    reasons = check_fields(record, CREDENTIAL_FIELDS)
    if reasons:
        return reasons
    if not _EMAIL_RE.match(str(record["email"]).strip()):
        reasons.append("Email address is not valid")
    if record["password"] != record["confirm_password"]:
        reasons.append("Passwords do not match")
    if len(str(record["password"])) < MIN_PASSWORD_LENGTH:
        reasons.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    return reasons


def validate_personal_details(record: Mapping[str, Any]) -> list[str]:
    return check_fields(record, PERSONAL_FIELDS)


def validate_banking_employment(record: Mapping[str, Any]) -> list[str]:
    reasons = check_fields(record, BANKING_FIELDS)
    extra = EMPLOYMENT_FIELDS.get(record.get("employment_status", ""), ())
    return reasons + check_fields(record, extra)


def normalise_registration(record: Mapping[str, Any]) -> dict[str, Any]:
    extra = EMPLOYMENT_FIELDS.get(record.get("employment_status", ""), ())
    return _normalise_numbers(record, extra)


def registration_steps() -> list[Step]:
    return [
        Step(name="credentials", validate=validate_credentials),
        Step(name="personal_details", validate=validate_personal_details),
        Step(name="banking_employment", validate=validate_banking_employment),
    ]


def build_registration_wizard(
    submitter: Submitter, record: Optional[Mapping[str, Any]] = None
) -> Wizard:
    return Wizard(
        registration_steps(),
        _normalised_submitter(submitter, normalise_registration),
        record=record,
    )
