"""Loan product rate card: interest rates and maximum amounts per loan type.

Rates are annual percentages (e.g. 15.5 means 15.5% per year), matching what
the backend's calculator endpoint publishes.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Mapping

from .calculator import to_decimal
from .config import ZERO
from .exceptions import InvalidInput

SMALL_BUSINESS = "small_business"
PAYDAY = "payday"
COLLATERAL = "collateral"

LOAN_TYPES: tuple[str, ...] = (SMALL_BUSINESS, PAYDAY, COLLATERAL)


@dataclass(frozen=True)
class LoanRates:
    interest_rates: Mapping[str, Decimal] = field(default_factory=dict)
    max_amounts: Mapping[str, Decimal] = field(default_factory=dict)

    def rate_for(self, loan_type: str) -> Decimal:
        """Annual interest rate (percent) for *loan_type*."""
        try:
            return self.interest_rates[loan_type]
        except KeyError:
            raise InvalidInput("loan_type", f"no interest rate published for '{loan_type}'") from None

    def max_amount_for(self, loan_type: str) -> Decimal:
        try:
            return self.max_amounts[loan_type]
        except KeyError:
            raise InvalidInput("loan_type", f"no maximum amount published for '{loan_type}'") from None

    @property
    def loan_types(self) -> list[str]:
        """Loan types with both a rate and a maximum amount, in product order."""
        known = [t for t in LOAN_TYPES if t in self.interest_rates and t in self.max_amounts]
        extra = sorted(
            t for t in self.interest_rates
            if t in self.max_amounts and t not in LOAN_TYPES
        )
        return known + extra

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "LoanRates":
        """Parse ``{"interestRates": {...}, "maxAmounts": {...}}``."""
        try:
            raw_rates = payload["interestRates"]
            raw_max = payload["maxAmounts"]
        except (KeyError, TypeError) as exc:
            raise InvalidInput("rates", f"malformed rates response: {exc}") from exc
        for name, raw in (("interestRates", raw_rates), ("maxAmounts", raw_max)):
            if not isinstance(raw, Mapping):
                raise InvalidInput(name, f"expected a mapping of loan type to value, got {type(raw).__name__}")

        rates = {str(k): to_decimal(v, f"interestRates.{k}") for k, v in raw_rates.items()}
        max_amounts = {str(k): to_decimal(v, f"maxAmounts.{k}") for k, v in raw_max.items()}
        for loan_type, rate in rates.items():
            if rate < ZERO:
                raise InvalidInput(f"interestRates.{loan_type}", "must be >= 0")
        for loan_type, amount in max_amounts.items():
            if amount <= ZERO:
                raise InvalidInput(f"maxAmounts.{loan_type}", "must be > 0")
        return cls(interest_rates=rates, max_amounts=max_amounts)


# Static rate card — used offline and as the CLI default.
DEFAULT_RATES = LoanRates(
    interest_rates={
        SMALL_BUSINESS: Decimal("15.5"),
        PAYDAY: Decimal("30"),
        COLLATERAL: Decimal("12"),
    },
    max_amounts={
        SMALL_BUSINESS: Decimal("5000000"),
        PAYDAY: Decimal("500000"),
        COLLATERAL: Decimal("50000000"),
    },
)
