"""Unit tests for rates.py — rate card lookups and payload parsing."""
from decimal import Decimal

import pytest

from blueprint_lending.exceptions import InvalidInput
from blueprint_lending.rates import DEFAULT_RATES, LoanRates


class TestLoanRates:
    def test_default_card(self):
        assert DEFAULT_RATES.rate_for("small_business") == Decimal("15.5")
        assert DEFAULT_RATES.max_amount_for("collateral") == Decimal("50000000")
        assert DEFAULT_RATES.loan_types == ["small_business", "payday", "collateral"]

    def test_unknown_loan_type(self):
        with pytest.raises(InvalidInput) as exc_info:
            DEFAULT_RATES.rate_for("mortgage")
        assert exc_info.value.field == "loan_type"
        with pytest.raises(InvalidInput):
            DEFAULT_RATES.max_amount_for("mortgage")

    def test_from_payload(self):
        rates = LoanRates.from_payload({
            "interestRates": {"small_business": 15.5, "payday": 30, "collateral": 12},
            "maxAmounts": {"small_business": 5000000, "payday": 500000, "collateral": 50000000},
        })
        assert rates.rate_for("small_business") == Decimal("15.5")
        assert rates.max_amount_for("payday") == Decimal("500000")

    def test_extra_products_listed_after_known_ones(self):
        rates = LoanRates.from_payload({
            "interestRates": {"asset_finance": 18, "payday": 30},
            "maxAmounts": {"asset_finance": 1000000, "payday": 500000},
        })
        assert rates.loan_types == ["payday", "asset_finance"]

    @pytest.mark.parametrize("payload", [
        {},
        {"interestRates": {}},
        {"interestRates": {"payday": "n/a"}, "maxAmounts": {}},
        {"interestRates": {"payday": -1}, "maxAmounts": {}},
        {"interestRates": {}, "maxAmounts": {"payday": 0}},
        {"interestRates": [15.5], "maxAmounts": {}},
        {"interestRates": {}, "maxAmounts": None},
    ])
    def test_malformed_payload(self, payload):
        with pytest.raises(InvalidInput):
            LoanRates.from_payload(payload)
