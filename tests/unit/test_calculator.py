"""Unit tests for calculator.py — quotes, rounding policy, repayment schedule."""
from decimal import Decimal

import pytest

from blueprint_lending.calculator import (
    LoanQuote,
    build_repayment_schedule,
    compute_quote,
    quote_from_payload,
)
from blueprint_lending.exceptions import InvalidInput

ZERO = Decimal("0")


class TestComputeQuote:
    @pytest.mark.parametrize("principal,rate,months,expected", [
        # Known values computed with the standard formula
        # P=100000, 15.5%/12, n=12 → M ≈ 9049.44
        ("100000", "15.5", 12, Decimal("9049")),
        # P=500000, 1%/month, n=12 → M ≈ 44424.39
        ("500000", "12", 12, Decimal("44424")),
        # One month at 1%/month: M = 1000 * 1.01
        ("1000", "12", 1, Decimal("1010")),
    ])
    def test_standard_cases(self, principal, rate, months, expected):
        quote = compute_quote(Decimal(principal), Decimal(rate), months)
        assert quote.monthly_payment == expected, f"monthly mismatch: got {quote.monthly_payment}"

    def test_reference_quote(self):
        quote = compute_quote(100000, 15.5, 12)
        assert quote.monthly_payment == Decimal("9049")
        assert quote.total_payment == Decimal("108588")
        assert quote.total_interest == Decimal("8588")
        assert quote.final_payment == quote.monthly_payment

    def test_totals_recomputed_from_rounded_monthly(self):
        quote = compute_quote(Decimal("500000"), Decimal("12"), 12)
        assert quote.total_payment == quote.monthly_payment * 12
        assert quote.total_interest == quote.total_payment - Decimal("500000")

    @pytest.mark.parametrize("principal,rate,months", [
        ("100000", "15.5", 12),
        ("250000", "30", 3),
        ("4999999", "15.5", 60),
        ("10000.50", "12", 6),
        ("1000", "0.01", 3),
        ("100000", "0", 7),
    ])
    def test_total_is_principal_plus_interest(self, principal, rate, months):
        quote = compute_quote(Decimal(principal), Decimal(rate), months)
        assert quote.total_payment == quote.principal + quote.total_interest
        assert quote.total_payment == quote.monthly_payment * (months - 1) + quote.final_payment
        assert quote.total_interest >= ZERO

    def test_idempotent(self):
        assert compute_quote(100000, "15.5", 24) == compute_quote(100000, "15.5", 24)

    def test_float_and_decimal_inputs_agree(self):
        assert compute_quote(100000.0, 15.5, 12) == compute_quote(Decimal("100000"), Decimal("15.5"), 12)

    def test_large_term_does_not_overflow(self):
        quote = compute_quote(Decimal("1000000"), Decimal("500"), 100000)
        # (1 + r)^n dwarfs 1, so M → P * r
        assert quote.monthly_payment == Decimal("416667")
        assert quote.total_payment == quote.principal + quote.total_interest


class TestZeroInterest:
    def test_even_split(self):
        quote = compute_quote(Decimal("120000"), ZERO, 12)
        assert quote.monthly_payment == Decimal("10000")
        assert quote.final_payment == Decimal("10000")
        assert quote.total_interest == ZERO
        assert quote.total_payment == Decimal("120000")

    def test_remainder_absorbed_by_final_payment(self):
        # 100000 / 12 = 8333.33 → 8333 for 11 months, final month 8337
        quote = compute_quote(Decimal("100000"), ZERO, 12)
        assert quote.monthly_payment == Decimal("8333")
        assert quote.final_payment == Decimal("8337")
        assert quote.total_payment == Decimal("100000")
        assert quote.total_interest == ZERO

    @pytest.mark.parametrize("principal,months", [
        ("100000", 12), ("50000", 7), ("10000", 60), ("99999", 36), ("1", 1),
    ])
    def test_total_equals_principal(self, principal, months):
        quote = compute_quote(Decimal(principal), ZERO, months)
        assert quote.total_interest == ZERO
        assert quote.total_payment == Decimal(principal)
        assert abs(quote.monthly_payment * months - Decimal(principal)) <= months
        assert abs(quote.monthly_payment - Decimal(principal) / months) <= 1

    def test_round_half_up(self):
        # 25 / 2 = 12.5 → 13 (half-up), final payment 12
        quote = compute_quote(Decimal("25"), ZERO, 2)
        assert quote.monthly_payment == Decimal("13")
        assert quote.final_payment == Decimal("12")

    def test_small_principal_long_term_never_negative(self):
        # 100 / 60 = 1.67 would round up to 2 and overshoot the principal
        quote = compute_quote(Decimal("100"), ZERO, 60)
        assert quote.monthly_payment == Decimal("1")
        assert quote.final_payment == Decimal("41")
        assert quote.final_payment >= ZERO


class TestRoundingShortfall:
    def test_tiny_rate_pins_total_to_principal(self):
        # M ≈ 333.34 rounds to 333 and 3 * 333 < 1000
        quote = compute_quote(Decimal("1000"), Decimal("0.01"), 3)
        assert quote.monthly_payment == Decimal("333")
        assert quote.total_payment == Decimal("1000")
        assert quote.total_interest == ZERO
        assert quote.final_payment == Decimal("334")


class TestInvalidInput:
    def test_negative_principal(self):
        with pytest.raises(InvalidInput) as exc_info:
            compute_quote(-1, 10, 12)
        assert exc_info.value.field == "principal"

    def test_zero_principal(self):
        with pytest.raises(InvalidInput, match="principal"):
            compute_quote(0, 10, 12)

    def test_zero_term(self):
        with pytest.raises(InvalidInput) as exc_info:
            compute_quote(1000, 10, 0)
        assert exc_info.value.field == "term_months"

    def test_negative_rate(self):
        with pytest.raises(InvalidInput) as exc_info:
            compute_quote(1000, -0.5, 12)
        assert exc_info.value.field == "annual_rate_percent"

    @pytest.mark.parametrize("term", [12.5, "12", True])
    def test_term_must_be_int(self, term):
        with pytest.raises(InvalidInput, match="term_months"):
            compute_quote(1000, 10, term)

    @pytest.mark.parametrize("principal", ["abc", float("nan"), float("inf"), None])
    def test_non_numeric_principal(self, principal):
        with pytest.raises(InvalidInput, match="principal"):
            compute_quote(principal, 10, 12)

    def test_invalid_input_is_a_value_error(self):
        with pytest.raises(ValueError):
            compute_quote(-5, 10, 12)

    def test_out_of_range_term_not_blamed_on_principal(self):
        with pytest.raises(InvalidInput, match="numeric range") as exc_info:
            compute_quote(1000000, 500, 10**20)
        assert exc_info.value.field == "inputs"


class TestRemoteQuoteContract:
    def test_payload_shape(self):
        payload = compute_quote(100000, "15.5", 12).to_payload()
        assert set(payload) == {
            "monthlyPayment", "totalInterest", "totalPayment",
            "interestRate", "loanAmount", "loanDuration",
        }
        assert payload["loanDuration"] == 12

    def test_backend_response_matches_local_quote(self):
        # What the backend calculator returns for the same request
        response = {
            "monthlyPayment": 9049,
            "totalInterest": 8588,
            "totalPayment": 108588,
            "interestRate": 15.5,
            "loanAmount": 100000,
            "loanDuration": 12,
        }
        assert quote_from_payload(response) == compute_quote(100000, "15.5", 12)

    def test_zero_rate_response_keeps_final_payment(self):
        local = compute_quote(Decimal("100000"), ZERO, 12)
        assert quote_from_payload(local.to_payload()) == local

    def test_missing_field(self):
        with pytest.raises(InvalidInput, match="monthlyPayment"):
            quote_from_payload({"loanAmount": 1, "interestRate": 1, "loanDuration": 1})

    @pytest.mark.parametrize("duration", [12.7, "12.5"])
    def test_fractional_duration_rejected(self, duration):
        response = compute_quote(100000, "15.5", 12).to_payload()
        response["loanDuration"] = duration
        with pytest.raises(InvalidInput) as exc_info:
            quote_from_payload(response)
        assert exc_info.value.field == "loanDuration"

    def test_whole_float_duration_accepted(self):
        response = compute_quote(100000, "15.5", 12).to_payload()
        response["loanDuration"] = 12.0
        assert quote_from_payload(response).term_months == 12


class TestRepaymentSchedule:
    def _quote(self, principal="100000", rate="15.5", months=12) -> LoanQuote:
        return compute_quote(Decimal(principal), Decimal(rate), months)

    def test_row_count(self):
        assert len(build_repayment_schedule(self._quote(months=60))) == 60

    def test_first_period(self):
        row = build_repayment_schedule(self._quote())[0]
        assert row.period == 1
        assert row.opening_balance == Decimal("100000")
        # interest = 100000 * 15.5% / 12 = 1291.67 → 1292
        assert row.interest_component == Decimal("1292")
        assert row.principal_component == Decimal("9049") - Decimal("1292")

    def test_final_closing_balance_is_zero(self):
        schedule = build_repayment_schedule(self._quote(months=36))
        assert schedule[-1].closing_balance == ZERO

    def test_opening_equals_previous_closing(self):
        schedule = build_repayment_schedule(self._quote(months=24))
        for i in range(1, len(schedule)):
            assert schedule[i].opening_balance == schedule[i - 1].closing_balance

    @pytest.mark.parametrize("rate", ["15.5", "0", "30"])
    def test_totals_match_quote(self, rate):
        quote = self._quote(rate=rate, months=24)
        schedule = build_repayment_schedule(quote)
        assert sum(row.installment for row in schedule) == quote.total_payment
        assert sum(row.interest_component for row in schedule) == quote.total_interest

    def test_zero_rate_has_no_interest(self):
        schedule = build_repayment_schedule(self._quote(rate="0", months=12))
        assert {row.interest_component for row in schedule} == {ZERO}
        assert schedule[-1].installment == Decimal("8337")
