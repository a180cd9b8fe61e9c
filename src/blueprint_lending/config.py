"""Application-wide constants and configuration defaults.

All tuneable defaults live here so there is a single place to adjust them.
"""
from __future__ import annotations

from decimal import Decimal

# ── Numeric convenience ───────────────────────────────────────────────────────

ZERO = Decimal("0")
UNIT = Decimal("1")        # quotes are rounded to whole naira, no kobo
HUNDRED = Decimal("100")
MONTHS_PER_YEAR = 12

# Working precision for the amortization factor (1 + r)^n
CALC_PRECISION = 50

# ── Loan products ─────────────────────────────────────────────────────────────

CURRENCY = "NGN"
CURRENCY_SYMBOL = "₦"

MIN_LOAN_AMOUNT = Decimal("10000")

PAYDAY_DURATIONS: tuple[int, ...] = (1, 2, 3)
TERM_DURATIONS: tuple[int, ...] = (6, 12, 24, 36, 48, 60)

COLLATERAL_TYPES: frozenset[str] = frozenset({"property", "vehicle", "equipment", "other"})
BUSINESS_TYPES: frozenset[str] = frozenset({
    "retail",
    "manufacturing",
    "services",
    "agriculture",
    "technology",
    "other",
})

# ── Registration ──────────────────────────────────────────────────────────────

MIN_PASSWORD_LENGTH: int = 6
BVN_LENGTH: int = 11
EMPLOYMENT_STATUSES: frozenset[str] = frozenset({
    "employed",
    "self-employed",
    "unemployed",
    "student",
    "retired",
})

# ── Backend API ───────────────────────────────────────────────────────────────

API_URL_ENV = "BLUEPRINT_API_URL"
API_TOKEN_ENV = "BLUEPRINT_API_TOKEN"
DEFAULT_API_URL = "http://localhost:5000"

# Timeout for HTTP calls (seconds)
HTTP_TIMEOUT: int = 10

RATES_PATH = "/api/loans/calculator/rates"
QUOTE_PATH = "/api/loans/calculator/calculate"
APPLY_PATH = "/api/loans/apply"
REGISTER_PATH = "/api/auth/register"
