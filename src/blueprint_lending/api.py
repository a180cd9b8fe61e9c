"""Backend API client: rate card, remote quotes, loan applications, registration.

Every call is user-triggered and single-shot (no retries, no polling).
Any transport, HTTP or parsing problem is raised as ExternalCallFailed,
carrying the server's own message when it sends one.
"""
from __future__ import annotations

import logging
import os
from datetime import date
from decimal import Decimal
from typing import Any, Mapping, Optional

import requests

from .calculator import LoanQuote, quote_from_payload
from .config import (
    API_TOKEN_ENV,
    API_URL_ENV,
    APPLY_PATH,
    DEFAULT_API_URL,
    HTTP_TIMEOUT,
    QUOTE_PATH,
    RATES_PATH,
    REGISTER_PATH,
)
from .exceptions import ExternalCallFailed, InvalidInput
from .rates import LoanRates

logger = logging.getLogger(__name__)

# Record fields that never leave the client
_LOCAL_ONLY_FIELDS = frozenset({"confirm_password", "quote", "quoted_loan_type", "terms_accepted"})


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def to_api_payload(record: Mapping[str, Any]) -> dict[str, Any]:
    """snake_case record -> camelCase JSON body, Decimals as strings."""
    payload: dict[str, Any] = {}
    for key, value in record.items():
        if key in _LOCAL_ONLY_FIELDS:
            continue
        if isinstance(value, Mapping):
            value = to_api_payload(value)
        elif isinstance(value, Decimal):
            value = str(value)
        elif isinstance(value, date):
            value = value.isoformat()
        payload[_camel(key)] = value
    return payload


def _server_message(resp: requests.Response) -> Optional[str]:
    try:
        body = resp.json()
    except ValueError:
        return None
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return None


class ApiClient:
    """Thin wrapper over the lending backend's REST endpoints."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: float = HTTP_TIMEOUT,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = (base_url or os.environ.get(API_URL_ENV) or DEFAULT_API_URL).rstrip("/")
        self.token = token or os.environ.get(API_TOKEN_ENV)
        self.timeout = timeout
        self.session = session or requests.Session()

    def _request(self, operation: str, method: str, path: str, **kwargs: Any) -> Any:
        url = self.base_url + path
        headers = kwargs.pop("headers", {})
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        try:
            resp = self.session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            logger.warning("%s request failed: %s", operation, exc)
            raise ExternalCallFailed(operation, f"request failed: {exc}") from exc

        if not resp.ok:
            message = _server_message(resp) or f"HTTP {resp.status_code}"
            logger.warning("%s rejected by server: %s", operation, message)
            raise ExternalCallFailed(operation, message)

        try:
            return resp.json()
        except ValueError as exc:
            raise ExternalCallFailed(operation, f"response is not JSON: {exc}") from exc

    def fetch_rates(self) -> LoanRates:
        """Fetch the published interest rates and maximum amounts per loan type."""
        data = self._request("rates lookup", "GET", RATES_PATH)
        try:
            return LoanRates.from_payload(data)
        except InvalidInput as exc:
            raise ExternalCallFailed("rates lookup", f"failed to parse response: {exc}") from exc

    def fetch_quote(self, amount: Decimal, duration: int, loan_type: str) -> LoanQuote:
        """Ask the backend calculator for a quote (same contract as compute_quote)."""
        body = {"amount": float(amount), "duration": int(duration), "loanType": loan_type}
        data = self._request("quote", "POST", QUOTE_PATH, json=body)
        try:
            return quote_from_payload(data)
        except InvalidInput as exc:
            raise ExternalCallFailed("quote", f"failed to parse response: {exc}") from exc

    def submit_application(self, record: Mapping[str, Any]) -> str:
        """Submit a completed loan application; returns the application id."""
        data = self._request("loan application", "POST", APPLY_PATH, json=to_api_payload(record))
        try:
            return str(data["application"]["id"])
        except (KeyError, TypeError) as exc:
            raise ExternalCallFailed("loan application", f"no application id in response: {exc}") from exc

    def register(self, record: Mapping[str, Any]) -> str:
        """Create a customer account; returns the new user id."""
        data = self._request("registration", "POST", REGISTER_PATH, json=to_api_payload(record))
        try:
            return str(data["user"]["id"])
        except (KeyError, TypeError) as exc:
            raise ExternalCallFailed("registration", f"no user id in response: {exc}") from exc
