"""Error taxonomy shared by the calculator, the wizard and the API client.

Every error is local to the operation that raised it; a wizard stays usable
after any of them unless it was submitted or disposed.
"""
from __future__ import annotations

from typing import Sequence


class LendingError(Exception):
    """Base exception for the package."""


class InvalidInput(LendingError, ValueError):
    """A calculator or rate-card precondition was violated.

    ``field`` names the offending input so callers can point the user at it.
    """

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class ValidationFailed(LendingError):
    """A wizard step did not pass its validation predicate."""

    def __init__(self, step_index: int, reasons: Sequence[str]) -> None:
        self.step_index = step_index
        self.reasons = list(reasons)
        super().__init__(f"step {step_index} is invalid: " + "; ".join(self.reasons))


class ExternalCallFailed(LendingError):
    """A backend collaborator (rates, quote, submission) failed."""

    def __init__(self, operation: str, message: str) -> None:
        super().__init__(f"{operation} failed: {message}")
        self.operation = operation
        self.message = message


class InvalidTransition(LendingError):
    """The requested wizard transition is not allowed from the current state."""


class WizardBusy(InvalidTransition):
    """A collaborator call is still in flight for this wizard."""
