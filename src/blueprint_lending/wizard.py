"""Generic multi-step form controller.

A Wizard drives a fixed sequence of steps over one mutable record:
  - advance()      validate the current step, run its completion hook, move on.
  - retreat()      step back without validation; the record is kept.
  - update_field() merge a value into the record from any step.
  - submit()       re-validate every step, then hand the record to the submitter.

Collaborator calls (completion hooks, the submitter) mark the wizard busy;
re-entrant transitions while busy raise WizardBusy. A wizard disposed while a
call is in flight discards that call's result.
"""
from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Literal, Mapping, Optional, Sequence, TypeVar

from .exceptions import InvalidTransition, ValidationFailed, WizardBusy

logger = logging.getLogger(__name__)

WizardStatus = Literal["active", "submitted", "disposed"]

Validator = Callable[[Mapping[str, Any]], list[str]]
CompletionHook = Callable[[Mapping[str, Any]], Optional[Mapping[str, Any]]]
Submitter = Callable[[dict[str, Any]], Any]

T = TypeVar("T")


@dataclass(frozen=True)
class Step:
    """One page of a wizard.

    validate returns the reasons the record is not acceptable yet (empty when
    valid). on_complete runs after a successful advance and returns fields to
    merge into the record, e.g. a computed quote.
    """
    name: str
    validate: Validator
    on_complete: Optional[CompletionHook] = None


@dataclass
class WizardState:
    step_count: int
    current_step_index: int = 0
    record: dict[str, Any] = field(default_factory=dict)
    visited_steps: set[int] = field(default_factory=set)
    status: WizardStatus = "active"
    result: Any = None  # identifier returned by the submitter

    @property
    def last_step_index(self) -> int:
        return self.step_count - 1


def _assign(target: dict[str, Any], path: str, value: Any) -> None:
    head, _, rest = path.partition(".")
    if not rest:
        target[head] = value
        return
    nested = target.get(head)
    if not isinstance(nested, dict):
        nested = {}
        target[head] = nested
    _assign(nested, rest, value)


class Wizard:
    def __init__(
        self,
        steps: Sequence[Step],
        submitter: Submitter,
        record: Optional[Mapping[str, Any]] = None,
    ) -> None:
        if not steps:
            raise ValueError("a wizard needs at least one step")
        self._steps = tuple(steps)
        self._submitter = submitter
        self._busy = False
        self._state = WizardState(
            step_count=len(self._steps),
            record=copy.deepcopy(dict(record or {})),
        )

    # ── Read-only views ──────────────────────────────────────────────────────

    @property
    def state(self) -> WizardState:
        return self._state

    @property
    def steps(self) -> tuple[Step, ...]:
        return self._steps

    @property
    def current_step_index(self) -> int:
        return self._state.current_step_index

    @property
    def current_step(self) -> Step:
        return self._steps[self._state.current_step_index]

    @property
    def record(self) -> Mapping[str, Any]:
        return MappingProxyType(self._state.record)

    @property
    def status(self) -> WizardStatus:
        return self._state.status

    @property
    def busy(self) -> bool:
        """True while a collaborator call is in flight; disable triggers."""
        return self._busy

    @property
    def on_last_step(self) -> bool:
        return self._state.current_step_index == self._state.last_step_index

    def validate_step(self, index: Optional[int] = None) -> list[str]:
        """Run a step's validator against the current record without moving."""
        if index is None:
            index = self._state.current_step_index
        return list(self._steps[index].validate(self.record))

    # ── Transitions ──────────────────────────────────────────────────────────

    def advance(self) -> int:
        """Move to the next step if the current one validates.

        Advancing from the last step validates and runs its hook but stays
        put; the wizard is then ready for submit(). Returns the new index.
        """
        self._check_open("advance")
        index = self._state.current_step_index
        step = self._steps[index]

        reasons = self.validate_step(index)
        if reasons:
            logger.debug("step %d (%s) rejected: %s", index, step.name, reasons)
            raise ValidationFailed(index, reasons)

        updates: Optional[Mapping[str, Any]] = None
        if step.on_complete is not None:
            updates = self._call_out(step.on_complete, self.record)
            if self._state.status == "disposed":
                logger.debug("wizard disposed during %s hook; result discarded", step.name)
                return index

        if updates:
            self._state.record.update(updates)
        self._state.visited_steps.add(index)
        self._state.current_step_index = min(index + 1, self._state.last_step_index)
        logger.debug("advanced from step %d to %d", index, self._state.current_step_index)
        return self._state.current_step_index

    def retreat(self) -> int:
        """Go back one step. A no-op on the first step. Returns the new index."""
        self._check_open("retreat")
        if self._state.current_step_index > 0:
            self._state.current_step_index -= 1
        return self._state.current_step_index

    def update_field(self, name: str, value: Any) -> None:
        """Set a record field; dotted names address nested mappings."""
        self._check_open("update_field")
        _assign(self._state.record, name, value)

    def update_fields(self, values: Mapping[str, Any]) -> None:
        self._check_open("update_fields")
        for name, value in values.items():
            _assign(self._state.record, name, value)

    def submit(self) -> Any:
        """Hand the completed record to the submitter.

        Only allowed from the last step, and only while every step validates
        against the current record. If the submitter raises, the wizard stays on the last step and the
        error propagates.
        """
        self._check_open("submit")
        index = self._state.current_step_index
        if index != self._state.last_step_index:
            raise InvalidTransition(
                f"cannot submit from step {index + 1} of {self._state.step_count}"
            )

        for step_index in range(self._state.step_count):
            reasons = self.validate_step(step_index)
            if reasons:
                self._state.visited_steps.discard(step_index)
                logger.debug("submit blocked by step %d: %s", step_index, reasons)
                raise ValidationFailed(step_index, reasons)

        result = self._call_out(self._submitter, copy.deepcopy(self._state.record))
        if self._state.status == "disposed":
            logger.debug("wizard disposed during submission; result discarded")
            return None

        self._state.visited_steps.add(index)
        self._state.status = "submitted"
        self._state.result = result
        logger.debug("wizard submitted, result=%r", result)
        return result

    def dispose(self) -> None:
        """Abandon the flow; in-flight results are dropped and all later calls fail."""
        if self._state.status == "active":
            self._state.status = "disposed"

    # ── Internals ────────────────────────────────────────────────────────────

    def _check_open(self, operation: str) -> None:
        if self._state.status == "submitted":
            raise InvalidTransition(f"cannot {operation}: wizard already submitted")
        if self._state.status == "disposed":
            raise InvalidTransition(f"cannot {operation}: wizard was disposed")
        if self._busy:
            raise WizardBusy(f"cannot {operation}: a request is still in flight")

    def _call_out(self, fn: Callable[..., T], *args: Any) -> T:
        self._busy = True
        try:
            return fn(*args)
        finally:
            self._busy = False
