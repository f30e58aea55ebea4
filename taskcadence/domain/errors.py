from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING, Optional, Sequence

if TYPE_CHECKING:
    from .rules import Violation


class RecurrenceError(Exception):
    """Base class for recurrence engine failures."""


class InvalidRule(RecurrenceError):
    def __init__(self, violations: Sequence["Violation"] | str) -> None:
        if isinstance(violations, str):
            from .rules import Violation

            violations = [Violation("rule", violations)]
        self.violations = list(violations)
        super().__init__("; ".join(f"{v.field}: {v.message}" for v in self.violations))


class PersistenceConflict(RecurrenceError):
    """The occurrence was already committed, or the template moved underneath us."""

    def __init__(
        self,
        template_id: int,
        occurrence: Optional[date] = None,
        *,
        expected_counter: Optional[int] = None,
    ) -> None:
        self.template_id = template_id
        self.occurrence = occurrence
        self.expected_counter = expected_counter
        if expected_counter is not None:
            message = (
                f"template {template_id} changed concurrently: "
                f"instance counter is no longer {expected_counter} or the template is exhausted"
            )
        elif occurrence is not None:
            message = f"template {template_id} occurrence {occurrence.isoformat()} already committed"
        else:
            message = f"template {template_id} conflicts with a concurrent write"
        super().__init__(message)


class StorageUnavailable(RecurrenceError):
    """Transient storage failure; the sweep should be retried later."""
