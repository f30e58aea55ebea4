from __future__ import annotations

from datetime import date
from typing import Optional

from .errors import InvalidRule
from .rules import (
    LAST_WEEK,
    DailyRule,
    MonthlyByDateRule,
    MonthlyByWeekdayRule,
    RecurrenceRule,
    Violation,
    WeeklyRule,
    YearlyRule,
)

VALID_WEEKS_OF_MONTH = frozenset({1, 2, 3, 4, LAST_WEEK})


def validate_rule(rule: RecurrenceRule, anchor: Optional[date] = None) -> list[Violation]:
    """Return every structural problem with ``rule``; an empty list means valid.

    The end-date check needs the anchor and is skipped when none is given.
    """
    violations: list[Violation] = []

    if not isinstance(rule.interval, int) or rule.interval < 1:
        violations.append(Violation("interval", "Interval must be at least 1"))

    match rule:
        case WeeklyRule():
            if not rule.days_of_week:
                violations.append(
                    Violation("days_of_week", "At least one day must be selected for weekly recurrence")
                )
        case MonthlyByDateRule():
            if not 1 <= rule.day_of_month <= 31:
                violations.append(Violation("day_of_month", "Day of month must be between 1 and 31"))
        case MonthlyByWeekdayRule():
            if rule.week_of_month not in VALID_WEEKS_OF_MONTH:
                violations.append(Violation("week_of_month", "Week of month must be 1-4 or -1 for last"))
        case DailyRule() | YearlyRule():
            pass
        case _:
            violations.append(Violation("type", f"Unsupported recurrence rule {type(rule).__name__}"))

    if rule.end_date is not None and anchor is not None and rule.end_date <= anchor:
        violations.append(Violation("end_date", "End date must be after the start date"))

    if rule.max_occurrences is not None and rule.max_occurrences < 1:
        violations.append(Violation("max_occurrences", "Max occurrences must be at least 1"))

    return violations


def ensure_valid(rule: RecurrenceRule, anchor: Optional[date] = None) -> None:
    violations = validate_rule(rule, anchor)
    if violations:
        raise InvalidRule(violations)
