from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from typing import Any, ClassVar, Optional, Union

from .enums import MonthlyType, RecurrenceType, TerminationReason, Weekday
from .errors import InvalidRule

LAST_WEEK = -1


@dataclass(frozen=True, kw_only=True)
class RecurrenceRule:
    """Fields shared by every recurrence variant."""

    type: ClassVar[RecurrenceType]

    interval: int = 1
    end_date: Optional[date] = None
    max_occurrences: int | None = None
    skip_weekends: bool = False


@dataclass(frozen=True, kw_only=True)
class DailyRule(RecurrenceRule):
    type: ClassVar[RecurrenceType] = RecurrenceType.DAILY


@dataclass(frozen=True, kw_only=True)
class WeeklyRule(RecurrenceRule):
    type: ClassVar[RecurrenceType] = RecurrenceType.WEEKLY

    days_of_week: frozenset[Weekday] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "days_of_week", frozenset(Weekday(day) for day in self.days_of_week)
        )


@dataclass(frozen=True, kw_only=True)
class MonthlyByDateRule(RecurrenceRule):
    type: ClassVar[RecurrenceType] = RecurrenceType.MONTHLY
    monthly_type: ClassVar[MonthlyType] = MonthlyType.DATE

    day_of_month: int


@dataclass(frozen=True, kw_only=True)
class MonthlyByWeekdayRule(RecurrenceRule):
    """Nth (or last, -1) occurrence of the anchor's weekday within the month."""

    type: ClassVar[RecurrenceType] = RecurrenceType.MONTHLY
    monthly_type: ClassVar[MonthlyType] = MonthlyType.DAY

    week_of_month: int


@dataclass(frozen=True, kw_only=True)
class YearlyRule(RecurrenceRule):
    type: ClassVar[RecurrenceType] = RecurrenceType.YEARLY


@dataclass(frozen=True)
class Violation:
    field: str
    message: str


@dataclass(frozen=True)
class Terminated:
    """End of series. A normal outcome, not an error."""

    reason: TerminationReason


NextOccurrence = Union[date, Terminated]


def rule_to_dict(rule: RecurrenceRule) -> dict[str, Any]:
    data: dict[str, Any] = {
        "type": rule.type.value,
        "interval": rule.interval,
        "endDate": rule.end_date.isoformat() if rule.end_date else None,
        "maxOccurrences": rule.max_occurrences,
        "skipWeekends": rule.skip_weekends,
    }
    match rule:
        case WeeklyRule():
            data["daysOfWeek"] = sorted(int(day) for day in rule.days_of_week)
        case MonthlyByDateRule():
            data["monthlyType"] = MonthlyType.DATE.value
            data["dayOfMonth"] = rule.day_of_month
        case MonthlyByWeekdayRule():
            data["monthlyType"] = MonthlyType.DAY.value
            data["weekOfMonth"] = rule.week_of_month
    return data


def rule_from_dict(data: Mapping[str, Any]) -> RecurrenceRule:
    """Build a rule from its stored/UI form. Range checks are left to validate_rule."""
    if not isinstance(data, Mapping):
        raise InvalidRule([Violation("rule", "must be an object")])

    try:
        kind = RecurrenceType(data.get("type"))
    except ValueError as exc:
        raise InvalidRule([Violation("type", f"unknown recurrence type {data.get('type')!r}")]) from exc

    try:
        common = {
            "interval": int(data.get("interval", 1)),
            "end_date": _parse_date(data.get("endDate")),
            "max_occurrences": _optional_int(data.get("maxOccurrences")),
            "skip_weekends": _parse_flag(data.get("skipWeekends", False)),
        }
        if kind == RecurrenceType.DAILY:
            return DailyRule(**common)
        if kind == RecurrenceType.WEEKLY:
            days = data.get("daysOfWeek") or []
            return WeeklyRule(days_of_week=frozenset(Weekday(int(day)) for day in days), **common)
        if kind == RecurrenceType.YEARLY:
            return YearlyRule(**common)
    except (TypeError, ValueError) as exc:
        raise InvalidRule([Violation("rule", str(exc))]) from exc

    try:
        monthly_type = MonthlyType(data.get("monthlyType", MonthlyType.DATE.value))
    except ValueError as exc:
        raise InvalidRule(
            [Violation("monthlyType", f"unknown monthly type {data.get('monthlyType')!r}")]
        ) from exc

    try:
        if monthly_type == MonthlyType.DATE:
            return MonthlyByDateRule(day_of_month=int(data.get("dayOfMonth")), **common)
        return MonthlyByWeekdayRule(week_of_month=int(data.get("weekOfMonth")), **common)
    except (TypeError, ValueError) as exc:
        field_name = "dayOfMonth" if monthly_type == MonthlyType.DATE else "weekOfMonth"
        raise InvalidRule([Violation(field_name, "must be an integer")]) from exc


def _parse_date(value: Any) -> date | None:
    if value in (None, ""):
        return None
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _optional_int(value: Any) -> int | None:
    if value in (None, ""):
        return None
    return int(value)


def _parse_flag(value: Any) -> bool:
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ValueError(f"skipWeekends must be true or false, got {value!r}")
    return value
