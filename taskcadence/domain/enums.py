from __future__ import annotations

from datetime import date
from enum import IntEnum, StrEnum


class TaskStatus(StrEnum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    CANCELLED = "cancelled"


class PriorityLevel(IntEnum):
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4


class RecurrenceType(StrEnum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class MonthlyType(StrEnum):
    DATE = "date"
    DAY = "day"


class Weekday(IntEnum):
    SUN = 0
    MON = 1
    TUE = 2
    WED = 3
    THU = 4
    FRI = 5
    SAT = 6

    @classmethod
    def of(cls, value: date) -> "Weekday":
        return cls((value.weekday() + 1) % 7)

    @property
    def full_name(self) -> str:
        return _DAY_NAMES[self.value]


_DAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")


class TemplateState(StrEnum):
    ACTIVE = "active"
    EXHAUSTED = "exhausted"


class TerminationReason(StrEnum):
    END_DATE = "end_date"
    MAX_OCCURRENCES = "max_occurrences"
