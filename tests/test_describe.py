from __future__ import annotations

from datetime import date

import pytest

from taskcadence.domain.describe import describe_rule, ordinal
from taskcadence.domain.enums import Weekday
from taskcadence.domain.rules import (
    DailyRule,
    MonthlyByDateRule,
    MonthlyByWeekdayRule,
    WeeklyRule,
    YearlyRule,
)


@pytest.mark.parametrize(
    ("rule", "anchor", "expected"),
    [
        (DailyRule(), None, "Daily"),
        (DailyRule(interval=3), None, "Every 3 days"),
        (WeeklyRule(interval=2, days_of_week={Weekday.WED, Weekday.MON}), None, "Every 2 weeks on Monday, Wednesday"),
        (WeeklyRule(days_of_week={Weekday.FRI}), None, "Weekly on Friday"),
        (MonthlyByDateRule(day_of_month=15), None, "Every month on the 15th"),
        (
            MonthlyByDateRule(interval=2, day_of_month=31),
            None,
            "Every 2 months on the 31st (last day in shorter months)",
        ),
        (MonthlyByWeekdayRule(week_of_month=-1), date(2024, 1, 26), "Every month on the last Friday"),
        (MonthlyByWeekdayRule(week_of_month=2), date(2024, 1, 9), "Every month on the 2nd Tuesday"),
        (MonthlyByWeekdayRule(week_of_month=3), None, "Every month in the 3rd week"),
        (YearlyRule(), date(2024, 2, 29), "Yearly on Feb 29 (Feb 28 in non-leap years)"),
        (YearlyRule(interval=2), date(2024, 7, 4), "Every 2 years on Jul 4"),
        (YearlyRule(), None, "Yearly"),
    ],
)
def test_describe_patterns(rule, anchor, expected) -> None:
    assert describe_rule(rule, anchor) == expected


def test_describe_appends_end_conditions() -> None:
    rule = DailyRule(skip_weekends=True, end_date=date(2024, 12, 31), max_occurrences=5)

    assert describe_rule(rule) == "Daily, skipping weekends, until 2024-12-31, 5 times"
    assert describe_rule(YearlyRule(max_occurrences=1)) == "Yearly, once"


def test_describe_is_stable_for_equal_rules() -> None:
    first = WeeklyRule(days_of_week=[Weekday.SAT, Weekday.SUN, Weekday.TUE])
    second = WeeklyRule(days_of_week=[Weekday.TUE, Weekday.SAT, Weekday.SUN])

    assert describe_rule(first) == describe_rule(second) == "Weekly on Sunday, Tuesday, Saturday"


@pytest.mark.parametrize(
    ("number", "text"),
    [(1, "1st"), (2, "2nd"), (3, "3rd"), (4, "4th"), (11, "11th"), (12, "12th"), (13, "13th"), (21, "21st"), (22, "22nd"), (31, "31st")],
)
def test_ordinal(number, text) -> None:
    assert ordinal(number) == text
