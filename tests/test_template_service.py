from __future__ import annotations

from datetime import date

import pytest

from fakes import FakeTemplateRepo
from taskcadence.domain.enums import PriorityLevel, TemplateState, Weekday
from taskcadence.domain.errors import InvalidRule
from taskcadence.domain.rules import DailyRule, MonthlyByWeekdayRule, WeeklyRule, YearlyRule
from taskcadence.services.materializer import InstanceMaterializer
from taskcadence.services.template_service import TemplateService


def test_create_template_starts_at_first_matching_day() -> None:
    repo = FakeTemplateRepo()
    service = TemplateService(repo)

    template = service.create_template(
        {"title": "Gym", "priority": PriorityLevel.HIGH, "tags": ["health", " routine "]},
        WeeklyRule(days_of_week={Weekday.WED, Weekday.FRI}),
        date(2024, 1, 1),
    )

    assert template.next_due_date == date(2024, 1, 3)
    assert template.anchor_date == date(2024, 1, 1)
    assert template.priority == 3
    assert template.tags == "health,routine"
    assert template.state == TemplateState.ACTIVE


def test_create_template_rejects_invalid_rule_with_itemized_violations() -> None:
    repo = FakeTemplateRepo()
    service = TemplateService(repo)

    with pytest.raises(InvalidRule) as excinfo:
        service.create_template(
            {"title": "Broken"},
            DailyRule(interval=0, end_date=date(2023, 12, 1), max_occurrences=0),
            date(2024, 1, 1),
        )

    assert [v.field for v in excinfo.value.violations] == ["interval", "end_date", "max_occurrences"]
    assert repo.templates == {}


def test_template_with_empty_series_is_exhausted_at_creation() -> None:
    repo = FakeTemplateRepo()
    service = TemplateService(repo)

    # The only Saturday before the end date shifts past it.
    template = service.create_template(
        {"title": "Weekend chores"},
        WeeklyRule(days_of_week={Weekday.SAT}, end_date=date(2024, 1, 6), skip_weekends=True),
        date(2024, 1, 1),
    )

    assert template.exhausted
    assert template.next_due_date is None
    assert InstanceMaterializer(repo).materialize_due(date(2024, 2, 1)) == []


def test_describe_and_preview() -> None:
    repo = FakeTemplateRepo()
    service = TemplateService(repo)
    template = service.create_template({"title": "Review budget"}, MonthlyByWeekdayRule(week_of_month=-1), date(2024, 1, 26))

    assert service.describe(template.id) == "Every month on the last Friday"
    assert service.preview(template.id, limit=3) == [date(2024, 1, 26), date(2024, 2, 23), date(2024, 3, 29)]
    assert service.describe(999) is None
    assert service.preview(999) == []


def test_list_instances_after_sweep() -> None:
    repo = FakeTemplateRepo()
    service = TemplateService(repo)
    template = service.create_template({"title": "Birthday"}, YearlyRule(), date(2024, 2, 29))

    InstanceMaterializer(repo).materialize_due(date(2026, 3, 1))

    instances = service.list_instances(template.id)
    assert [t.occurrence_date for t in instances] == [date(2024, 2, 29), date(2025, 2, 28), date(2026, 2, 28)]
    assert service.get_template(template.id).next_due_date == date(2027, 2, 28)
