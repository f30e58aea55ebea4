from __future__ import annotations

from datetime import date

import pytest

from taskcadence import main as driver
from taskcadence.domain.rules import DailyRule
from taskcadence.infra.db import create_schema
from taskcadence.infra.repository import TaskRepository


def test_single_sweep_materializes_due_templates(monkeypatch) -> None:
    monkeypatch.setattr(driver, "setup_logging", lambda level=None: None)
    monkeypatch.setattr(driver.signal, "signal", lambda signum, handler: None)
    create_schema()
    repo = TaskRepository()
    template = repo.create_template({"title": "Stretch"}, DailyRule(), date(2024, 3, 1), date(2024, 3, 1))

    driver.main(["--once", "--date", "2024-03-03"])

    assert [t.occurrence_date for t in repo.list_instances(template.id)] == [
        date(2024, 3, 1),
        date(2024, 3, 2),
        date(2024, 3, 3),
    ]
    assert repo.get_template(template.id).next_due_date == date(2024, 3, 4)


def test_fixed_date_requires_single_sweep() -> None:
    with pytest.raises(SystemExit):
        driver.main(["--date", "2024-03-03"])
