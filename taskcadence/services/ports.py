"""
Storage port consumed by the recurrence services.

TaskRepository in infra implements it on SQLAlchemy; tests use in-memory fakes.
"""

from __future__ import annotations

from datetime import date
from typing import Protocol

from taskcadence.domain.entities import TaskEntity, TemplateEntity, TemplateUpdate
from taskcadence.domain.rules import RecurrenceRule


class TemplateStore(Protocol):
    def list_due_template_ids(self, now: date) -> list[int]:
        """Ids of active templates whose next_due_date is on or before now."""
        ...

    def get_template(self, template_id: int) -> TemplateEntity | None: ...

    def find_instance(self, template_id: int, occurrence: date) -> TaskEntity | None: ...

    def commit_occurrence(self, instance_data: dict, template_update: TemplateUpdate) -> TaskEntity:
        """
        Insert the instance and apply the template update in one transaction.

        Raises PersistenceConflict when (template_id, occurrence_date) already exists
        or the template counter no longer equals template_update.expected_counter.
        """
        ...

    def update_template(self, template_update: TemplateUpdate) -> None:
        """Apply a cursor repair without creating an instance."""
        ...


class TemplateRepo(TemplateStore, Protocol):
    def create_template(
        self,
        data: dict,
        rule: RecurrenceRule,
        anchor: date,
        next_due_date: date | None,
    ) -> TemplateEntity: ...

    def list_instances(self, template_id: int) -> list[TaskEntity]: ...
