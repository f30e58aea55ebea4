from __future__ import annotations

import threading
from dataclasses import replace
from datetime import date, datetime

from taskcadence.domain.entities import SubtaskEntity, TaskEntity, TemplateEntity, TemplateUpdate
from taskcadence.domain.enums import TaskStatus, TemplateState
from taskcadence.domain.errors import PersistenceConflict, StorageUnavailable
from taskcadence.domain.rules import RecurrenceRule


class FakeTemplateRepo:
    """In-memory TemplateRepo with the same conflict rules as the SQL repository."""

    def __init__(self) -> None:
        self.templates: dict[int, TemplateEntity] = {}
        self.tasks: list[TaskEntity] = []
        self.subtasks: list[SubtaskEntity] = []
        self.unavailable = False
        self.commits = 0
        self._id = 1
        self._lock = threading.RLock()

    def _next_id(self) -> int:
        with self._lock:
            value = self._id
            self._id += 1
            return value

    def _check_available(self) -> None:
        if self.unavailable:
            raise StorageUnavailable("database is down")

    def create_template(
        self,
        data: dict,
        rule: RecurrenceRule,
        anchor: date,
        next_due_date: date | None,
    ) -> TemplateEntity:
        template_id = self._next_id()
        subtasks = tuple(
            SubtaskEntity(id=None, task_id=template_id, title=title, is_done=False, sort_order=index)
            for index, title in enumerate(data.get("subtasks", []), start=1)
        )
        template = TemplateEntity(
            id=template_id,
            title=data.get("title", ""),
            description=data.get("description", ""),
            priority=data.get("priority", 2),
            category=data.get("category", "General"),
            tags=data.get("tags", ""),
            estimated_duration=data.get("estimated_duration"),
            location=data.get("location"),
            start_date=data.get("start_date"),
            end_date=data.get("end_date"),
            due_date=data.get("due_date"),
            rule=rule,
            anchor_date=anchor,
            next_due_date=next_due_date,
            instance_counter=0,
            state=TemplateState.ACTIVE if next_due_date else TemplateState.EXHAUSTED,
            created_at=datetime.utcnow(),
            updated_at=datetime.utcnow(),
            subtasks=subtasks,
        )
        self.templates[template_id] = template
        return template

    def get_template(self, template_id: int) -> TemplateEntity | None:
        self._check_available()
        return self.templates.get(template_id)

    def list_due_template_ids(self, now: date) -> list[int]:
        self._check_available()
        due = [t for t in self.templates.values() if t.is_due(now)]
        return [t.id for t in sorted(due, key=lambda t: (t.next_due_date, t.id))]

    def find_instance(self, template_id: int, occurrence: date) -> TaskEntity | None:
        self._check_available()
        return next(
            (t for t in self.tasks if t.template_id == template_id and t.occurrence_date == occurrence),
            None,
        )

    def list_instances(self, template_id: int) -> list[TaskEntity]:
        return sorted(
            (t for t in self.tasks if t.template_id == template_id),
            key=lambda t: t.instance_number,
        )

    def commit_occurrence(self, instance_data: dict, template_update: TemplateUpdate) -> TaskEntity:
        self._check_available()
        occurrence = instance_data["occurrence_date"]
        with self._lock:
            if self.find_instance(template_update.template_id, occurrence):
                raise PersistenceConflict(template_update.template_id, occurrence)
            self._apply(template_update, occurrence)
            task = self.insert_instance(instance_data)
            self.commits += 1
            return task

    def update_template(self, template_update: TemplateUpdate) -> None:
        self._check_available()
        with self._lock:
            self._apply(template_update, None)

    def insert_instance(self, instance_data: dict) -> TaskEntity:
        """Store an instance without touching the template, as a half-finished write would."""
        values = dict(instance_data)
        subtasks = values.pop("subtasks", [])
        task = TaskEntity(
            id=self._next_id(),
            title=values["title"],
            description=values.get("description", ""),
            status=TaskStatus(values.get("status", TaskStatus.TODO.value)),
            priority=values.get("priority", 2),
            category=values.get("category", "General"),
            tags=values.get("tags", ""),
            progress=values.get("progress", 0),
            estimated_duration=values.get("estimated_duration"),
            location=values.get("location"),
            start_date=values.get("start_date"),
            end_date=values.get("end_date"),
            due_date=values.get("due_date"),
            created_at=datetime.utcnow(),
            updated_at=datetime.utcnow(),
            completed_at=None,
            template_id=values.get("template_id"),
            instance_number=values.get("instance_number"),
            occurrence_date=values.get("occurrence_date"),
        )
        self.tasks.append(task)
        for subtask in subtasks:
            self.subtasks.append(
                SubtaskEntity(
                    id=None,
                    task_id=task.id,
                    title=subtask["title"],
                    is_done=False,
                    sort_order=subtask.get("sort_order", 0),
                )
            )
        return task

    def _apply(self, template_update: TemplateUpdate, occurrence: date | None) -> None:
        template = self.templates[template_update.template_id]
        if template.exhausted or template.instance_counter != template_update.expected_counter:
            raise PersistenceConflict(template.id, occurrence, expected_counter=template_update.expected_counter)
        self.templates[template.id] = replace(
            template,
            instance_counter=template_update.instance_counter,
            next_due_date=template_update.next_due_date,
            state=template_update.state,
        )
