from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.orm import Session, sessionmaker

from taskcadence.domain.entities import SubtaskEntity, TaskEntity, TemplateEntity, TemplateUpdate
from taskcadence.domain.enums import TaskStatus, TemplateState
from taskcadence.domain.errors import PersistenceConflict, StorageUnavailable
from taskcadence.domain.rules import RecurrenceRule, rule_from_dict, rule_to_dict

from .db import SessionLocal
from .models import SubtaskModel, TaskModel, utcnow

logger = logging.getLogger(__name__)


def _to_entity(model: TaskModel) -> TaskEntity:
    return TaskEntity(
        id=model.id,
        title=model.title,
        description=model.description,
        status=TaskStatus(model.status),
        priority=model.priority,
        category=model.category,
        tags=model.tags,
        progress=model.progress,
        estimated_duration=model.estimated_duration,
        location=model.location,
        start_date=model.start_date,
        end_date=model.end_date,
        due_date=model.due_date,
        created_at=model.created_at,
        updated_at=model.updated_at,
        completed_at=model.completed_at,
        template_id=model.template_id,
        instance_number=model.instance_number,
        occurrence_date=model.occurrence_date,
    )


def _to_subtask(model: SubtaskModel) -> SubtaskEntity:
    return SubtaskEntity(
        id=model.id,
        task_id=model.task_id,
        title=model.title,
        is_done=model.is_done,
        sort_order=model.sort_order,
    )


def _to_template(model: TaskModel, subtasks: list[SubtaskModel]) -> TemplateEntity:
    return TemplateEntity(
        id=model.id,
        title=model.title,
        description=model.description,
        priority=model.priority,
        category=model.category,
        tags=model.tags,
        estimated_duration=model.estimated_duration,
        location=model.location,
        start_date=model.start_date,
        end_date=model.end_date,
        due_date=model.due_date,
        rule=rule_from_dict(model.recurrence_rule or {}),
        anchor_date=model.anchor_date,
        next_due_date=model.next_due_date,
        instance_counter=model.instance_counter,
        state=TemplateState(model.template_state or TemplateState.ACTIVE.value),
        created_at=model.created_at,
        updated_at=model.updated_at,
        subtasks=tuple(_to_subtask(subtask) for subtask in subtasks),
    )


class TaskRepository:
    """SQLAlchemy-backed store for templates and their instances."""

    def __init__(self, session_factory: sessionmaker = SessionLocal) -> None:
        self._session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        try:
            with self._session_factory() as session:
                yield session
        except (OperationalError, InterfaceError) as exc:
            logger.warning("Database unavailable: %s", exc)
            raise StorageUnavailable(str(exc)) from exc

    def create_template(
        self,
        data: dict,
        rule: RecurrenceRule,
        anchor: date,
        next_due_date: Optional[date],
    ) -> TemplateEntity:
        values = dict(data)
        subtask_titles = values.pop("subtasks", [])
        with self._session() as session:
            template = TaskModel(
                **values,
                is_template=True,
                recurrence_rule=rule_to_dict(rule),
                anchor_date=anchor,
                next_due_date=next_due_date,
                instance_counter=0,
                template_state=(
                    TemplateState.ACTIVE.value if next_due_date else TemplateState.EXHAUSTED.value
                ),
            )
            session.add(template)
            session.flush()
            for index, title in enumerate(subtask_titles, start=1):
                session.add(SubtaskModel(task_id=template.id, title=title, sort_order=index))
            session.commit()
            return self._load_template(session, template.id)

    def get_template(self, template_id: int) -> Optional[TemplateEntity]:
        with self._session() as session:
            return self._load_template(session, template_id)

    def get_task(self, task_id: int) -> Optional[TaskEntity]:
        with self._session() as session:
            task = session.get(TaskModel, task_id)
            return _to_entity(task) if task and not task.is_template else None

    def list_due_template_ids(self, now: date) -> list[int]:
        with self._session() as session:
            stmt = (
                select(TaskModel.id)
                .where(
                    TaskModel.is_template.is_(True),
                    TaskModel.template_state == TemplateState.ACTIVE.value,
                    TaskModel.next_due_date.is_not(None),
                    TaskModel.next_due_date <= now,
                )
                .order_by(TaskModel.next_due_date.asc(), TaskModel.id.asc())
            )
            return list(session.scalars(stmt))

    def find_instance(self, template_id: int, occurrence: date) -> Optional[TaskEntity]:
        with self._session() as session:
            stmt = select(TaskModel).where(
                TaskModel.template_id == template_id,
                TaskModel.occurrence_date == occurrence,
            )
            task = session.scalars(stmt).first()
            return _to_entity(task) if task else None

    def list_instances(self, template_id: int) -> list[TaskEntity]:
        with self._session() as session:
            stmt = (
                select(TaskModel)
                .where(TaskModel.template_id == template_id)
                .order_by(TaskModel.instance_number.asc())
            )
            return [_to_entity(task) for task in session.scalars(stmt)]

    def list_subtasks(self, task_id: int) -> list[SubtaskEntity]:
        with self._session() as session:
            return [_to_subtask(subtask) for subtask in self._subtasks_of(session, task_id)]

    def commit_occurrence(self, instance_data: dict, template_update: TemplateUpdate) -> TaskEntity:
        values = dict(instance_data)
        subtasks = values.pop("subtasks", [])
        occurrence = values["occurrence_date"]
        with self._session() as session:
            try:
                self._apply_update(session, template_update, occurrence)
                task = TaskModel(**values)
                session.add(task)
                session.flush()
                for subtask in subtasks:
                    session.add(
                        SubtaskModel(
                            task_id=task.id,
                            title=subtask["title"],
                            sort_order=subtask.get("sort_order", 0),
                        )
                    )
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise PersistenceConflict(template_update.template_id, occurrence) from exc
            session.refresh(task)
            return _to_entity(task)

    def update_template(self, template_update: TemplateUpdate) -> None:
        with self._session() as session:
            self._apply_update(session, template_update, None)
            session.commit()

    @staticmethod
    def _apply_update(session: Session, template_update: TemplateUpdate, occurrence: Optional[date]) -> None:
        # Optimistic check: the counter must still be the one the update was computed from.
        result = session.execute(
            update(TaskModel)
            .where(
                TaskModel.id == template_update.template_id,
                TaskModel.is_template.is_(True),
                TaskModel.template_state == TemplateState.ACTIVE.value,
                TaskModel.instance_counter == template_update.expected_counter,
            )
            .values(
                instance_counter=template_update.instance_counter,
                next_due_date=template_update.next_due_date,
                template_state=template_update.state.value,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            session.rollback()
            raise PersistenceConflict(
                template_update.template_id, occurrence, expected_counter=template_update.expected_counter
            )

    def _load_template(self, session: Session, template_id: int) -> Optional[TemplateEntity]:
        template = session.get(TaskModel, template_id)
        if not template or not template.is_template:
            return None
        return _to_template(template, self._subtasks_of(session, template_id))

    @staticmethod
    def _subtasks_of(session: Session, task_id: int) -> list[SubtaskModel]:
        stmt = (
            select(SubtaskModel)
            .where(SubtaskModel.task_id == task_id)
            .order_by(SubtaskModel.sort_order.asc(), SubtaskModel.id.asc())
        )
        return list(session.scalars(stmt))
