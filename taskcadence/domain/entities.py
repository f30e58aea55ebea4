from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from .enums import TaskStatus, TemplateState
from .rules import RecurrenceRule

CONTENT_FIELDS = (
    "title",
    "description",
    "category",
    "tags",
    "priority",
    "estimated_duration",
    "location",
)


@dataclass(frozen=True)
class SubtaskEntity:
    id: int | None
    task_id: int
    title: str
    is_done: bool
    sort_order: int


@dataclass(frozen=True)
class TaskEntity:
    id: int | None
    title: str
    description: str
    status: TaskStatus
    priority: int
    category: str
    tags: str
    progress: int
    estimated_duration: int | None
    location: str | None
    start_date: Optional[date]
    end_date: Optional[date]
    due_date: Optional[date]
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime]
    template_id: int | None = None
    instance_number: int | None = None
    occurrence_date: Optional[date] = None


@dataclass(frozen=True)
class TemplateEntity:
    id: int
    title: str
    description: str
    priority: int
    category: str
    tags: str
    estimated_duration: int | None
    location: str | None
    start_date: Optional[date]
    end_date: Optional[date]
    due_date: Optional[date]
    rule: RecurrenceRule
    anchor_date: date
    next_due_date: Optional[date]
    instance_counter: int
    state: TemplateState
    created_at: datetime
    updated_at: datetime
    subtasks: tuple[SubtaskEntity, ...] = field(default_factory=tuple)

    @property
    def exhausted(self) -> bool:
        return self.state == TemplateState.EXHAUSTED

    def is_due(self, now: date) -> bool:
        return not self.exhausted and self.next_due_date is not None and self.next_due_date <= now


@dataclass(frozen=True)
class TemplateUpdate:
    """New cursor state for a template, guarded by the counter it was computed from."""

    template_id: int
    expected_counter: int
    instance_counter: int
    next_due_date: Optional[date]
    state: TemplateState

    def __post_init__(self) -> None:
        if self.state == TemplateState.EXHAUSTED and self.next_due_date is not None:
            raise ValueError("an exhausted template has no next due date")
        if self.state == TemplateState.ACTIVE and self.next_due_date is None:
            raise ValueError("an active template needs a next due date")
