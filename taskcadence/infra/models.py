from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)

from .db import Base


def utcnow() -> datetime:
    return datetime.utcnow()


class TaskModel(Base):
    __tablename__ = "tasks"
    __table_args__ = (
        UniqueConstraint("template_id", "occurrence_date", name="uq_tasks_template_occurrence"),
    )

    id = Column(Integer, primary_key=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False, default="")
    status = Column(String(20), nullable=False, default="todo", index=True)
    priority = Column(Integer, nullable=False, default=2)
    category = Column(String(100), nullable=False, default="General")
    tags = Column(Text, nullable=False, default="")
    progress = Column(Integer, nullable=False, default=0)
    estimated_duration = Column(Integer, nullable=True)
    location = Column(Text, nullable=True)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    due_date = Column(Date, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    completed_at = Column(DateTime, nullable=True)

    is_template = Column(Boolean, nullable=False, default=False, index=True)
    recurrence_rule = Column(JSON, nullable=True)
    anchor_date = Column(Date, nullable=True)
    next_due_date = Column(Date, nullable=True, index=True)
    instance_counter = Column(Integer, nullable=False, default=0)
    template_state = Column(String(20), nullable=True)

    template_id = Column(Integer, ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True, index=True)
    instance_number = Column(Integer, nullable=True)
    occurrence_date = Column(Date, nullable=True)


class SubtaskModel(Base):
    __tablename__ = "subtasks"

    id = Column(Integer, primary_key=True)
    task_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    is_done = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    sort_order = Column(Integer, nullable=False, default=0)
