from __future__ import annotations

import logging
from datetime import date

from taskcadence.domain.describe import describe_rule
from taskcadence.domain.entities import TaskEntity, TemplateEntity
from taskcadence.domain.enums import PriorityLevel
from taskcadence.domain.occurrence import first_occurrence, upcoming_occurrences
from taskcadence.domain.rules import RecurrenceRule, Terminated
from taskcadence.domain.validation import ensure_valid

from .ports import TemplateRepo

logger = logging.getLogger(__name__)


class TemplateService:
    def __init__(self, repo: TemplateRepo) -> None:
        self._repo = repo

    def create_template(self, data: dict, rule: RecurrenceRule, anchor: date) -> TemplateEntity:
        """Validate ``rule`` and store a template whose cursor is the first occurrence.

        Raises InvalidRule with every violation when the rule is rejected.
        """
        ensure_valid(rule, anchor)
        first = first_occurrence(rule, anchor)
        next_due = None if isinstance(first, Terminated) else first
        template = self._repo.create_template(self._normalize_data(data), rule, anchor, next_due)
        logger.info(
            "Template %s created: %s, first due %s",
            template.id,
            describe_rule(rule, anchor),
            next_due.isoformat() if next_due else "never",
        )
        return template

    def get_template(self, template_id: int) -> TemplateEntity | None:
        return self._repo.get_template(template_id)

    def describe(self, template_id: int) -> str | None:
        template = self._repo.get_template(template_id)
        if not template:
            return None
        return describe_rule(template.rule, template.anchor_date)

    def preview(self, template_id: int, limit: int = 5) -> list[date]:
        template = self._repo.get_template(template_id)
        if not template:
            return []
        return upcoming_occurrences(template.rule, template.anchor_date, limit)

    def list_instances(self, template_id: int) -> list[TaskEntity]:
        return self._repo.list_instances(template_id)

    def _normalize_data(self, data: dict) -> dict:
        normalized = dict(data)
        if isinstance(normalized.get("priority"), PriorityLevel):
            normalized["priority"] = normalized["priority"].value
        if isinstance(normalized.get("tags"), (list, tuple)):
            normalized["tags"] = ",".join(tag.strip() for tag in normalized["tags"] if tag.strip())
        return normalized
