from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from typing import Optional

from taskcadence.domain.entities import CONTENT_FIELDS, TemplateEntity, TemplateUpdate
from taskcadence.domain.enums import TaskStatus, TemplateState
from taskcadence.domain.errors import PersistenceConflict, RecurrenceError, StorageUnavailable
from taskcadence.domain.occurrence import compute_next_occurrence
from taskcadence.domain.rules import Terminated

from .ports import TemplateStore

logger = logging.getLogger(__name__)


@dataclass
class TemplateOutcome:
    template_id: int
    created: list[int] = field(default_factory=list)
    repaired: bool = False
    conflict: bool = False
    error: str | None = None
    skipped: bool = False


@dataclass
class SweepReport:
    now: date
    created: list[int] = field(default_factory=list)
    repaired: list[int] = field(default_factory=list)
    conflicts: list[int] = field(default_factory=list)
    failures: dict[int, str] = field(default_factory=dict)
    cancelled: bool = False

    def add(self, outcome: TemplateOutcome) -> None:
        if outcome.skipped:
            self.cancelled = True
            return
        self.created.extend(outcome.created)
        if outcome.repaired:
            self.repaired.append(outcome.template_id)
        if outcome.conflict:
            self.conflicts.append(outcome.template_id)
        if outcome.error is not None:
            self.failures[outcome.template_id] = outcome.error


def build_instance_data(template: TemplateEntity, occurrence: date, instance_number: int) -> dict:
    """Instance row for ``occurrence``: template content, dates moved by the same delta."""
    delta = occurrence - template.anchor_date
    data = {name: getattr(template, name) for name in CONTENT_FIELDS}
    data.update(
        status=TaskStatus.TODO.value,
        progress=0,
        template_id=template.id,
        instance_number=instance_number,
        occurrence_date=occurrence,
        start_date=_shift(template.start_date, delta),
        end_date=_shift(template.end_date, delta),
        due_date=_shift(template.due_date, delta) or occurrence,
        subtasks=[
            {"title": subtask.title, "sort_order": subtask.sort_order}
            for subtask in template.subtasks
        ],
    )
    return data


def advance_template(template: TemplateEntity, counter: int, occurrence: date) -> TemplateUpdate:
    """Template cursor after ``occurrence`` became instance number ``counter``."""
    outcome = compute_next_occurrence(template.rule, counter, template.anchor_date, occurrence)
    if isinstance(outcome, Terminated):
        return TemplateUpdate(
            template_id=template.id,
            expected_counter=template.instance_counter,
            instance_counter=counter,
            next_due_date=None,
            state=TemplateState.EXHAUSTED,
        )
    return TemplateUpdate(
        template_id=template.id,
        expected_counter=template.instance_counter,
        instance_counter=counter,
        next_due_date=outcome,
        state=TemplateState.ACTIVE,
    )


class InstanceMaterializer:
    """
    Turns due templates into task instances.

    Each template is handled under its own lock and re-read before work starts,
    so two sweeps in one process never race on the same template. Across
    processes the store's optimistic counter check and the unique
    (template_id, occurrence_date) key give the same guarantee.
    """

    def __init__(
        self,
        store: TemplateStore,
        *,
        catch_up_limit: int = 100,
        max_workers: int = 1,
    ) -> None:
        self._store = store
        self._catch_up_limit = max(int(catch_up_limit), 1)
        self._max_workers = max(int(max_workers), 1)
        # template_id -> [lock, holders]; entries go away once nobody holds or waits on them
        self._locks: dict[int, list] = {}
        self._locks_guard = threading.Lock()

    def materialize_due(self, now: date, stop_event: Optional[threading.Event] = None) -> list[int]:
        return self.sweep(now, stop_event).created

    def sweep(self, now: date, stop_event: Optional[threading.Event] = None) -> SweepReport:
        report = SweepReport(now=now)
        template_ids = self._store.list_due_template_ids(now)
        logger.info("Sweep now=%s due_templates=%s", now.isoformat(), len(template_ids))

        if self._max_workers == 1 or len(template_ids) <= 1:
            for template_id in template_ids:
                report.add(self._process(template_id, now, stop_event))
        else:
            with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
                futures = [
                    pool.submit(self._process, template_id, now, stop_event) for template_id in template_ids
                ]
                try:
                    for future in futures:
                        report.add(future.result())
                except StorageUnavailable:
                    for future in futures:
                        future.cancel()
                    raise

        logger.info(
            "Sweep done created=%s repaired=%s conflicts=%s failures=%s cancelled=%s",
            len(report.created),
            len(report.repaired),
            len(report.conflicts),
            len(report.failures),
            report.cancelled,
        )
        return report

    @contextmanager
    def _template_lock(self, template_id: int) -> Iterator[None]:
        with self._locks_guard:
            entry = self._locks.setdefault(template_id, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[template_id]

    def _process(
        self,
        template_id: int,
        now: date,
        stop_event: Optional[threading.Event],
    ) -> TemplateOutcome:
        outcome = TemplateOutcome(template_id)
        if stop_event is not None and stop_event.is_set():
            outcome.skipped = True
            return outcome

        with self._template_lock(template_id):
            try:
                template = self._store.get_template(template_id)
                for _ in range(self._catch_up_limit):
                    if template is None or not template.is_due(now):
                        break
                    template = self._materialize_one(template, outcome)
                else:
                    if template is not None and template.is_due(now):
                        logger.warning(
                            "Template %s still behind after %s occurrences; continuing next sweep",
                            template_id,
                            self._catch_up_limit,
                        )
            except StorageUnavailable:
                raise
            except PersistenceConflict as exc:
                logger.info("Template %s skipped: %s", template_id, exc)
                outcome.conflict = True
            except (RecurrenceError, ValueError, OverflowError) as exc:
                logger.error("Template %s failed: %s", template_id, exc)
                outcome.error = str(exc)
        return outcome

    def _materialize_one(self, template: TemplateEntity, outcome: TemplateOutcome) -> TemplateEntity:
        occurrence = template.next_due_date
        existing = self._store.find_instance(template.id, occurrence)

        if existing is not None:
            counter = existing.instance_number or template.instance_counter + 1
            update = advance_template(template, counter, occurrence)
            self._store.update_template(update)
            outcome.repaired = True
            logger.warning(
                "Template %s occurrence %s already materialized as task %s; counters repaired",
                template.id,
                occurrence.isoformat(),
                existing.id,
            )
        else:
            counter = template.instance_counter + 1
            update = advance_template(template, counter, occurrence)
            instance = self._store.commit_occurrence(
                build_instance_data(template, occurrence, counter), update
            )
            outcome.created.append(instance.id)
            logger.info(
                "Template %s -> task %s (#%s) due %s",
                template.id,
                instance.id,
                counter,
                occurrence.isoformat(),
            )

        if update.state == TemplateState.EXHAUSTED:
            logger.info("Template %s exhausted after %s occurrences", template.id, update.instance_counter)

        return replace(
            template,
            instance_counter=update.instance_counter,
            next_due_date=update.next_due_date,
            state=update.state,
        )


def _shift(value: Optional[date], delta: timedelta) -> Optional[date]:
    return value + delta if value is not None else None
