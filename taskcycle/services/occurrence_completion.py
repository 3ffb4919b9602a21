from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Optional

from taskcycle.domain.entities import OccurrenceEntity, OccurrenceTally, OccurrenceWithTask
from taskcycle.domain.enums import LifecycleAction, OccurrenceStatus
from taskcycle.domain.errors import InvalidStateError, NotFoundError
from taskcycle.infra.repository import UnitOfWork

from .archetypes import ArchetypeRegistry, LifecycleContext
from .occurrence_creation import OccurrenceCreationService
from .period_manager import PeriodManager

logger = logging.getLogger(__name__)


class OccurrenceCompletionService:
    """Closes occurrences and cascades into the owning task's lifecycle."""

    def __init__(
        self,
        uow: UnitOfWork,
        creation: OccurrenceCreationService,
        period_manager: PeriodManager,
        registry: ArchetypeRegistry,
        clock: Callable[[], datetime] = datetime.utcnow,
    ) -> None:
        self._uow = uow
        self._creation = creation
        self._period_manager = period_manager
        self._registry = registry
        self._clock = clock

    def complete_occurrence(
        self,
        occurrence_id: int,
        completed_at: Optional[datetime] = None,
        time_consumed: float | None = None,
    ) -> OccurrenceEntity:
        found = self._load(occurrence_id)
        occurrence = found.occurrence
        if not occurrence.is_open:
            logger.info("Occurrence %s is already %s", occurrence_id, occurrence.status)
            return occurrence

        completed_at = completed_at or self._clock()
        events = self._uow.events.get_events_by_occurrence_id(occurrence_id)
        for event in events:
            if not event.is_completed:
                self._uow.events.complete_event(event.id, completed_at)
        if time_consumed is not None:
            self._uow.occurrences.update_occurrence(occurrence_id, {"time_consumed": time_consumed})
        elif events:
            self._uow.events.sync_occurrence_time_from_events(occurrence_id)

        if not self._uow.occurrences.complete_occurrence(occurrence_id, completed_at):
            raise InvalidStateError(f"Occurrence {occurrence_id} was closed concurrently")
        logger.info("Completed occurrence %s of task %s", occurrence_id, found.task.id)
        return self._after_discard(found, OccurrenceStatus.COMPLETED)

    def skip_occurrence(self, occurrence_id: int) -> OccurrenceEntity:
        found = self._load(occurrence_id)
        occurrence = found.occurrence
        if not occurrence.is_open:
            logger.info("Occurrence %s is already %s", occurrence_id, occurrence.status)
            return occurrence

        for event in self._uow.events.get_events_by_occurrence_id(occurrence_id):
            self._uow.events.delete_event(event.id)

        if not self._uow.occurrences.skip_occurrence(occurrence_id):
            raise InvalidStateError(f"Occurrence {occurrence_id} was closed concurrently")
        logger.info("Skipped occurrence %s of task %s", occurrence_id, found.task.id)
        return self._after_discard(found, OccurrenceStatus.SKIPPED)

    def _load(self, occurrence_id: int) -> OccurrenceWithTask:
        found = self._uow.occurrences.get_occurrence_with_task(occurrence_id)
        if found is None:
            raise NotFoundError("Occurrence", occurrence_id)
        return found

    def _after_discard(self, found: OccurrenceWithTask, status: OccurrenceStatus) -> OccurrenceEntity:
        task = found.task
        recurrence = task.recurrence
        if recurrence is not None:
            # attributed to the period the occurrence started in, not to today
            self._period_manager.increment_completed_occurrences(recurrence.id, found.occurrence.start_date)
            recurrence = self._uow.recurrences.get_recurrence_by_id(recurrence.id)

        closed = self._uow.occurrences.get_occurrence_with_task(found.occurrence.id).occurrence
        ctx = LifecycleContext(
            task=task,
            recurrence=recurrence,
            occurrence=closed,
            tally=OccurrenceTally.of(self._uow.occurrences.get_occurrences_by_task_id(task.id)),
        )
        strategy = self._registry.for_task(task, recurrence)
        if status is OccurrenceStatus.SKIPPED:
            action = strategy.on_skipped(ctx)
        else:
            action = strategy.on_completed(ctx)

        if action is LifecycleAction.DEACTIVATE:
            self._uow.tasks.complete_task(task.id)
            logger.info("Task %s (%s) finished", task.id, strategy.archetype)
        elif action is LifecycleAction.CREATE_NEXT:
            self._creation.create_next_occurrence(task.id)
        return closed
