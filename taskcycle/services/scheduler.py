from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Optional

from taskcycle.domain.dto import CreateRecurrence, CreateTask, InitialDates
from taskcycle.domain.entities import CalendarEventEntity, OccurrenceEntity, TaskEntity
from taskcycle.domain.errors import ConfigurationError, InvalidStateError, NotFoundError, SchedulingError
from taskcycle.infra.repository import SqlAlchemyUnitOfWork, UnitOfWork

from .archetypes import ArchetypeRegistry
from .date_calculator import RecurrenceDateCalculator
from .event_completion import EventCompletionService
from .fixed_task import FixedPair, FixedTaskService
from .occurrence_completion import OccurrenceCompletionService
from .occurrence_creation import OccurrenceCreationService, OccurrencePlanner, has_recurrence_ended
from .occurrence_preview import OccurrencePreviewService
from .period_manager import PeriodManager

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Services:
    uow: UnitOfWork
    creation: OccurrenceCreationService
    preview: OccurrencePreviewService
    fixed: FixedTaskService
    completion: OccurrenceCompletionService
    events: EventCompletionService


class SchedulerFacade:
    """Entry points of the scheduling core.

    Every call runs in its own unit of work: it commits when the call returns
    and rolls back when anything raises, so a cascade is never half applied.
    """

    def __init__(
        self,
        uow_factory: Callable[[], UnitOfWork] = SqlAlchemyUnitOfWork,
        clock: Callable[[], datetime] = datetime.utcnow,
        calculator: RecurrenceDateCalculator | None = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._clock = clock
        self._calculator = calculator or RecurrenceDateCalculator()
        self._registry = ArchetypeRegistry(self._calculator)

    def _services(self, uow: UnitOfWork) -> _Services:
        period_manager = PeriodManager(uow.recurrences)
        planner = OccurrencePlanner(period_manager, self._registry)
        creation = OccurrenceCreationService(uow, period_manager, planner, self._clock)
        completion = OccurrenceCompletionService(uow, creation, period_manager, self._registry, self._clock)
        return _Services(
            uow=uow,
            creation=creation,
            preview=OccurrencePreviewService(uow, planner, self._registry, self._clock),
            fixed=FixedTaskService(uow, self._calculator),
            completion=completion,
            events=EventCompletionService(uow, completion, self._clock),
        )

    @contextmanager
    def _transaction(self) -> Iterator[_Services]:
        with self._uow_factory() as uow:
            yield self._services(uow)
            uow.commit()

    @contextmanager
    def _read_only(self) -> Iterator[_Services]:
        # never committed, the unit of work rolls back on exit
        with self._uow_factory() as uow:
            yield self._services(uow)

    def create_task(self, owner_id: str, data: CreateTask) -> TaskEntity:
        """Store a task with its recurrence and lay down its first occurrence(s)."""
        recurrence = data.recurrence or CreateRecurrence(max_occurrences=1)
        if recurrence.interval is not None and recurrence.last_period_start is None:
            recurrence = replace(recurrence, last_period_start=self._clock().date())
        if data.is_fixed:
            if data.fixed_start is None or data.fixed_end is None:
                raise ConfigurationError("A fixed task requires both a start and an end time")
        elif recurrence.interval is None and not data.initial_dates.has_dates:
            raise ConfigurationError("A target date or a limit date is required")

        with self._transaction() as s:
            task = s.uow.tasks.create_task(owner_id, data, recurrence)
            if data.is_fixed:
                s.fixed.create_fixed_task_events(
                    task.id, owner_id, data.fixed_start, data.fixed_end, task.recurrence
                )
            else:
                s.creation.create_next_occurrence(task.id, data.initial_dates)
            created = s.uow.tasks.get_task_with_recurrence(task.id)
        logger.info("Created task %s '%s' for %s", created.id, created.name, owner_id)
        return created

    def create_next_occurrence(
        self, task_id: int, initial: Optional[InitialDates] = None
    ) -> Optional[OccurrenceEntity]:
        with self._transaction() as s:
            return s.creation.create_next_occurrence(task_id, initial)

    def create_backlog_occurrence(self, task_id: int) -> Optional[OccurrenceEntity]:
        """Creation primitive for backlog catch-up, ignoring any open occurrence."""
        with self._transaction() as s:
            return s.creation.create_next_occurrence(task_id, force=True)

    def create_fixed_task_events(self, task_id: int, start: datetime, finish: datetime) -> list[FixedPair]:
        with self._transaction() as s:
            task = s.uow.tasks.get_task_with_recurrence(task_id)
            if task is None:
                raise NotFoundError("Task", task_id)
            if not task.is_fixed:
                raise InvalidStateError(f"Task {task_id} is not a fixed task")
            return s.fixed.create_fixed_task_events(task_id, task.owner_id, start, finish, task.recurrence)

    def complete_occurrence(
        self,
        occurrence_id: int,
        completed_at: Optional[datetime] = None,
        time_consumed: float | None = None,
    ) -> OccurrenceEntity:
        with self._transaction() as s:
            return s.completion.complete_occurrence(occurrence_id, completed_at, time_consumed)

    def skip_occurrence(self, occurrence_id: int) -> OccurrenceEntity:
        with self._transaction() as s:
            return s.completion.skip_occurrence(occurrence_id)

    def complete_calendar_event(
        self,
        event_id: int,
        dedicated_time: float | None = None,
        complete_occurrence: bool = False,
        completed_at: Optional[datetime] = None,
    ) -> CalendarEventEntity:
        with self._transaction() as s:
            return s.events.complete_calendar_event(event_id, dedicated_time, complete_occurrence, completed_at)

    def skip_calendar_event(self, event_id: int, skip_occurrence: bool = False) -> CalendarEventEntity:
        with self._transaction() as s:
            return s.events.skip_calendar_event(event_id, skip_occurrence)

    def preview_next_occurrence_date(self, task_id: int) -> Optional[date]:
        with self._read_only() as s:
            return s.preview.preview_next_occurrence_date(task_id)

    def has_recurrence_ended(self, task_id: int) -> bool:
        with self._read_only() as s:
            task = s.uow.tasks.get_task_with_recurrence(task_id)
            if task is None:
                raise NotFoundError("Task", task_id)
            if task.recurrence is None:
                return False
            return has_recurrence_ended(task.recurrence, self._clock().date())

    def process_recurring_tasks(self, owner_id: str) -> list[OccurrenceEntity]:
        """Give every active non-fixed task of an owner its due occurrence.

        Each task runs in its own unit of work; a task that fails is logged
        and the rest still get processed.
        """
        with self._read_only() as s:
            tasks = [task for task in s.uow.tasks.get_tasks_by_owner(owner_id, active_only=True) if not task.is_fixed]

        created: list[OccurrenceEntity] = []
        for task in tasks:
            try:
                occurrence = self.create_next_occurrence(task.id)
            except SchedulingError:
                logger.exception("Failed to process task %s", task.id)
                continue
            if occurrence is not None:
                created.append(occurrence)
        logger.info("Processed %s task(s) for %s, %s occurrence(s) created", len(tasks), owner_id, len(created))
        return created
