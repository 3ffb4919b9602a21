from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from itertools import islice, takewhile
from typing import Optional

from taskcycle.domain.dto import CreateEvent, CreateOccurrence
from taskcycle.domain.entities import CalendarEventEntity, OccurrenceEntity, RecurrenceEntity
from taskcycle.domain.enums import TaskArchetype
from taskcycle.domain.errors import ConfigurationError, NotFoundError
from taskcycle.infra.repository import UnitOfWork

from .archetypes import classify_task
from .date_calculator import RecurrenceDateCalculator

logger = logging.getLogger(__name__)

FixedPair = tuple[OccurrenceEntity, CalendarEventEntity]


def _at_time_of(day: date, start: datetime, finish: datetime) -> tuple[datetime, datetime]:
    event_start = datetime.combine(day, start.time())
    event_finish = datetime.combine(day, finish.time())
    if event_finish <= event_start:
        event_finish += timedelta(days=1)
    return event_start, event_finish


class FixedTaskService:
    """Lays down every occurrence of a fixed task together with its calendar block."""

    def __init__(self, uow: UnitOfWork, calculator: RecurrenceDateCalculator | None = None) -> None:
        self._uow = uow
        self._calculator = calculator or RecurrenceDateCalculator()

    def create_fixed_task_events(
        self,
        task_id: int,
        owner_id: str,
        start: Optional[datetime],
        finish: Optional[datetime],
        recurrence: RecurrenceEntity,
    ) -> list[FixedPair]:
        if start is None or finish is None:
            raise ConfigurationError(f"Fixed task {task_id} needs both a start and a finish time")
        if finish <= start:
            raise ConfigurationError(f"Fixed task {task_id} must finish after it starts")

        task = self._uow.tasks.get_task_with_recurrence(task_id)
        if task is None:
            raise NotFoundError("Task", task_id)
        if classify_task(task, recurrence) is TaskArchetype.FIXED_REPETITIVE:
            slots = [_at_time_of(day, start, finish) for day in self.fixed_dates(start.date(), recurrence)]
            if not slots:
                raise ConfigurationError(
                    f"Recurrence {recurrence.id} yields no dates on or after {start.date()}"
                )
        else:
            slots = [(start, finish)]

        pairs = [self._create_pair(task_id, owner_id, slot_start, slot_finish) for slot_start, slot_finish in slots]
        logger.info("Created %s fixed occurrence(s) for task %s", len(pairs), task_id)
        return pairs

    def fixed_dates(self, first_day: date, recurrence: RecurrenceEntity) -> list[date]:
        if recurrence.max_occurrences is None and recurrence.end_date is None:
            raise ConfigurationError(
                f"Fixed recurrence {recurrence.id} needs max_occurrences or an end date to bound its series"
            )
        dates = self._calculator.matching_dates(first_day, recurrence)
        if recurrence.end_date is not None:
            dates = takewhile(lambda day: day <= recurrence.end_date, dates)
        if recurrence.max_occurrences is not None:
            dates = islice(dates, recurrence.max_occurrences)
        return list(dates)

    def _create_pair(self, task_id: int, owner_id: str, start: datetime, finish: datetime) -> FixedPair:
        occurrence = self._uow.occurrences.create_occurrence(
            CreateOccurrence(
                task_id=task_id,
                start_date=start.date(),
                target_date=start.date(),
                limit_date=finish.date(),
            )
        )
        event = self._uow.events.create_event(
            owner_id,
            CreateEvent(occurrence_id=occurrence.id, is_fixed=True, start=start, finish=finish),
        )
        return occurrence, event
