from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date, datetime
from typing import Optional

from taskcycle.domain.dto import CreateOccurrence, InitialDates
from taskcycle.domain.entities import OccurrenceEntity, RecurrenceEntity, TaskEntity
from taskcycle.domain.errors import InvalidStateError, NotFoundError
from taskcycle.infra.repository import UnitOfWork

from .archetypes import ArchetypeRegistry, OccurrencePlan, PlanningContext
from .period_manager import PeriodManager

logger = logging.getLogger(__name__)


def may_create_next(latest: Optional[OccurrenceEntity]) -> bool:
    """A task gets a new occurrence only once its latest one is discarded."""
    return latest is None or latest.is_discarded


def has_recurrence_ended(recurrence: RecurrenceEntity, today: date) -> bool:
    # period-bound recurrences run until end_date or manual deactivation
    return recurrence.end_date is not None and today > recurrence.end_date


class OccurrencePlanner:
    """Decides the next occurrence's dates and period without writing anything."""

    def __init__(self, period_manager: PeriodManager, registry: ArchetypeRegistry) -> None:
        self._period_manager = period_manager
        self._registry = registry

    def plan(
        self,
        task: TaskEntity,
        recurrence: RecurrenceEntity,
        latest: Optional[OccurrenceEntity],
        today: date,
        created_count: int = 0,
        initial: Optional[InitialDates] = None,
    ) -> Optional[OccurrencePlan]:
        strategy = self._registry.for_task(task, recurrence)
        ctx = PlanningContext(
            task=task,
            recurrence=recurrence,
            period=self._period_manager.resolve_state(recurrence, today),
            today=today,
            previous=latest,
            created_count=created_count,
            initial=initial or InitialDates(),
        )
        return strategy.plan(ctx)


class OccurrenceCreationService:
    def __init__(
        self,
        uow: UnitOfWork,
        period_manager: PeriodManager,
        planner: OccurrencePlanner,
        clock: Callable[[], datetime] = datetime.utcnow,
    ) -> None:
        self._uow = uow
        self._period_manager = period_manager
        self._planner = planner
        self._clock = clock

    def create_next_occurrence(
        self,
        task_id: int,
        initial: Optional[InitialDates] = None,
        force: bool = False,
    ) -> Optional[OccurrenceEntity]:
        """Persist the next occurrence of a task, or return None when none is due.

        ``force`` skips the open-occurrence gate; backlog catch-up uses it to
        lay down occurrences for periods that passed unattended. A forced plan
        that would not start after the open occurrence creates nothing.
        """
        task = self._uow.tasks.get_task_with_recurrence(task_id)
        if task is None:
            raise NotFoundError("Task", task_id)
        recurrence = task.recurrence
        if recurrence is None:
            raise InvalidStateError(f"Task {task_id} does not have a recurrence configured")
        if not task.is_active:
            logger.debug("Task %s is inactive, no occurrence created", task_id)
            return None

        latest = self._uow.occurrences.get_latest_occurrence_by_task_id(task_id)
        if not force and not may_create_next(latest):
            logger.debug("Task %s still has occurrence %s open", task_id, latest.id)
            return None

        today = self._clock().date()
        if has_recurrence_ended(recurrence, today):
            logger.info("Recurrence of task %s ended on %s, deactivating", task_id, recurrence.end_date)
            self._uow.tasks.complete_task(task_id)
            return None

        created_count = len(self._uow.occurrences.get_occurrences_by_task_id(task_id))
        plan = self._planner.plan(task, recurrence, latest, today, created_count, initial)
        if plan is None:
            logger.debug("Task %s has nothing left to schedule", task_id)
            return None
        if latest is not None and latest.is_open and plan.start_date <= latest.start_date:
            # forced past an open occurrence, the plan must land on a later day
            logger.info(
                "Task %s: next start %s does not move past open occurrence %s, nothing created",
                task_id, plan.start_date, latest.id,
            )
            return None

        if recurrence.is_period_bound:
            self._period_manager.commit_state(recurrence, plan.period)

        target_time = initial.target_time_consumption if initial else None
        if target_time is None and latest is not None:
            target_time = latest.target_time_consumption

        occurrence = self._uow.occurrences.create_occurrence(
            CreateOccurrence(
                task_id=task_id,
                start_date=plan.start_date,
                target_date=plan.target_date,
                limit_date=plan.limit_date,
                target_time_consumption=target_time,
            )
        )
        logger.info(
            "Created occurrence %s for task %s: start %s target %s limit %s",
            occurrence.id, task_id, plan.start_date, plan.target_date, plan.limit_date,
        )
        return occurrence
