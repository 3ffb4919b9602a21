from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import date, datetime
from typing import Optional

from taskcycle.domain.entities import OccurrenceTally
from taskcycle.domain.enums import LifecycleAction, OccurrenceStatus
from taskcycle.domain.errors import NotFoundError
from taskcycle.infra.repository import UnitOfWork

from .archetypes import ArchetypeRegistry, LifecycleContext
from .occurrence_creation import OccurrencePlanner, has_recurrence_ended
from .period_manager import PeriodManager

logger = logging.getLogger(__name__)


class OccurrencePreviewService:
    """Answers "when would the next occurrence start?" without touching the stores.

    An open latest occurrence is treated as if it were completed right now,
    so the answer matches what completing it would create.
    """

    def __init__(
        self,
        uow: UnitOfWork,
        planner: OccurrencePlanner,
        registry: ArchetypeRegistry,
        clock: Callable[[], datetime] = datetime.utcnow,
    ) -> None:
        self._uow = uow
        self._planner = planner
        self._registry = registry
        self._clock = clock

    def preview_next_occurrence_date(self, task_id: int) -> Optional[date]:
        task = self._uow.tasks.get_task_with_recurrence(task_id)
        if task is None:
            raise NotFoundError("Task", task_id)
        recurrence = task.recurrence
        if recurrence is None or not task.is_active:
            return None
        strategy = self._registry.for_task(task, recurrence)
        if strategy.archetype.is_fixed:
            return None
        today = self._clock().date()
        if has_recurrence_ended(recurrence, today):
            return None

        occurrences = self._uow.occurrences.get_occurrences_by_task_id(task_id)
        latest = self._uow.occurrences.get_latest_occurrence_by_task_id(task_id)
        if latest is not None and latest.is_open:
            state = PeriodManager.state_after_discard(recurrence, latest.start_date)
            if state is not None:
                recurrence = replace(
                    recurrence, last_period_start=state.start, completed_occurrences=state.completed
                )
            latest = replace(latest, status=OccurrenceStatus.COMPLETED)
            closed = [latest if o.id == latest.id else o for o in occurrences]
            action = strategy.on_completed(
                LifecycleContext(task, recurrence, latest, OccurrenceTally.of(closed))
            )
            if action is not LifecycleAction.CREATE_NEXT:
                return None

        plan = self._planner.plan(task, recurrence, latest, today, len(occurrences))
        logger.debug("Preview for task %s: %s", task_id, plan.start_date if plan else None)
        return plan.start_date if plan else None
