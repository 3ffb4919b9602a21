from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date, timedelta
from typing import Optional

from taskcycle.domain.entities import RecurrenceEntity
from taskcycle.domain.errors import InvalidStateError, NotFoundError
from taskcycle.infra.repository import RecurrenceRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PeriodState:
    start: Optional[date]
    completed: int
    interval: int | None

    @property
    def end(self) -> Optional[date]:
        if self.start is None or not self.interval:
            return None
        return self.start + timedelta(days=self.interval)

    def contains(self, day: date) -> bool:
        if self.start is None or self.end is None:
            return False
        return self.start <= day < self.end

    def advanced(self) -> PeriodState:
        return replace(self, start=self.end, completed=0)


def period_cap(recurrence: RecurrenceEntity) -> int | None:
    """Occurrences a period holds before the next one starts.

    A plain habit gets one occurrence per period. A day pattern without an
    explicit cap only moves on once the pattern runs past the period end.
    """
    if recurrence.max_occurrences:
        return recurrence.max_occurrences
    if recurrence.has_day_pattern:
        return None
    return 1


class PeriodManager:
    def __init__(self, recurrences: RecurrenceRepository) -> None:
        self._recurrences = recurrences

    @staticmethod
    def current_state(recurrence: RecurrenceEntity) -> PeriodState:
        return PeriodState(
            start=recurrence.last_period_start,
            completed=recurrence.completed_occurrences or 0,
            interval=recurrence.interval,
        )

    @staticmethod
    def should_start_new_period(recurrence: RecurrenceEntity, today: date) -> bool:
        if not recurrence.interval or recurrence.last_period_start is None:
            return False
        cap = period_cap(recurrence)
        if cap is not None and (recurrence.completed_occurrences or 0) >= cap:
            return True
        # stale period: wall clock already left the window
        return today >= PeriodManager.current_state(recurrence).end

    @staticmethod
    def state_after_discard(recurrence: RecurrenceEntity, occurrence_start: date) -> Optional[PeriodState]:
        """Period state once an occurrence starting on ``occurrence_start`` is discarded.

        Inside the current window the counter goes up while below the cap. An
        occurrence starting on or after the window end opens the next period
        holding itself. None for an occurrence from an earlier period, which
        leaves the counter alone.
        """
        state = PeriodManager.current_state(recurrence)
        if not recurrence.is_period_bound:
            return replace(state, completed=state.completed + 1)
        if state.contains(occurrence_start):
            cap = period_cap(recurrence)
            if cap is not None and state.completed >= cap:
                return None
            return replace(state, completed=state.completed + 1)
        if state.end is not None and occurrence_start >= state.end:
            return replace(state.advanced(), completed=1)
        return None

    def resolve_state(self, recurrence: RecurrenceEntity, today: date) -> PeriodState:
        """State the next occurrence will be planned against. Never persists."""
        state = self.current_state(recurrence)
        if self.should_start_new_period(recurrence, today):
            return state.advanced()
        return state

    def advance_period(self, recurrence: RecurrenceEntity) -> RecurrenceEntity:
        return self.commit_state(recurrence, self.current_state(recurrence).advanced())

    def commit_state(self, recurrence: RecurrenceEntity, state: PeriodState) -> RecurrenceEntity:
        current = self.current_state(recurrence)
        if state == current:
            return recurrence
        if current.start is not None and (state.start is None or state.start < current.start):
            raise InvalidStateError(
                f"Period start of recurrence {recurrence.id} cannot move back "
                f"from {current.start} to {state.start}"
            )
        updated = self._recurrences.update_recurrence(
            recurrence.id,
            {"last_period_start": state.start, "completed_occurrences": state.completed},
        )
        if updated is None:
            raise NotFoundError("Recurrence", recurrence.id)
        if state.start != current.start:
            logger.info(
                "Recurrence %s advanced period %s -> %s", recurrence.id, current.start, state.start
            )
        return updated

    def increment_completed_occurrences(self, recurrence_id: int, occurrence_start: date) -> bool:
        """Count one discarded occurrence toward the period it started in.

        A late completion of an overdue occurrence from an earlier period
        leaves the current period's progress untouched. Recurrences without an
        interval keep a lifetime counter.
        """
        recurrence = self._recurrences.get_recurrence_by_id(recurrence_id)
        if recurrence is None:
            raise NotFoundError("Recurrence", recurrence_id)

        state = self.state_after_discard(recurrence, occurrence_start)
        if state is None:
            current = self.current_state(recurrence)
            logger.debug(
                "Recurrence %s: occurrence starting %s not counted in period [%s, %s) holding %s",
                recurrence_id, occurrence_start, current.start, current.end, current.completed,
            )
            return False

        self.commit_state(recurrence, state)
        return True
