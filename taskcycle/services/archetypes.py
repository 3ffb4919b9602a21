"""Task archetypes as an explicit tagged union.

Each archetype gets one strategy object answering the same four questions:
where does the first occurrence go, where does the next one go, and what
happens to the task once an occurrence is completed or skipped.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Optional

from taskcycle.domain.dto import InitialDates
from taskcycle.domain.entities import OccurrenceEntity, OccurrenceTally, RecurrenceEntity, TaskEntity
from taskcycle.domain.enums import LifecycleAction, TaskArchetype
from taskcycle.domain.errors import ConfigurationError

from .date_calculator import (
    DEFAULT_LIMIT_DAYS,
    DEFAULT_TARGET_DAYS,
    RecurrenceDateCalculator,
    distributed_offset,
    first_match_on_or_after,
)
from .period_manager import PeriodState

_PERIOD_SEARCH_LIMIT = 400


def classify_task(task: TaskEntity, recurrence: Optional[RecurrenceEntity]) -> TaskArchetype:
    max_occurrences = recurrence.max_occurrences if recurrence else None
    many = max_occurrences is not None and max_occurrences > 1

    if task.is_fixed:
        return TaskArchetype.FIXED_REPETITIVE if many or _open_ended(recurrence) else TaskArchetype.FIXED_SINGLE
    if recurrence is None or recurrence.interval is None:
        return TaskArchetype.FINITE_RECURRING if many else TaskArchetype.SINGLE
    if recurrence.has_day_pattern or many:
        return TaskArchetype.HABIT_PLUS
    return TaskArchetype.HABIT


def _open_ended(recurrence: Optional[RecurrenceEntity]) -> bool:
    """No cap, but a day pattern or an end date still describes a series."""
    if recurrence is None or recurrence.max_occurrences is not None:
        return False
    return recurrence.has_day_pattern or recurrence.end_date is not None


@dataclass(frozen=True)
class OccurrencePlan:
    start_date: date
    target_date: date
    limit_date: date
    period: PeriodState


@dataclass(frozen=True)
class PlanningContext:
    task: TaskEntity
    recurrence: RecurrenceEntity
    period: PeriodState
    today: date
    previous: Optional[OccurrenceEntity] = None
    created_count: int = 0
    initial: InitialDates = field(default_factory=InitialDates)


@dataclass(frozen=True)
class LifecycleContext:
    task: TaskEntity
    recurrence: RecurrenceEntity
    occurrence: OccurrenceEntity
    tally: OccurrenceTally


class ArchetypeStrategy:
    archetype: TaskArchetype

    def __init__(self, calculator: RecurrenceDateCalculator) -> None:
        self._calculator = calculator

    def plan_first(self, ctx: PlanningContext) -> Optional[OccurrencePlan]:
        raise NotImplementedError

    def plan_next(self, ctx: PlanningContext) -> Optional[OccurrencePlan]:
        raise NotImplementedError

    def on_completed(self, ctx: LifecycleContext) -> LifecycleAction:
        raise NotImplementedError

    def on_skipped(self, ctx: LifecycleContext) -> LifecycleAction:
        return self.on_completed(ctx)

    def plan(self, ctx: PlanningContext) -> Optional[OccurrencePlan]:
        if ctx.previous is None:
            return self.plan_first(ctx)
        return self.plan_next(ctx)


class SingleStrategy(ArchetypeStrategy):
    archetype = TaskArchetype.SINGLE

    def plan_first(self, ctx: PlanningContext) -> Optional[OccurrencePlan]:
        start = ctx.today
        target, limit = _caller_window(start, ctx.initial)
        return OccurrencePlan(start, target, limit, ctx.period)

    def plan_next(self, ctx: PlanningContext) -> Optional[OccurrencePlan]:
        return None

    def on_completed(self, ctx: LifecycleContext) -> LifecycleAction:
        return LifecycleAction.DEACTIVATE


class FiniteRecurringStrategy(SingleStrategy):
    archetype = TaskArchetype.FINITE_RECURRING

    def plan_next(self, ctx: PlanningContext) -> Optional[OccurrencePlan]:
        if ctx.created_count >= (ctx.recurrence.max_occurrences or 1):
            return None
        start = self._calculator.next_occurrence_date(ctx.previous.start_date, ctx.recurrence)
        target, limit = self._calculator.occurrence_window(start, ctx.recurrence)
        return OccurrencePlan(start, target, limit, ctx.period)

    def on_completed(self, ctx: LifecycleContext) -> LifecycleAction:
        if ctx.tally.discarded < (ctx.recurrence.max_occurrences or 1):
            return LifecycleAction.CREATE_NEXT
        return LifecycleAction.DEACTIVATE


class HabitStrategy(ArchetypeStrategy):
    archetype = TaskArchetype.HABIT

    def plan_first(self, ctx: PlanningContext) -> Optional[OccurrencePlan]:
        period = _started(ctx.period, ctx.today)
        return self._at(period.start, ctx, period)

    def plan_next(self, ctx: PlanningContext) -> Optional[OccurrencePlan]:
        # anchored on the previous start, never on when it was completed
        start = ctx.previous.start_date + timedelta(days=ctx.recurrence.interval)
        return self._at(start, ctx, _started(ctx.period, ctx.today))

    def _at(self, start: date, ctx: PlanningContext, period: PeriodState) -> OccurrencePlan:
        target, limit = self._calculator.occurrence_window(start, ctx.recurrence)
        return OccurrencePlan(start, target, limit, period)

    def on_completed(self, ctx: LifecycleContext) -> LifecycleAction:
        return LifecycleAction.CREATE_NEXT


class HabitPlusStrategy(ArchetypeStrategy):
    archetype = TaskArchetype.HABIT_PLUS

    def plan_first(self, ctx: PlanningContext) -> Optional[OccurrencePlan]:
        return self.plan_next(ctx)

    def plan_next(self, ctx: PlanningContext) -> Optional[OccurrencePlan]:
        period = _started(ctx.period, ctx.today)
        if ctx.recurrence.has_day_pattern:
            return self._plan_by_pattern(ctx, period)
        return self._plan_distributed(ctx, period)

    def _plan_distributed(self, ctx: PlanningContext, period: PeriodState) -> OccurrencePlan:
        recurrence = ctx.recurrence
        offset = distributed_offset(period.completed, recurrence.interval, recurrence.max_occurrences)
        start = period.start + timedelta(days=offset)
        return OccurrencePlan(start, start, period.end, period)

    def _plan_by_pattern(self, ctx: PlanningContext, period: PeriodState) -> OccurrencePlan:
        recurrence = ctx.recurrence
        previous = ctx.previous
        if previous is None or previous.start_date < period.start:
            start = first_match_on_or_after(period.start, recurrence)
        else:
            start = self._calculator.next_occurrence_date(previous.start_date, recurrence)

        for _ in range(_PERIOD_SEARCH_LIMIT):
            if start < period.end:
                return OccurrencePlan(start, start, period.end, period)
            period = period.advanced()
            start = first_match_on_or_after(period.start, recurrence)
        raise ConfigurationError(
            f"Day pattern of recurrence {recurrence.id} never falls inside a {recurrence.interval}-day period"
        )

    def on_completed(self, ctx: LifecycleContext) -> LifecycleAction:
        return LifecycleAction.CREATE_NEXT


class FixedStrategy(ArchetypeStrategy):
    """Fixed tasks get every occurrence up front, so nothing is planned here."""

    def plan_first(self, ctx: PlanningContext) -> Optional[OccurrencePlan]:
        return None

    def plan_next(self, ctx: PlanningContext) -> Optional[OccurrencePlan]:
        return None

    def on_completed(self, ctx: LifecycleContext) -> LifecycleAction:
        if ctx.tally.total and ctx.tally.discarded == ctx.tally.total:
            return LifecycleAction.DEACTIVATE
        return LifecycleAction.NONE


class FixedSingleStrategy(FixedStrategy):
    archetype = TaskArchetype.FIXED_SINGLE


class FixedRepetitiveStrategy(FixedStrategy):
    archetype = TaskArchetype.FIXED_REPETITIVE


_STRATEGY_TYPES: dict[TaskArchetype, type[ArchetypeStrategy]] = {
    TaskArchetype.SINGLE: SingleStrategy,
    TaskArchetype.FINITE_RECURRING: FiniteRecurringStrategy,
    TaskArchetype.HABIT: HabitStrategy,
    TaskArchetype.HABIT_PLUS: HabitPlusStrategy,
    TaskArchetype.FIXED_SINGLE: FixedSingleStrategy,
    TaskArchetype.FIXED_REPETITIVE: FixedRepetitiveStrategy,
}


class ArchetypeRegistry:
    def __init__(self, calculator: RecurrenceDateCalculator | None = None) -> None:
        calculator = calculator or RecurrenceDateCalculator()
        self._strategies = {
            archetype: strategy_type(calculator) for archetype, strategy_type in _STRATEGY_TYPES.items()
        }

    def for_archetype(self, archetype: TaskArchetype) -> ArchetypeStrategy:
        return self._strategies[archetype]

    def for_task(self, task: TaskEntity, recurrence: Optional[RecurrenceEntity]) -> ArchetypeStrategy:
        return self.for_archetype(classify_task(task, recurrence))


def _started(period: PeriodState, today: date) -> PeriodState:
    if period.start is None:
        return PeriodState(start=today, completed=0, interval=period.interval)
    return period


def _caller_window(start: date, initial: InitialDates) -> tuple[date, date]:
    target = initial.target_date
    limit = initial.limit_date
    if limit is None:
        limit = start + timedelta(days=DEFAULT_LIMIT_DAYS)
        if target is not None:
            limit = max(target, limit)
    if target is None:
        target = min(limit, start + timedelta(days=DEFAULT_TARGET_DAYS))
    return target, limit
