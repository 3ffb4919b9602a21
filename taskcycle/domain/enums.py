from __future__ import annotations

from enum import IntEnum, StrEnum


class OccurrenceStatus(StrEnum):
    PENDING = "Pending"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    SKIPPED = "Skipped"

    @property
    def is_open(self) -> bool:
        return self in OPEN_STATUSES

    @property
    def is_discarded(self) -> bool:
        return self in DISCARDED_STATUSES


OPEN_STATUSES = frozenset({OccurrenceStatus.PENDING, OccurrenceStatus.IN_PROGRESS})
DISCARDED_STATUSES = frozenset({OccurrenceStatus.COMPLETED, OccurrenceStatus.SKIPPED})


class TaskArchetype(StrEnum):
    SINGLE = "single"
    FINITE_RECURRING = "finite_recurring"
    HABIT = "habit"
    HABIT_PLUS = "habit_plus"
    FIXED_SINGLE = "fixed_single"
    FIXED_REPETITIVE = "fixed_repetitive"

    @property
    def is_fixed(self) -> bool:
        return self in (TaskArchetype.FIXED_SINGLE, TaskArchetype.FIXED_REPETITIVE)


class DayOfWeek(StrEnum):
    MON = "Mon"
    TUE = "Tue"
    WED = "Wed"
    THU = "Thu"
    FRI = "Fri"
    SAT = "Sat"
    SUN = "Sun"

    @property
    def weekday(self) -> int:
        """Index matching ``date.weekday()`` (Monday is 0)."""
        return _WEEKDAY_INDEX[self]


_WEEKDAY_INDEX = {day: index for index, day in enumerate(DayOfWeek)}


class LifecycleAction(IntEnum):
    NONE = 0
    CREATE_NEXT = 1
    DEACTIVATE = 2
