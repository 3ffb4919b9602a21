from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Optional

from .enums import DayOfWeek, OccurrenceStatus


@dataclass(frozen=True)
class RecurrenceEntity:
    id: int | None
    interval: int | None = None
    max_occurrences: int | None = None
    completed_occurrences: int = 0
    last_period_start: Optional[date] = None
    days_of_week: tuple[DayOfWeek, ...] = ()
    days_of_month: tuple[int, ...] = ()
    end_date: Optional[date] = None

    @property
    def has_day_pattern(self) -> bool:
        return bool(self.days_of_week or self.days_of_month)

    @property
    def is_period_bound(self) -> bool:
        return self.interval is not None


@dataclass(frozen=True)
class TaskEntity:
    id: int | None
    owner_id: str
    name: str
    description: str = ""
    importance: int = 5
    is_active: bool = True
    is_fixed: bool = False
    fixed_start_time: Optional[time] = None
    fixed_end_time: Optional[time] = None
    recurrence_id: int | None = None
    recurrence: Optional[RecurrenceEntity] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


@dataclass(frozen=True)
class OccurrenceEntity:
    id: int | None
    task_id: int
    start_date: date
    target_date: Optional[date]
    limit_date: Optional[date]
    status: OccurrenceStatus = OccurrenceStatus.PENDING
    target_time_consumption: float | None = None
    time_consumed: float = 0.0
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        return self.status.is_open

    @property
    def is_discarded(self) -> bool:
        return self.status.is_discarded


@dataclass(frozen=True)
class CalendarEventEntity:
    id: int | None
    owner_id: str
    occurrence_id: int | None
    start: datetime
    finish: datetime
    is_fixed: bool = False
    is_completed: bool = False
    dedicated_time: float = 0.0
    completed_at: Optional[datetime] = None


@dataclass(frozen=True)
class OccurrenceWithTask:
    occurrence: OccurrenceEntity
    task: TaskEntity


@dataclass(frozen=True)
class EventDetails:
    event: CalendarEventEntity
    occurrence: Optional[OccurrenceEntity] = None
    task: Optional[TaskEntity] = None


@dataclass(frozen=True)
class OccurrenceTally:
    completed: int = 0
    skipped: int = 0
    open: int = 0

    @property
    def discarded(self) -> int:
        return self.completed + self.skipped

    @property
    def total(self) -> int:
        return self.discarded + self.open

    @classmethod
    def of(cls, occurrences: list[OccurrenceEntity]) -> OccurrenceTally:
        completed = sum(1 for o in occurrences if o.status == OccurrenceStatus.COMPLETED)
        skipped = sum(1 for o in occurrences if o.status == OccurrenceStatus.SKIPPED)
        return cls(
            completed=completed,
            skipped=skipped,
            open=len(occurrences) - completed - skipped,
        )
