from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from .enums import DayOfWeek


@dataclass(frozen=True)
class CreateRecurrence:
    interval: int | None = None
    max_occurrences: int | None = None
    days_of_week: tuple[DayOfWeek, ...] = ()
    days_of_month: tuple[int, ...] = ()
    end_date: Optional[date] = None
    last_period_start: Optional[date] = None


@dataclass(frozen=True)
class InitialDates:
    target_date: Optional[date] = None
    limit_date: Optional[date] = None
    target_time_consumption: float | None = None

    @property
    def has_dates(self) -> bool:
        return self.target_date is not None or self.limit_date is not None


@dataclass(frozen=True)
class CreateTask:
    name: str
    description: str = ""
    importance: int = 5
    is_fixed: bool = False
    fixed_start: Optional[datetime] = None
    fixed_end: Optional[datetime] = None
    recurrence: Optional[CreateRecurrence] = None
    target_date: Optional[date] = None
    limit_date: Optional[date] = None
    target_time_consumption: float | None = None

    @property
    def initial_dates(self) -> InitialDates:
        return InitialDates(
            target_date=self.target_date,
            limit_date=self.limit_date,
            target_time_consumption=self.target_time_consumption,
        )


@dataclass(frozen=True)
class CreateOccurrence:
    task_id: int
    start_date: date
    target_date: Optional[date]
    limit_date: Optional[date]
    target_time_consumption: float | None = None


@dataclass(frozen=True)
class CreateEvent:
    occurrence_id: int | None
    is_fixed: bool
    start: datetime
    finish: datetime
