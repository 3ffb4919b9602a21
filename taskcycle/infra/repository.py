from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from taskcycle.domain.dto import CreateEvent, CreateOccurrence, CreateRecurrence, CreateTask
from taskcycle.domain.entities import (
    CalendarEventEntity,
    EventDetails,
    OccurrenceEntity,
    OccurrenceWithTask,
    RecurrenceEntity,
    TaskEntity,
)
from taskcycle.domain.enums import OPEN_STATUSES, DayOfWeek, OccurrenceStatus

from .db import SessionLocal
from .models import CalendarEventModel, OccurrenceModel, RecurrenceModel, TaskModel, utcnow

OPEN_STATUS_VALUES = [status.value for status in OPEN_STATUSES]


def _recurrence_to_entity(model: RecurrenceModel) -> RecurrenceEntity:
    return RecurrenceEntity(
        id=model.id,
        interval=model.interval,
        max_occurrences=model.max_occurrences,
        completed_occurrences=model.completed_occurrences or 0,
        last_period_start=model.last_period_start,
        days_of_week=tuple(DayOfWeek(day) for day in model.days_of_week or ()),
        days_of_month=tuple(int(day) for day in model.days_of_month or ()),
        end_date=model.end_date,
    )


def _task_to_entity(model: TaskModel, with_recurrence: bool = False) -> TaskEntity:
    recurrence = None
    if with_recurrence and model.recurrence is not None:
        recurrence = _recurrence_to_entity(model.recurrence)
    return TaskEntity(
        id=model.id,
        owner_id=model.owner_id,
        name=model.name,
        description=model.description,
        importance=model.importance,
        is_active=model.is_active,
        is_fixed=model.is_fixed,
        fixed_start_time=model.fixed_start_time,
        fixed_end_time=model.fixed_end_time,
        recurrence_id=model.recurrence_id,
        recurrence=recurrence,
        created_at=model.created_at,
        completed_at=model.completed_at,
    )


def _occurrence_to_entity(model: OccurrenceModel) -> OccurrenceEntity:
    return OccurrenceEntity(
        id=model.id,
        task_id=model.task_id,
        start_date=model.start_date,
        target_date=model.target_date,
        limit_date=model.limit_date,
        status=OccurrenceStatus(model.status),
        target_time_consumption=model.target_time_consumption,
        time_consumed=model.time_consumed or 0.0,
        completed_at=model.completed_at,
        created_at=model.created_at,
    )


def _event_to_entity(model: CalendarEventModel) -> CalendarEventEntity:
    return CalendarEventEntity(
        id=model.id,
        owner_id=model.owner_id,
        occurrence_id=model.occurrence_id,
        start=model.start,
        finish=model.finish,
        is_fixed=model.is_fixed,
        is_completed=model.is_completed,
        dedicated_time=model.dedicated_time or 0.0,
        completed_at=model.completed_at,
    )


def _hours_between(start: datetime, finish: datetime) -> float:
    return max((finish - start).total_seconds(), 0.0) / 3600


def _recurrence_values(data: dict) -> dict:
    values = dict(data)
    if "days_of_week" in values:
        values["days_of_week"] = [DayOfWeek(day).value for day in values["days_of_week"] or ()] or None
    if "days_of_month" in values:
        values["days_of_month"] = [int(day) for day in values["days_of_month"] or ()] or None
    return values


class TaskRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def get_task_with_recurrence(self, task_id: int) -> Optional[TaskEntity]:
        task = self._session.get(TaskModel, task_id)
        return _task_to_entity(task, with_recurrence=True) if task else None

    def get_tasks_by_owner(self, owner_id: str, active_only: bool = False) -> list[TaskEntity]:
        stmt = select(TaskModel).where(TaskModel.owner_id == owner_id)
        if active_only:
            stmt = stmt.where(TaskModel.is_active.is_(True))
        stmt = stmt.order_by(TaskModel.created_at.asc(), TaskModel.id.asc())
        return [_task_to_entity(task, with_recurrence=True) for task in self._session.scalars(stmt).unique()]

    def create_task(self, owner_id: str, data: CreateTask, recurrence: CreateRecurrence) -> TaskEntity:
        recurrence_model = RecurrenceModel(
            **_recurrence_values({
                "interval": recurrence.interval,
                "max_occurrences": recurrence.max_occurrences,
                "completed_occurrences": 0,
                "last_period_start": recurrence.last_period_start,
                "days_of_week": recurrence.days_of_week,
                "days_of_month": recurrence.days_of_month,
                "end_date": recurrence.end_date,
            })
        )
        task = TaskModel(
            owner_id=owner_id,
            name=data.name,
            description=data.description,
            importance=data.importance,
            is_active=True,
            is_fixed=data.is_fixed,
            fixed_start_time=data.fixed_start.time() if data.fixed_start else None,
            fixed_end_time=data.fixed_end.time() if data.fixed_end else None,
            recurrence=recurrence_model,
        )
        self._session.add(task)
        self._session.flush()
        return _task_to_entity(task, with_recurrence=True)

    def update_task(self, task_id: int, data: dict) -> Optional[TaskEntity]:
        task = self._session.get(TaskModel, task_id)
        if not task:
            return None
        for key, value in data.items():
            setattr(task, key, value)
        self._session.flush()
        return _task_to_entity(task, with_recurrence=True)

    def complete_task(self, task_id: int) -> Optional[TaskEntity]:
        task = self._session.get(TaskModel, task_id)
        if not task:
            return None
        if task.is_active:
            task.is_active = False
            task.completed_at = utcnow()
            self._session.flush()
        return _task_to_entity(task, with_recurrence=True)

    def delete_task(self, task_id: int) -> None:
        task = self._session.get(TaskModel, task_id)
        if not task:
            return
        occurrence_ids = select(OccurrenceModel.id).where(OccurrenceModel.task_id == task_id)
        self._session.execute(
            delete(CalendarEventModel).where(CalendarEventModel.occurrence_id.in_(occurrence_ids))
        )
        self._session.execute(delete(OccurrenceModel).where(OccurrenceModel.task_id == task_id))
        recurrence = task.recurrence
        self._session.delete(task)
        if recurrence is not None:
            self._session.delete(recurrence)
        self._session.flush()


class RecurrenceRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def get_recurrence_by_id(self, recurrence_id: int) -> Optional[RecurrenceEntity]:
        recurrence = self._session.get(RecurrenceModel, recurrence_id)
        return _recurrence_to_entity(recurrence) if recurrence else None

    def update_recurrence(self, recurrence_id: int, data: dict) -> Optional[RecurrenceEntity]:
        recurrence = self._session.get(RecurrenceModel, recurrence_id)
        if not recurrence:
            return None
        for key, value in _recurrence_values(data).items():
            setattr(recurrence, key, value)
        self._session.flush()
        return _recurrence_to_entity(recurrence)


class OccurrenceRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def get_latest_occurrence_by_task_id(self, task_id: int) -> Optional[OccurrenceEntity]:
        stmt = (
            select(OccurrenceModel)
            .where(OccurrenceModel.task_id == task_id)
            .order_by(OccurrenceModel.start_date.desc(), OccurrenceModel.id.desc())
            .limit(1)
        )
        occurrence = self._session.scalars(stmt).first()
        return _occurrence_to_entity(occurrence) if occurrence else None

    def get_occurrences_by_task_id(self, task_id: int) -> list[OccurrenceEntity]:
        stmt = (
            select(OccurrenceModel)
            .where(OccurrenceModel.task_id == task_id)
            .order_by(OccurrenceModel.start_date.asc(), OccurrenceModel.id.asc())
        )
        return [_occurrence_to_entity(occurrence) for occurrence in self._session.scalars(stmt)]

    def get_occurrence_with_task(self, occurrence_id: int) -> Optional[OccurrenceWithTask]:
        occurrence = self._session.get(OccurrenceModel, occurrence_id)
        if not occurrence:
            return None
        return OccurrenceWithTask(
            occurrence=_occurrence_to_entity(occurrence),
            task=_task_to_entity(occurrence.task, with_recurrence=True),
        )

    def create_occurrence(self, data: CreateOccurrence) -> OccurrenceEntity:
        occurrence = OccurrenceModel(
            task_id=data.task_id,
            start_date=data.start_date,
            target_date=data.target_date,
            limit_date=data.limit_date,
            target_time_consumption=data.target_time_consumption,
            time_consumed=0.0,
            status=OccurrenceStatus.PENDING.value,
        )
        self._session.add(occurrence)
        self._session.flush()
        return _occurrence_to_entity(occurrence)

    def update_occurrence(self, occurrence_id: int, data: dict) -> Optional[OccurrenceEntity]:
        occurrence = self._session.get(OccurrenceModel, occurrence_id)
        if not occurrence:
            return None
        for key, value in data.items():
            if key == "status":
                value = OccurrenceStatus(value).value
            setattr(occurrence, key, value)
        self._session.flush()
        return _occurrence_to_entity(occurrence)

    def complete_occurrence(self, occurrence_id: int, completed_at: Optional[datetime] = None) -> bool:
        return self._close(occurrence_id, OccurrenceStatus.COMPLETED, completed_at or utcnow())

    def skip_occurrence(self, occurrence_id: int) -> bool:
        return self._close(occurrence_id, OccurrenceStatus.SKIPPED, None)

    def _close(self, occurrence_id: int, status: OccurrenceStatus, completed_at: Optional[datetime]) -> bool:
        result = self._session.execute(
            update(OccurrenceModel)
            .where(
                OccurrenceModel.id == occurrence_id,
                OccurrenceModel.status.in_(OPEN_STATUS_VALUES),
            )
            .values(status=status.value, completed_at=completed_at, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        changed = result.rowcount == 1
        occurrence = self._session.get(OccurrenceModel, occurrence_id)
        if changed and occurrence is not None:
            self._session.refresh(occurrence)
        return changed


class CalendarEventRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def get_event_with_details(self, event_id: int) -> Optional[EventDetails]:
        event = self._session.get(CalendarEventModel, event_id)
        if not event:
            return None
        occurrence = None
        if event.occurrence_id is not None:
            occurrence = self._session.get(OccurrenceModel, event.occurrence_id)
        return EventDetails(
            event=_event_to_entity(event),
            occurrence=_occurrence_to_entity(occurrence) if occurrence else None,
            task=_task_to_entity(occurrence.task, with_recurrence=True) if occurrence else None,
        )

    def get_events_by_occurrence_id(self, occurrence_id: int) -> list[CalendarEventEntity]:
        stmt = (
            select(CalendarEventModel)
            .where(CalendarEventModel.occurrence_id == occurrence_id)
            .order_by(CalendarEventModel.start.asc(), CalendarEventModel.id.asc())
        )
        return [_event_to_entity(event) for event in self._session.scalars(stmt)]

    def create_event(self, owner_id: str, data: CreateEvent) -> CalendarEventEntity:
        event = CalendarEventModel(
            owner_id=owner_id,
            occurrence_id=data.occurrence_id,
            is_fixed=data.is_fixed,
            start=data.start,
            finish=data.finish,
            is_completed=False,
            dedicated_time=0.0,
        )
        self._session.add(event)
        self._session.flush()
        return _event_to_entity(event)

    def update_event(self, event_id: int, data: dict) -> Optional[CalendarEventEntity]:
        event = self._session.get(CalendarEventModel, event_id)
        if not event:
            return None
        for key, value in data.items():
            setattr(event, key, value)
        self._session.flush()
        return _event_to_entity(event)

    def complete_event(self, event_id: int, completed_at: Optional[datetime] = None) -> Optional[CalendarEventEntity]:
        event = self._session.get(CalendarEventModel, event_id)
        if not event:
            return None
        event.is_completed = True
        event.completed_at = completed_at or utcnow()
        if not event.dedicated_time:
            event.dedicated_time = _hours_between(event.start, event.finish)
        self._session.flush()
        return _event_to_entity(event)

    def delete_event(self, event_id: int) -> None:
        event = self._session.get(CalendarEventModel, event_id)
        if not event:
            return
        self._session.delete(event)
        self._session.flush()

    def sync_occurrence_time_from_events(self, occurrence_id: int) -> float:
        events = self.get_events_by_occurrence_id(occurrence_id)
        total = sum(event.dedicated_time for event in events if event.is_completed)
        occurrence = self._session.get(OccurrenceModel, occurrence_id)
        if occurrence:
            occurrence.time_consumed = total
            self._session.flush()
        return total


class UnitOfWork:
    """One transaction spanning the four stores.

    Used as a context manager: leaving the block without ``commit()`` (or
    through an exception) rolls everything back.
    """

    tasks: TaskRepository
    recurrences: RecurrenceRepository
    occurrences: OccurrenceRepository
    events: CalendarEventRepository

    def __enter__(self) -> UnitOfWork:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.rollback()

    def commit(self) -> None:
        raise NotImplementedError

    def rollback(self) -> None:
        raise NotImplementedError


class SqlAlchemyUnitOfWork(UnitOfWork):
    def __init__(self, session_factory=SessionLocal) -> None:
        self._session_factory = session_factory
        self._session: Session | None = None

    def __enter__(self) -> SqlAlchemyUnitOfWork:
        self._session = self._session_factory()
        self.tasks = TaskRepository(self._session)
        self.recurrences = RecurrenceRepository(self._session)
        self.occurrences = OccurrenceRepository(self._session)
        self.events = CalendarEventRepository(self._session)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            super().__exit__(exc_type, exc, tb)
        finally:
            self._session.close()
            self._session = None

    def commit(self) -> None:
        self._session.commit()

    def rollback(self) -> None:
        self._session.rollback()
