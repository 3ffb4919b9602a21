from __future__ import annotations

from datetime import date, datetime, time

import pytest

from fakes import OWNER, FakeDatabase, FakeUnitOfWork
from taskcycle.domain.dto import CreateEvent, CreateRecurrence, CreateTask
from taskcycle.domain.enums import DayOfWeek, OccurrenceStatus, TaskArchetype
from taskcycle.domain.errors import ConfigurationError, InvalidStateError
from taskcycle.services.archetypes import classify_task


def _occurrences(db: FakeDatabase, task_id: int):
    return sorted((o for o in db.occurrences.values() if o.task_id == task_id), key=lambda o: o.id)


def _events(db: FakeDatabase, occurrence_id: int):
    return [e for e in db.events.values() if e.occurrence_id == occurrence_id]


def _standup(scheduler, **recurrence):
    values = {"max_occurrences": 3, "days_of_week": (DayOfWeek.MON, DayOfWeek.WED)}
    values.update(recurrence)
    return scheduler.create_task(
        OWNER,
        CreateTask(
            name="standup",
            is_fixed=True,
            fixed_start=datetime(2024, 10, 21, 9, 0),
            fixed_end=datetime(2024, 10, 21, 9, 30),
            recurrence=CreateRecurrence(**values),
        ),
    )


def test_fixed_repetitive_creates_all_pairs_up_front(scheduler, db) -> None:
    task = _standup(scheduler)

    occurrences = _occurrences(db, task.id)
    assert [o.start_date for o in occurrences] == [date(2024, 10, 21), date(2024, 10, 23), date(2024, 10, 28)]
    for occurrence in occurrences:
        (event,) = _events(db, occurrence.id)
        assert event.is_fixed
        assert event.start == datetime.combine(occurrence.start_date, time(9, 0))
        assert (event.finish - event.start).total_seconds() == 1800


def test_fixed_repetitive_bounded_by_end_date(scheduler, db) -> None:
    task = _standup(
        scheduler, max_occurrences=10, days_of_week=(DayOfWeek.MON,), end_date=date(2024, 11, 4)
    )

    assert [o.start_date for o in _occurrences(db, task.id)] == [
        date(2024, 10, 21),
        date(2024, 10, 28),
        date(2024, 11, 4),
    ]


def test_fixed_pattern_without_cap_runs_to_end_date(scheduler, db) -> None:
    task = _standup(scheduler, max_occurrences=None, end_date=date(2024, 11, 4))

    assert classify_task(task, task.recurrence) is TaskArchetype.FIXED_REPETITIVE
    occurrences = _occurrences(db, task.id)
    assert [o.start_date for o in occurrences] == [
        date(2024, 10, 21),
        date(2024, 10, 23),
        date(2024, 10, 28),
        date(2024, 10, 30),
        date(2024, 11, 4),
    ]
    assert all(len(_events(db, o.id)) == 1 for o in occurrences)


def test_fixed_pattern_without_any_bound_is_rejected(scheduler, db) -> None:
    with pytest.raises(ConfigurationError):
        _standup(scheduler, max_occurrences=None)
    assert db.tasks == {}
    assert db.occurrences == {}


def test_fixed_slot_crossing_midnight_rolls_finish(scheduler, db) -> None:
    task = scheduler.create_task(
        OWNER,
        CreateTask(
            name="night shift",
            is_fixed=True,
            fixed_start=datetime(2024, 10, 21, 22, 0),
            fixed_end=datetime(2024, 10, 22, 6, 0),
            recurrence=CreateRecurrence(max_occurrences=2, interval=None, days_of_week=(DayOfWeek.TUE,)),
        ),
    )

    occurrence = _occurrences(db, task.id)[0]
    (event,) = _events(db, occurrence.id)
    assert event.start == datetime(2024, 10, 22, 22, 0)
    assert event.finish == datetime(2024, 10, 23, 6, 0)


def test_fixed_single_creates_one_pair(scheduler, db) -> None:
    task = scheduler.create_task(
        OWNER,
        CreateTask(
            name="dentist",
            is_fixed=True,
            fixed_start=datetime(2024, 10, 24, 14, 0),
            fixed_end=datetime(2024, 10, 24, 15, 0),
        ),
    )

    (occurrence,) = _occurrences(db, task.id)
    (event,) = _events(db, occurrence.id)
    assert occurrence.start_date == date(2024, 10, 24)
    assert (event.start, event.finish) == (datetime(2024, 10, 24, 14, 0), datetime(2024, 10, 24, 15, 0))


def test_fixed_task_rejects_inverted_slot(scheduler, db) -> None:
    with pytest.raises(ConfigurationError):
        scheduler.create_task(
            OWNER,
            CreateTask(
                name="broken",
                is_fixed=True,
                fixed_start=datetime(2024, 10, 24, 15, 0),
                fixed_end=datetime(2024, 10, 24, 14, 0),
            ),
        )
    assert db.tasks == {}


def test_create_fixed_task_events_requires_fixed_task(scheduler, db) -> None:
    task = scheduler.create_task(OWNER, CreateTask(name="once", limit_date=date(2024, 10, 25)))

    with pytest.raises(InvalidStateError):
        scheduler.create_fixed_task_events(task.id, datetime(2024, 10, 21, 9), datetime(2024, 10, 21, 10))


def test_fixed_task_deactivates_when_every_occurrence_discarded(scheduler, db) -> None:
    task = _standup(scheduler)
    first, second, third = _occurrences(db, task.id)

    scheduler.complete_occurrence(first.id)
    scheduler.complete_occurrence(second.id)
    assert db.tasks[task.id].is_active

    scheduler.skip_occurrence(third.id)

    assert not db.tasks[task.id].is_active
    assert len(_occurrences(db, task.id)) == 3
    assert _events(db, third.id) == []


def test_completing_fixed_event_completes_occurrence(scheduler, db) -> None:
    task = _standup(scheduler)
    first = _occurrences(db, task.id)[0]
    (event,) = _events(db, first.id)

    updated = scheduler.complete_calendar_event(event.id)

    assert updated.is_completed
    assert updated.dedicated_time == 0.5
    occurrence = db.occurrences[first.id]
    assert occurrence.status is OccurrenceStatus.COMPLETED
    assert occurrence.time_consumed == 0.5


def test_future_event_cannot_be_completed(scheduler, db) -> None:
    task = _standup(scheduler)
    second = _occurrences(db, task.id)[1]
    (event,) = _events(db, second.id)

    with pytest.raises(InvalidStateError):
        scheduler.complete_calendar_event(event.id)
    assert not db.events[event.id].is_completed
    assert db.occurrences[second.id].status is OccurrenceStatus.PENDING


def test_skipping_fixed_event_skips_occurrence(scheduler, db) -> None:
    task = _standup(scheduler)
    first = _occurrences(db, task.id)[0]
    (event,) = _events(db, first.id)

    scheduler.skip_calendar_event(event.id)

    assert db.occurrences[first.id].status is OccurrenceStatus.SKIPPED
    assert event.id not in db.events


def _flexible_event(db: FakeDatabase, occurrence_id: int, start: datetime, finish: datetime):
    with FakeUnitOfWork(db) as uow:
        event = uow.events.create_event(
            OWNER, CreateEvent(occurrence_id=occurrence_id, is_fixed=False, start=start, finish=finish)
        )
        uow.commit()
    return event


def test_flexible_event_completion_only_syncs_time(scheduler, db) -> None:
    task = scheduler.create_task(OWNER, CreateTask(name="essay", limit_date=date(2024, 10, 25)))
    (occurrence,) = _occurrences(db, task.id)
    morning = _flexible_event(db, occurrence.id, datetime(2024, 10, 21, 7, 0), datetime(2024, 10, 21, 8, 0))
    late = _flexible_event(db, occurrence.id, datetime(2024, 10, 21, 8, 0), datetime(2024, 10, 21, 8, 30))

    scheduler.complete_calendar_event(morning.id)
    assert db.occurrences[occurrence.id].status is OccurrenceStatus.PENDING
    assert db.occurrences[occurrence.id].time_consumed == 1.0

    scheduler.complete_calendar_event(late.id, dedicated_time=0.25, complete_occurrence=True)

    assert db.occurrences[occurrence.id].status is OccurrenceStatus.COMPLETED
    assert db.occurrences[occurrence.id].time_consumed == 1.25
    assert not db.tasks[task.id].is_active


def test_flexible_event_skip_keeps_occurrence_open(scheduler, db) -> None:
    task = scheduler.create_task(OWNER, CreateTask(name="essay", limit_date=date(2024, 10, 25)))
    (occurrence,) = _occurrences(db, task.id)
    event = _flexible_event(db, occurrence.id, datetime(2024, 10, 21, 7, 0), datetime(2024, 10, 21, 8, 0))

    updated = scheduler.skip_calendar_event(event.id)

    assert not updated.is_completed
    assert db.occurrences[occurrence.id].status is OccurrenceStatus.PENDING

    scheduler.skip_calendar_event(event.id, skip_occurrence=True)

    assert db.occurrences[occurrence.id].status is OccurrenceStatus.SKIPPED
    assert not db.tasks[task.id].is_active
