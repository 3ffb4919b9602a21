from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime

import pytest

from fakes import OWNER, FakeDatabase, FakeOccurrenceRepository, FakeUnitOfWork
from taskcycle.domain.dto import CreateRecurrence, CreateTask
from taskcycle.domain.enums import OccurrenceStatus


def _latest(db: FakeDatabase, task_id: int):
    return max((o for o in db.occurrences.values() if o.task_id == task_id), key=lambda o: o.id)


def test_preview_matches_next_distributed_start(scheduler, db) -> None:
    task = scheduler.create_task(
        OWNER, CreateTask(name="gym", recurrence=CreateRecurrence(interval=7, max_occurrences=4))
    )
    recurrence_before = db.recurrences[task.recurrence_id]
    commits_before = db.commits

    first = scheduler.preview_next_occurrence_date(task.id)
    second = scheduler.preview_next_occurrence_date(task.id)

    assert first == second == date(2024, 10, 23)
    assert db.recurrences[task.recurrence_id] == recurrence_before
    assert db.commits == commits_before

    scheduler.complete_occurrence(_latest(db, task.id).id)
    assert _latest(db, task.id).start_date == first


def test_preview_for_habit_and_finite(scheduler, db) -> None:
    habit = scheduler.create_task(OWNER, CreateTask(name="review", recurrence=CreateRecurrence(interval=7)))
    finite = scheduler.create_task(
        OWNER,
        CreateTask(name="three", target_date=date(2024, 10, 22), recurrence=CreateRecurrence(max_occurrences=3)),
    )

    assert scheduler.preview_next_occurrence_date(habit.id) == date(2024, 10, 28)
    assert scheduler.preview_next_occurrence_date(finite.id) == date(2024, 10, 22)


def test_preview_is_none_when_nothing_follows(scheduler, db) -> None:
    single = scheduler.create_task(OWNER, CreateTask(name="once", limit_date=date(2024, 10, 25)))
    fixed = scheduler.create_task(
        OWNER,
        CreateTask(
            name="dentist",
            is_fixed=True,
            fixed_start=datetime(2024, 10, 24, 14, 0),
            fixed_end=datetime(2024, 10, 24, 15, 0),
        ),
    )

    assert scheduler.preview_next_occurrence_date(single.id) is None
    assert scheduler.preview_next_occurrence_date(fixed.id) is None


def test_failed_cascade_rolls_back_everything(scheduler, db, monkeypatch) -> None:
    task = scheduler.create_task(OWNER, CreateTask(name="review", recurrence=CreateRecurrence(interval=7)))
    occurrence = _latest(db, task.id)
    commits_before = db.commits

    def broken_create(self, data):
        raise RuntimeError("store unavailable")

    monkeypatch.setattr(FakeOccurrenceRepository, "create_occurrence", broken_create)

    with pytest.raises(RuntimeError):
        scheduler.complete_occurrence(occurrence.id)

    assert db.occurrences[occurrence.id].status is OccurrenceStatus.PENDING
    assert db.recurrences[task.recurrence_id].completed_occurrences == 0
    assert db.commits == commits_before


def test_process_recurring_tasks_isolates_failures(scheduler, db, clock, caplog) -> None:
    healthy = scheduler.create_task(OWNER, CreateTask(name="review", recurrence=CreateRecurrence(interval=7)))
    broken = scheduler.create_task(OWNER, CreateTask(name="water", recurrence=CreateRecurrence(interval=2)))
    with FakeUnitOfWork(db) as uow:
        uow.occurrences.complete_occurrence(_latest(db, healthy.id).id)
        uow.commit()
    db.tasks[broken.id] = replace(db.tasks[broken.id], recurrence_id=None)
    clock.advance(days=7)

    with caplog.at_level(logging.ERROR):
        created = scheduler.process_recurring_tasks(OWNER)

    assert [(o.task_id, o.start_date) for o in created] == [(healthy.id, date(2024, 10, 28))]
    assert db.recurrences[healthy.recurrence_id].last_period_start == date(2024, 10, 28)
    assert f"Failed to process task {broken.id}" in caplog.text


def test_process_skips_tasks_with_open_occurrences(scheduler, db) -> None:
    scheduler.create_task(OWNER, CreateTask(name="review", recurrence=CreateRecurrence(interval=7)))

    assert scheduler.process_recurring_tasks(OWNER) == []
    assert scheduler.process_recurring_tasks("someone-else") == []
