from __future__ import annotations

from datetime import date

import pytest

from fakes import FakeDatabase, FakeRecurrenceRepository
from taskcycle.domain.entities import RecurrenceEntity
from taskcycle.domain.enums import DayOfWeek
from taskcycle.domain.errors import InvalidStateError, NotFoundError
from taskcycle.services.period_manager import PeriodManager, PeriodState, period_cap


def _manager(recurrence: RecurrenceEntity) -> tuple[PeriodManager, FakeDatabase]:
    db = FakeDatabase()
    db.recurrences[recurrence.id] = recurrence
    return PeriodManager(FakeRecurrenceRepository(db)), db


def _habit_plus(**overrides) -> RecurrenceEntity:
    values = {
        "id": 1,
        "interval": 7,
        "max_occurrences": 4,
        "last_period_start": date(2024, 10, 21),
    }
    values.update(overrides)
    return RecurrenceEntity(**values)


def test_period_cap() -> None:
    assert period_cap(RecurrenceEntity(id=1, interval=7)) == 1
    assert period_cap(RecurrenceEntity(id=1, interval=7, max_occurrences=4)) == 4
    assert period_cap(RecurrenceEntity(id=1, interval=7, days_of_week=(DayOfWeek.MON,))) is None


def test_new_period_starts_when_cap_reached() -> None:
    today = date(2024, 10, 22)
    assert not PeriodManager.should_start_new_period(_habit_plus(completed_occurrences=3), today)
    assert PeriodManager.should_start_new_period(_habit_plus(completed_occurrences=4), today)


def test_stale_period_falls_back_to_wall_clock() -> None:
    assert PeriodManager.should_start_new_period(_habit_plus(completed_occurrences=1), date(2024, 10, 28))


def test_advance_period_moves_on_fixed_grid() -> None:
    manager, db = _manager(_habit_plus(completed_occurrences=4))

    updated = manager.advance_period(db.recurrences[1])

    assert updated.last_period_start == date(2024, 10, 28)
    assert updated.completed_occurrences == 0


def test_resolve_state_never_persists() -> None:
    recurrence = _habit_plus(completed_occurrences=4)
    manager, db = _manager(recurrence)

    state = manager.resolve_state(recurrence, date(2024, 10, 25))

    assert state == PeriodState(start=date(2024, 10, 28), completed=0, interval=7)
    assert db.recurrences[1] == recurrence


def test_commit_state_refuses_to_move_backwards() -> None:
    recurrence = _habit_plus()
    manager, _ = _manager(recurrence)

    with pytest.raises(InvalidStateError):
        manager.commit_state(recurrence, PeriodState(start=date(2024, 10, 14), completed=0, interval=7))


def test_increment_counts_occurrence_inside_period() -> None:
    manager, db = _manager(_habit_plus(completed_occurrences=1))

    assert manager.increment_completed_occurrences(1, date(2024, 10, 23))
    assert db.recurrences[1].completed_occurrences == 2


def test_increment_ignores_occurrence_from_earlier_period() -> None:
    manager, db = _manager(_habit_plus(completed_occurrences=1))

    assert not manager.increment_completed_occurrences(1, date(2024, 10, 18))
    assert db.recurrences[1].completed_occurrences == 1


def test_increment_never_exceeds_cap() -> None:
    manager, db = _manager(_habit_plus(completed_occurrences=4))

    assert not manager.increment_completed_occurrences(1, date(2024, 10, 26))
    assert db.recurrences[1].completed_occurrences == 4


def test_increment_opens_next_period_for_occurrence_at_window_end() -> None:
    manager, db = _manager(_habit_plus(interval=3, max_occurrences=7, completed_occurrences=6))

    assert manager.increment_completed_occurrences(1, date(2024, 10, 24))
    assert db.recurrences[1].last_period_start == date(2024, 10, 24)
    assert db.recurrences[1].completed_occurrences == 1


def test_increment_without_interval_keeps_lifetime_count() -> None:
    manager, db = _manager(RecurrenceEntity(id=1, max_occurrences=3, completed_occurrences=2))

    assert manager.increment_completed_occurrences(1, date(2020, 1, 1))
    assert db.recurrences[1].completed_occurrences == 3


def test_increment_missing_recurrence() -> None:
    manager, _ = _manager(_habit_plus())

    with pytest.raises(NotFoundError):
        manager.increment_completed_occurrences(99, date(2024, 10, 21))
