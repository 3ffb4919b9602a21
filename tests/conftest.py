from __future__ import annotations

from datetime import datetime

import pytest

from fakes import Clock, FakeDatabase, FakeUnitOfWork
from taskcycle.services.scheduler import SchedulerFacade


@pytest.fixture
def db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def clock() -> Clock:
    # Monday
    return Clock(datetime(2024, 10, 21, 9, 0))


@pytest.fixture
def uow_factory(db: FakeDatabase):
    return lambda: FakeUnitOfWork(db)


@pytest.fixture
def scheduler(uow_factory, clock: Clock) -> SchedulerFacade:
    return SchedulerFacade(uow_factory=uow_factory, clock=clock)
