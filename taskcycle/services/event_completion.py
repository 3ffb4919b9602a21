from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Optional

from taskcycle.domain.entities import CalendarEventEntity, EventDetails
from taskcycle.domain.errors import InvalidStateError, NotFoundError
from taskcycle.infra.repository import UnitOfWork

from .occurrence_completion import OccurrenceCompletionService

logger = logging.getLogger(__name__)


class EventCompletionService:
    def __init__(
        self,
        uow: UnitOfWork,
        completion: OccurrenceCompletionService,
        clock: Callable[[], datetime] = datetime.utcnow,
    ) -> None:
        self._uow = uow
        self._completion = completion
        self._clock = clock

    def complete_calendar_event(
        self,
        event_id: int,
        dedicated_time: float | None = None,
        complete_occurrence: bool = False,
        completed_at: Optional[datetime] = None,
    ) -> CalendarEventEntity:
        """Mark an event done and roll its time up into the occurrence.

        Fixed tasks have no other completion path, so their occurrence is
        always completed with the event.
        """
        details = self._load(event_id)
        event = details.event
        now = self._clock()
        if event.start > now:
            raise InvalidStateError(f"Event {event_id} has not started yet")

        if dedicated_time is None:
            dedicated_time = max((event.finish - event.start).total_seconds(), 0.0) / 3600
        updated = self._uow.events.update_event(
            event_id,
            {"is_completed": True, "dedicated_time": dedicated_time, "completed_at": completed_at or now},
        )
        logger.info("Completed event %s (%.2fh)", event_id, dedicated_time)

        if details.occurrence is None:
            return updated
        total = self._uow.events.sync_occurrence_time_from_events(details.occurrence.id)
        logger.debug("Occurrence %s now has %.2fh dedicated", details.occurrence.id, total)
        if details.task.is_fixed or complete_occurrence:
            self._completion.complete_occurrence(details.occurrence.id, completed_at or now)
        return updated

    def skip_calendar_event(self, event_id: int, skip_occurrence: bool = False) -> CalendarEventEntity:
        details = self._load(event_id)
        updated = self._uow.events.update_event(event_id, {"is_completed": False, "completed_at": None})
        logger.info("Skipped event %s", event_id)

        if details.occurrence is None:
            return updated
        if details.task.is_fixed or details.event.is_fixed or skip_occurrence:
            # skipping the occurrence deletes its events, this one included
            self._completion.skip_occurrence(details.occurrence.id)
        return updated

    def _load(self, event_id: int) -> EventDetails:
        details = self._uow.events.get_event_with_details(event_id)
        if details is None:
            raise NotFoundError("Event", event_id)
        return details
