"""Append-only event log."""

from src.models.events import Event, EventPayload
from src.services.repository import Repository
from src.utils.logger import get_logger

logger = get_logger("event_log")


class EventLog:
    """Writes audit facts for prospects; events are never updated or deleted."""

    def __init__(self, repository: Repository):
        self.repository = repository

    async def record(
        self,
        prospect_id: int,
        payload: EventPayload,
        source: str,
        contact_id: int | None = None,
        enrollment_id: int | None = None,
    ) -> Event | None:
        """Append one event.

        A failed write is logged and reported as ``None`` so the caller's
        own outcome is never lost because the audit sink hiccupped.
        """
        try:
            event = await self.repository.append_event(
                prospect_id,
                payload,
                source,
                contact_id=contact_id,
                enrollment_id=enrollment_id,
            )
        except Exception as e:
            logger.error(
                "event_append_failed",
                prospect_id=prospect_id,
                event_type=payload.type,
                error=str(e),
            )
            return None

        logger.debug("event_recorded", prospect_id=prospect_id, event_type=payload.type, source=source)
        return event

    async def history(self, prospect_id: int, limit: int | None = None) -> list[Event]:
        """Events for one prospect, oldest first."""
        return await self.repository.list_events(prospect_id=prospect_id, limit=limit)
