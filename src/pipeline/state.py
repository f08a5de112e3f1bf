"""Prospect status lifecycle.

The enrichment pipeline owns only ``NEW -> ENRICHING -> READY_TO_CONTACT``
(and re-enrichment of an already ready prospect). Every other transition
comes from outreach, reply and webhook collaborators and is accepted as-is,
except that nothing ever leaves ``DO_NOT_CONTACT``.
"""

from typing import Any

from src.models.errors import InvalidTransitionError, ProspectNotFoundError
from src.models.events import StatusChanged
from src.models.prospect import Prospect, ProspectStatus
from src.services.event_log import EventLog
from src.services.repository import Repository
from src.utils.logger import get_logger

logger = get_logger("state")

S = ProspectStatus

# Transitions the enrichment pipeline itself may perform
PIPELINE_TRANSITIONS: dict[ProspectStatus, frozenset[ProspectStatus]] = {
    S.NEW: frozenset({S.ENRICHING}),
    S.ENRICHING: frozenset({S.ENRICHING, S.READY_TO_CONTACT}),
    S.READY_TO_CONTACT: frozenset({S.ENRICHING}),
}


def can_enrich(status: ProspectStatus) -> bool:
    return S.ENRICHING in PIPELINE_TRANSITIONS.get(status, frozenset())


def is_terminal(status: ProspectStatus) -> bool:
    return status == S.DO_NOT_CONTACT


class ProspectStateMachine:
    """Reads and advances prospect status, recording every change."""

    def __init__(self, repository: Repository, events: EventLog):
        self.repository = repository
        self.events = events

    async def _load(self, prospect_id: int) -> Prospect:
        prospect = await self.repository.get_prospect(prospect_id)
        if prospect is None:
            raise ProspectNotFoundError(f"Prospect {prospect_id} not found")
        return prospect

    async def _move(
        self, prospect: Prospect, to_status: ProspectStatus, external: bool, **fields: Any
    ) -> Prospect:
        updated = await self.repository.update_prospect(prospect.id, status=to_status, **fields)
        if prospect.status != to_status:
            await self.events.record(
                prospect.id,
                StatusChanged(from_status=prospect.status, to_status=to_status, external=external),
                source="state_machine",
            )
            logger.info(
                "status_changed",
                prospect_id=prospect.id,
                from_status=prospect.status.value,
                to_status=to_status.value,
                external=external,
            )
        return updated

    async def start_enrichment(self, prospect_id: int) -> Prospect:
        """Move a prospect into ENRICHING.

        Raises:
            InvalidTransitionError: If the prospect is past the enrichment stage.
        """
        prospect = await self._load(prospect_id)
        if not can_enrich(prospect.status):
            raise InvalidTransitionError(prospect.status.value, S.ENRICHING.value)
        return await self._move(prospect, S.ENRICHING, external=False)

    async def finish_enrichment(self, prospect_id: int, **fields: Any) -> Prospect:
        """Persist enrichment results and mark the prospect ready.

        The status is re-read first: if an external writer moved the
        prospect out of ENRICHING meanwhile, its status wins and only the
        enriched fields are written.
        """
        prospect = await self._load(prospect_id)
        if prospect.status != S.ENRICHING:
            logger.warning(
                "status_changed_during_enrichment",
                prospect_id=prospect_id,
                status=prospect.status.value,
            )
            return await self.repository.update_prospect(prospect_id, **fields)
        return await self._move(prospect, S.READY_TO_CONTACT, external=False, **fields)

    async def apply_external(self, prospect_id: int, to_status: ProspectStatus, **fields: Any) -> Prospect:
        """Apply a transition decided by an outreach or webhook collaborator.

        These are trusted inputs; the only rule is that DO_NOT_CONTACT is
        absorbing.
        """
        prospect = await self._load(prospect_id)
        if is_terminal(prospect.status) and to_status != S.DO_NOT_CONTACT:
            raise InvalidTransitionError(prospect.status.value, to_status.value)
        return await self._move(prospect, to_status, external=True, **fields)
