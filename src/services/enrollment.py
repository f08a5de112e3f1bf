"""Enrollment delivery collaborator.

The gatekeeper only knows ``EnrollmentClient.enroll_prospect``. The default
implementation writes the enrollment through the repository; a mail-platform
client would implement the same method.
"""

from dataclasses import dataclass
from typing import Protocol

from src.models.errors import InvalidTransitionError, ProspectNotFoundError
from src.models.events import EnrollmentBlocked
from src.models.prospect import ProspectStatus, utcnow
from src.pipeline.state import ProspectStateMachine, is_terminal
from src.services.event_log import EventLog
from src.services.repository import Repository, first_usable_contact
from src.services.suppression import SuppressionList
from src.utils.logger import get_logger

logger = get_logger("enrollment")


@dataclass
class EnrollmentResult:
    """Outcome of one delivery attempt."""

    success: bool
    enrollment_id: int | None = None
    contact_id: int | None = None
    reason: str | None = None


class EnrollmentClient(Protocol):
    async def enroll_prospect(self, prospect_id: int, campaign_id: int) -> EnrollmentResult: ...


class RepositoryEnrollmentClient:
    """Creates the enrollment row and moves the prospect to CONTACTED_EMAIL."""

    def __init__(
        self,
        repository: Repository,
        events: EventLog,
        suppression: SuppressionList | None = None,
        state: ProspectStateMachine | None = None,
    ):
        self.repository = repository
        self.events = events
        self.suppression = suppression or SuppressionList(repository, events)
        self.state = state or ProspectStateMachine(repository, events)

    async def enroll_prospect(self, prospect_id: int, campaign_id: int) -> EnrollmentResult:
        """Enroll a prospect into a campaign.

        Raises:
            EnrollmentConflictError: If the prospect already has an open enrollment.
            ProspectNotFoundError: If the prospect or campaign is missing.
        """
        logger.info("enrollment_started", prospect_id=prospect_id, campaign_id=campaign_id)

        prospect = await self.repository.get_prospect(prospect_id)
        campaign = await self.repository.get_campaign(campaign_id)
        if prospect is None or campaign is None:
            raise ProspectNotFoundError(
                f"Prospect {prospect_id} or campaign {campaign_id} not found"
            )

        if is_terminal(prospect.status):
            logger.warning("enrollment_blocked_do_not_contact", prospect_id=prospect_id)
            return EnrollmentResult(success=False, reason="do_not_contact")

        contact = first_usable_contact(await self.repository.list_contacts(prospect_id))
        if contact is None:
            return EnrollmentResult(success=False, reason="no_valid_contact")

        if await self.suppression.is_suppressed(contact.email_normalized):
            logger.warning(
                "enrollment_blocked_suppressed",
                prospect_id=prospect_id,
                email=contact.email_normalized,
            )
            await self.events.record(
                prospect_id,
                EnrollmentBlocked(reason="suppression_list", email=contact.email_normalized),
                source="enrollment",
                contact_id=contact.id,
            )
            return EnrollmentResult(success=False, contact_id=contact.id, reason="suppression_list")

        enrollment = await self.repository.create_enrollment(
            prospect_id, campaign_id, contact_id=contact.id
        )
        try:
            await self.state.apply_external(
                prospect_id, ProspectStatus.CONTACTED_EMAIL, last_contacted_at=utcnow()
            )
        except InvalidTransitionError:
            # Opted out between the check above and the write
            await self.repository.stop_active_enrollments(prospect_id, reason="do_not_contact")
            logger.warning(
                "enrollment_reverted_do_not_contact",
                prospect_id=prospect_id,
                enrollment_id=enrollment.id,
            )
            return EnrollmentResult(success=False, contact_id=contact.id, reason="do_not_contact")
        await self.repository.increment_campaign_enrolled(campaign_id)

        logger.info(
            "prospect_enrolled",
            prospect_id=prospect_id,
            enrollment_id=enrollment.id,
            campaign_id=campaign_id,
        )
        return EnrollmentResult(success=True, enrollment_id=enrollment.id, contact_id=contact.id)
