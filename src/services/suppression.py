"""Suppression list (do-not-contact emails)."""

from typing import Iterable

from src.models.events import EnrollmentBlocked
from src.models.prospect import SuppressionEntry
from src.services.event_log import EventLog
from src.services.repository import Repository
from src.utils.domain import normalize_email
from src.utils.logger import get_logger

logger = get_logger("suppression")


class SuppressionList:
    """Add-only deny-list keyed by normalized email."""

    def __init__(self, repository: Repository, events: EventLog | None = None):
        self.repository = repository
        self.events = events or EventLog(repository)

    async def is_suppressed(self, email: str) -> bool:
        normalized = normalize_email(email)
        suppressed = await self.repository.get_suppression(normalized) is not None
        if suppressed:
            logger.debug("email_suppressed", email=normalized)
        return suppressed

    async def filter_suppressed(self, emails: Iterable[str]) -> set[str]:
        """Return the normalized subset of ``emails`` that is suppressed."""
        normalized = {normalize_email(e) for e in emails if e}
        suppressed = await self.repository.filter_suppressed(normalized)
        logger.debug("batch_suppression_checked", checked=len(normalized), suppressed=len(suppressed))
        return suppressed

    async def add(self, email: str, reason: str, source: str) -> SuppressionEntry:
        """Suppress an email; idempotent.

        Matching contacts are opted out and their prospects' active
        enrollments stopped with reason ``suppressed:<reason>``.
        """
        normalized = normalize_email(email)
        if "@" not in normalized:
            raise ValueError(f"Invalid email: {email!r}")

        entry = await self.repository.upsert_suppression(
            SuppressionEntry(email_normalized=normalized, reason=reason, source=source)
        )
        logger.info("email_suppressed_added", email=normalized, reason=entry.reason, source=source)

        contacts = await self.repository.opt_out_contacts(normalized)
        for prospect_id in sorted({c.prospect_id for c in contacts}):
            stopped = await self.repository.stop_active_enrollments(
                prospect_id, reason=f"suppressed:{entry.reason}"
            )
            if stopped:
                logger.info(
                    "enrollments_stopped_for_suppressed_email",
                    email=normalized,
                    prospect_id=prospect_id,
                    stopped=stopped,
                )
            await self.events.record(
                prospect_id,
                EnrollmentBlocked(reason=f"suppressed:{entry.reason}", email=normalized),
                source="suppression",
            )
        return entry
