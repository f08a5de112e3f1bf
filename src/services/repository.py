"""Persistence contract and an in-memory implementation.

The pipeline only talks to the ``Repository`` protocol. ``InMemoryRepository``
backs the CLI when Supabase is not configured and is what the tests use;
``src.services.database.SupabaseRepository`` is the production adapter.
"""

import asyncio
import itertools
from datetime import datetime
from typing import Any, Iterable, Protocol

from src.models.errors import (
    DuplicateProspectError,
    EnrollmentConflictError,
    ProspectNotFoundError,
)
from src.models.events import Event, EventPayload
from src.models.prospect import (
    OPEN_ENROLLMENT_STATUSES,
    Backlink,
    Campaign,
    Contact,
    EmailStatus,
    Enrollment,
    EnrollmentStatus,
    Prospect,
    ProspectStatus,
    SuppressionEntry,
    utcnow,
)
from src.utils.domain import normalize_domain, normalize_email
from src.utils.logger import get_logger

logger = get_logger("repository")


class Repository(Protocol):
    """Async CRUD over the CRM entities used by the pipeline."""

    # Prospects
    async def create_prospect(self, domain: str, **fields: Any) -> Prospect: ...
    async def get_prospect(self, prospect_id: int) -> Prospect | None: ...
    async def get_prospect_by_domain(self, domain: str) -> Prospect | None: ...
    async def update_prospect(self, prospect_id: int, **fields: Any) -> Prospect: ...
    async def delete_prospect(self, prospect_id: int) -> None: ...
    async def list_prospects_for_enrichment(self, limit: int) -> list[Prospect]: ...
    async def list_prospects_ready_for_enrollment(self, limit: int) -> list[Prospect]: ...
    async def add_prospect_tags(self, prospect_id: int, tags: Iterable[str]) -> list[str]: ...

    # Contacts
    async def list_contacts(self, prospect_id: int) -> list[Contact]: ...
    async def create_contact(self, prospect_id: int, email: str, **fields: Any) -> Contact: ...
    async def opt_out_contacts(self, email_normalized: str) -> list[Contact]: ...

    # Campaigns
    async def create_campaign(self, name: str, language: str, **fields: Any) -> Campaign: ...
    async def get_campaign(self, campaign_id: int) -> Campaign | None: ...
    async def list_active_campaigns(self) -> list[Campaign]: ...
    async def increment_campaign_enrolled(self, campaign_id: int) -> None: ...

    # Enrollments
    async def find_open_enrollment(self, prospect_id: int) -> Enrollment | None: ...
    async def create_enrollment(
        self, prospect_id: int, campaign_id: int, contact_id: int | None = None
    ) -> Enrollment: ...
    async def stop_active_enrollments(self, prospect_id: int, reason: str) -> int: ...
    async def count_enrollments_since(self, since: datetime) -> int: ...

    # Events
    async def append_event(
        self,
        prospect_id: int,
        payload: EventPayload,
        source: str,
        contact_id: int | None = None,
        enrollment_id: int | None = None,
    ) -> Event: ...
    async def list_events(
        self,
        prospect_id: int | None = None,
        event_type: str | None = None,
        limit: int | None = None,
    ) -> list[Event]: ...

    # Suppression
    async def upsert_suppression(self, entry: SuppressionEntry) -> SuppressionEntry: ...
    async def get_suppression(self, email_normalized: str) -> SuppressionEntry | None: ...
    async def filter_suppressed(self, emails: Iterable[str]) -> set[str]: ...

    # Backlinks
    async def create_backlink(self, prospect_id: int, page_url: str, target_url: str) -> Backlink: ...

    # App settings
    async def get_setting(self, key: str) -> dict[str, Any] | None: ...
    async def put_setting(self, key: str, value: dict[str, Any]) -> None: ...


class InMemoryRepository:
    """Dict-backed repository honouring the same constraints as the database.

    Domain uniqueness, suppression-email uniqueness and the single open
    enrollment per prospect are enforced here exactly as the Postgres schema
    enforces them.
    """

    def __init__(self):
        self.prospects: dict[int, Prospect] = {}
        self.contacts: dict[int, Contact] = {}
        self.campaigns: dict[int, Campaign] = {}
        self.enrollments: dict[int, Enrollment] = {}
        self.events: list[Event] = []
        self.suppression: dict[str, SuppressionEntry] = {}
        self.backlinks: dict[int, Backlink] = {}
        self.settings: dict[str, dict[str, Any]] = {}
        self._ids = {
            name: itertools.count(1)
            for name in ("prospect", "contact", "campaign", "enrollment", "event", "backlink")
        }
        self._enrollment_lock = asyncio.Lock()

    def _next_id(self, kind: str) -> int:
        return next(self._ids[kind])

    # ============== Prospects ==============

    async def create_prospect(self, domain: str, **fields: Any) -> Prospect:
        domain = normalize_domain(domain)
        existing = await self.get_prospect_by_domain(domain)
        if existing:
            raise DuplicateProspectError(domain, existing.id)

        prospect = Prospect(id=self._next_id("prospect"), domain=domain, **fields)
        self.prospects[prospect.id] = prospect
        logger.info("prospect_created", prospect_id=prospect.id, domain=domain)
        return prospect

    async def get_prospect(self, prospect_id: int) -> Prospect | None:
        return self.prospects.get(prospect_id)

    async def get_prospect_by_domain(self, domain: str) -> Prospect | None:
        for prospect in self.prospects.values():
            if prospect.domain == domain:
                return prospect
        return None

    async def update_prospect(self, prospect_id: int, **fields: Any) -> Prospect:
        prospect = self.prospects.get(prospect_id)
        if prospect is None:
            raise ProspectNotFoundError(f"Prospect {prospect_id} not found")

        updated = prospect.model_copy(update={**fields, "updated_at": utcnow()})
        self.prospects[prospect_id] = updated
        return updated

    async def delete_prospect(self, prospect_id: int) -> None:
        if prospect_id not in self.prospects:
            raise ProspectNotFoundError(f"Prospect {prospect_id} not found")

        del self.prospects[prospect_id]
        self.contacts = {k: c for k, c in self.contacts.items() if c.prospect_id != prospect_id}
        self.enrollments = {
            k: e for k, e in self.enrollments.items() if e.prospect_id != prospect_id
        }
        self.backlinks = {k: b for k, b in self.backlinks.items() if b.prospect_id != prospect_id}
        self.events = [e for e in self.events if e.prospect_id != prospect_id]
        logger.info("prospect_deleted", prospect_id=prospect_id)

    async def list_prospects_for_enrichment(self, limit: int) -> list[Prospect]:
        candidates = [
            p for p in self.prospects.values()
            if p.status == ProspectStatus.NEW and p.score == 0
        ]
        candidates.sort(key=lambda p: p.created_at)
        return candidates[:limit]

    async def list_prospects_ready_for_enrollment(self, limit: int) -> list[Prospect]:
        candidates = [
            p for p in self.prospects.values()
            if p.status == ProspectStatus.READY_TO_CONTACT
        ]
        candidates.sort(key=lambda p: p.score, reverse=True)
        return candidates[:limit]

    async def add_prospect_tags(self, prospect_id: int, tags: Iterable[str]) -> list[str]:
        prospect = self.prospects.get(prospect_id)
        if prospect is None:
            raise ProspectNotFoundError(f"Prospect {prospect_id} not found")

        merged = list(prospect.tags)
        for tag in tags:
            if tag not in merged:
                merged.append(tag)
        await self.update_prospect(prospect_id, tags=merged)
        return merged

    # ============== Contacts ==============

    async def list_contacts(self, prospect_id: int) -> list[Contact]:
        contacts = [c for c in self.contacts.values() if c.prospect_id == prospect_id]
        return sorted(contacts, key=lambda c: (c.created_at, c.id))

    async def create_contact(self, prospect_id: int, email: str, **fields: Any) -> Contact:
        if prospect_id not in self.prospects:
            raise ProspectNotFoundError(f"Prospect {prospect_id} not found")

        contact = Contact(
            id=self._next_id("contact"),
            prospect_id=prospect_id,
            email=email.strip(),
            email_normalized=normalize_email(email),
            **fields,
        )
        self.contacts[contact.id] = contact
        return contact

    async def opt_out_contacts(self, email_normalized: str) -> list[Contact]:
        changed = []
        for contact_id, contact in self.contacts.items():
            if contact.email_normalized == email_normalized and not contact.opted_out:
                updated = contact.model_copy(update={"opted_out": True})
                self.contacts[contact_id] = updated
                changed.append(updated)
        return changed

    # ============== Campaigns ==============

    async def create_campaign(self, name: str, language: str, **fields: Any) -> Campaign:
        campaign = Campaign(id=self._next_id("campaign"), name=name, language=language, **fields)
        self.campaigns[campaign.id] = campaign
        return campaign

    async def get_campaign(self, campaign_id: int) -> Campaign | None:
        return self.campaigns.get(campaign_id)

    async def list_active_campaigns(self) -> list[Campaign]:
        return [c for c in self.campaigns.values() if c.is_active]

    async def increment_campaign_enrolled(self, campaign_id: int) -> None:
        campaign = self.campaigns[campaign_id]
        self.campaigns[campaign_id] = campaign.model_copy(
            update={"total_enrolled": campaign.total_enrolled + 1}
        )

    # ============== Enrollments ==============

    async def find_open_enrollment(self, prospect_id: int) -> Enrollment | None:
        for enrollment in self.enrollments.values():
            if (
                enrollment.prospect_id == prospect_id
                and enrollment.status in OPEN_ENROLLMENT_STATUSES
            ):
                return enrollment
        return None

    async def create_enrollment(
        self, prospect_id: int, campaign_id: int, contact_id: int | None = None
    ) -> Enrollment:
        async with self._enrollment_lock:
            existing = await self.find_open_enrollment(prospect_id)
            if existing:
                raise EnrollmentConflictError(prospect_id, existing.id)

            enrollment = Enrollment(
                id=self._next_id("enrollment"),
                prospect_id=prospect_id,
                campaign_id=campaign_id,
                contact_id=contact_id,
            )
            self.enrollments[enrollment.id] = enrollment
            return enrollment

    async def stop_active_enrollments(self, prospect_id: int, reason: str) -> int:
        stopped = 0
        for enrollment_id, enrollment in self.enrollments.items():
            if enrollment.prospect_id == prospect_id and enrollment.status == EnrollmentStatus.ACTIVE:
                self.enrollments[enrollment_id] = enrollment.model_copy(
                    update={"status": EnrollmentStatus.STOPPED, "stopped_reason": reason}
                )
                stopped += 1
        return stopped

    async def count_enrollments_since(self, since: datetime) -> int:
        return sum(1 for e in self.enrollments.values() if e.enrolled_at >= since)

    # ============== Events ==============

    async def append_event(
        self,
        prospect_id: int,
        payload: EventPayload,
        source: str,
        contact_id: int | None = None,
        enrollment_id: int | None = None,
    ) -> Event:
        event = Event(
            id=self._next_id("event"),
            prospect_id=prospect_id,
            contact_id=contact_id,
            enrollment_id=enrollment_id,
            source=source,
            payload=payload,
        )
        self.events.append(event)
        return event

    async def list_events(
        self,
        prospect_id: int | None = None,
        event_type: str | None = None,
        limit: int | None = None,
    ) -> list[Event]:
        events = [
            e for e in self.events
            if (prospect_id is None or e.prospect_id == prospect_id)
            and (event_type is None or e.type == event_type)
        ]
        return events[-limit:] if limit else events

    # ============== Suppression ==============

    async def upsert_suppression(self, entry: SuppressionEntry) -> SuppressionEntry:
        existing = self.suppression.get(entry.email_normalized)
        if existing:
            return existing
        self.suppression[entry.email_normalized] = entry
        return entry

    async def get_suppression(self, email_normalized: str) -> SuppressionEntry | None:
        return self.suppression.get(email_normalized)

    async def filter_suppressed(self, emails: Iterable[str]) -> set[str]:
        return {e for e in emails if e in self.suppression}

    # ============== Backlinks ==============

    async def create_backlink(self, prospect_id: int, page_url: str, target_url: str) -> Backlink:
        backlink = Backlink(
            id=self._next_id("backlink"),
            prospect_id=prospect_id,
            page_url=page_url,
            target_url=target_url,
        )
        self.backlinks[backlink.id] = backlink
        return backlink

    # ============== App settings ==============

    async def get_setting(self, key: str) -> dict[str, Any] | None:
        return self.settings.get(key)

    async def put_setting(self, key: str, value: dict[str, Any]) -> None:
        self.settings[key] = dict(value)


def first_usable_contact(contacts: list[Contact]) -> Contact | None:
    """Pick the earliest-created contact that is neither opted out nor invalid."""
    for contact in contacts:
        if contact.is_usable:
            return contact
    return None


def has_verified_contact(contacts: list[Contact]) -> bool:
    return any(c.email_status == EmailStatus.VERIFIED and not c.opted_out for c in contacts)
