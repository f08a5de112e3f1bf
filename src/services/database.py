"""Supabase PostgreSQL implementation of the repository contract."""

import asyncio
from datetime import datetime
from enum import Enum
from typing import Any, Iterable

from postgrest.exceptions import APIError
from supabase import Client, create_client

from config.settings import settings
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
    Enrollment,
    EnrollmentStatus,
    Prospect,
    ProspectStatus,
    SuppressionEntry,
    utcnow,
)
from src.utils.domain import normalize_domain, normalize_email
from src.utils.logger import get_logger

logger = get_logger("database")

UNIQUE_VIOLATION = "23505"


def _is_unique_violation(error: APIError) -> bool:
    return getattr(error, "code", None) == UNIQUE_VIOLATION


class SupabaseRepository:
    """Repository backed by Supabase tables.

    The supabase client is synchronous; every call is pushed to a worker
    thread so the event loop keeps serving other prospects.
    """

    def __init__(self, client: Client | None = None):
        self._client = client

    @property
    def client(self) -> Client:
        """Get or create Supabase client."""
        if self._client is None:
            if not settings.supabase_url or not settings.supabase_service_role_key:
                raise ValueError(
                    "Supabase URL and service role key are required for database operations"
                )
            self._client = create_client(
                settings.supabase_url,
                settings.supabase_service_role_key.get_secret_value(),
            )
        return self._client

    @staticmethod
    def is_configured() -> bool:
        """Check if database is configured."""
        return bool(settings.supabase_url and settings.supabase_service_role_key)

    async def _run(self, query) -> list[dict[str, Any]]:
        result = await asyncio.to_thread(query.execute)
        return result.data or []

    # ============== Prospects ==============

    async def create_prospect(self, domain: str, **fields: Any) -> Prospect:
        domain = normalize_domain(domain)
        data = {"domain": domain, **_dump(fields)}
        try:
            rows = await self._run(self.client.table("prospects").insert(data))
        except APIError as e:
            if _is_unique_violation(e):
                existing = await self.get_prospect_by_domain(domain)
                raise DuplicateProspectError(domain, existing.id if existing else None) from e
            raise
        logger.info("prospect_created", prospect_id=rows[0]["id"], domain=domain)
        return Prospect.model_validate(rows[0])

    async def get_prospect(self, prospect_id: int) -> Prospect | None:
        rows = await self._run(
            self.client.table("prospects").select("*").eq("id", prospect_id).limit(1)
        )
        return Prospect.model_validate(rows[0]) if rows else None

    async def get_prospect_by_domain(self, domain: str) -> Prospect | None:
        rows = await self._run(
            self.client.table("prospects").select("*").eq("domain", domain).limit(1)
        )
        return Prospect.model_validate(rows[0]) if rows else None

    async def update_prospect(self, prospect_id: int, **fields: Any) -> Prospect:
        data = _dump({**fields, "updated_at": utcnow()})
        rows = await self._run(
            self.client.table("prospects").update(data).eq("id", prospect_id)
        )
        if not rows:
            raise ProspectNotFoundError(f"Prospect {prospect_id} not found")
        return Prospect.model_validate(rows[0])

    async def delete_prospect(self, prospect_id: int) -> None:
        # Children first; the schema also cascades but older tables may not
        for table in ("events", "enrollments", "contacts", "backlinks"):
            await self._run(self.client.table(table).delete().eq("prospect_id", prospect_id))
        rows = await self._run(self.client.table("prospects").delete().eq("id", prospect_id))
        if not rows:
            raise ProspectNotFoundError(f"Prospect {prospect_id} not found")
        logger.info("prospect_deleted", prospect_id=prospect_id)

    async def list_prospects_for_enrichment(self, limit: int) -> list[Prospect]:
        rows = await self._run(
            self.client.table("prospects")
            .select("*")
            .eq("status", ProspectStatus.NEW.value)
            .eq("score", 0)
            .order("created_at")
            .limit(limit)
        )
        return [Prospect.model_validate(r) for r in rows]

    async def list_prospects_ready_for_enrollment(self, limit: int) -> list[Prospect]:
        rows = await self._run(
            self.client.table("prospects")
            .select("*")
            .eq("status", ProspectStatus.READY_TO_CONTACT.value)
            .order("score", desc=True)
            .limit(limit)
        )
        return [Prospect.model_validate(r) for r in rows]

    async def add_prospect_tags(self, prospect_id: int, tags: Iterable[str]) -> list[str]:
        prospect = await self.get_prospect(prospect_id)
        if prospect is None:
            raise ProspectNotFoundError(f"Prospect {prospect_id} not found")
        merged = list(dict.fromkeys([*prospect.tags, *tags]))
        await self.update_prospect(prospect_id, tags=merged)
        return merged

    # ============== Contacts ==============

    async def list_contacts(self, prospect_id: int) -> list[Contact]:
        rows = await self._run(
            self.client.table("contacts")
            .select("*")
            .eq("prospect_id", prospect_id)
            .order("created_at")
            .order("id")
        )
        return [Contact.model_validate(r) for r in rows]

    async def create_contact(self, prospect_id: int, email: str, **fields: Any) -> Contact:
        data = {
            "prospect_id": prospect_id,
            "email": email.strip(),
            "email_normalized": normalize_email(email),
            **_dump(fields),
        }
        rows = await self._run(self.client.table("contacts").insert(data))
        return Contact.model_validate(rows[0])

    async def opt_out_contacts(self, email_normalized: str) -> list[Contact]:
        rows = await self._run(
            self.client.table("contacts")
            .update({"opted_out": True})
            .eq("email_normalized", email_normalized)
            .eq("opted_out", False)
        )
        return [Contact.model_validate(r) for r in rows]

    # ============== Campaigns ==============

    async def create_campaign(self, name: str, language: str, **fields: Any) -> Campaign:
        data = {"name": name, "language": language, **_dump(fields)}
        rows = await self._run(self.client.table("campaigns").insert(data))
        return Campaign.model_validate(rows[0])

    async def get_campaign(self, campaign_id: int) -> Campaign | None:
        rows = await self._run(
            self.client.table("campaigns").select("*").eq("id", campaign_id).limit(1)
        )
        return Campaign.model_validate(rows[0]) if rows else None

    async def list_active_campaigns(self) -> list[Campaign]:
        rows = await self._run(
            self.client.table("campaigns").select("*").eq("is_active", True).order("id")
        )
        return [Campaign.model_validate(r) for r in rows]

    async def increment_campaign_enrolled(self, campaign_id: int) -> None:
        await asyncio.to_thread(
            self.client.rpc("increment_campaign_enrolled", {"campaign_id": campaign_id}).execute
        )

    # ============== Enrollments ==============

    async def find_open_enrollment(self, prospect_id: int) -> Enrollment | None:
        rows = await self._run(
            self.client.table("enrollments")
            .select("*")
            .eq("prospect_id", prospect_id)
            .in_("status", [s.value for s in OPEN_ENROLLMENT_STATUSES])
            .limit(1)
        )
        return Enrollment.model_validate(rows[0]) if rows else None

    async def create_enrollment(
        self, prospect_id: int, campaign_id: int, contact_id: int | None = None
    ) -> Enrollment:
        data = {
            "prospect_id": prospect_id,
            "campaign_id": campaign_id,
            "contact_id": contact_id,
            "status": EnrollmentStatus.ACTIVE.value,
        }
        try:
            rows = await self._run(self.client.table("enrollments").insert(data))
        except APIError as e:
            # Partial unique index enrollments_one_open_per_prospect
            if _is_unique_violation(e):
                raise EnrollmentConflictError(prospect_id) from e
            raise
        return Enrollment.model_validate(rows[0])

    async def stop_active_enrollments(self, prospect_id: int, reason: str) -> int:
        rows = await self._run(
            self.client.table("enrollments")
            .update({"status": EnrollmentStatus.STOPPED.value, "stopped_reason": reason})
            .eq("prospect_id", prospect_id)
            .eq("status", EnrollmentStatus.ACTIVE.value)
        )
        return len(rows)

    async def count_enrollments_since(self, since: datetime) -> int:
        result = await asyncio.to_thread(
            self.client.table("enrollments")
            .select("id", count="exact")
            .gte("enrolled_at", since.isoformat())
            .execute
        )
        return result.count or 0

    # ============== Events ==============

    async def append_event(
        self,
        prospect_id: int,
        payload: EventPayload,
        source: str,
        contact_id: int | None = None,
        enrollment_id: int | None = None,
    ) -> Event:
        data = {
            "prospect_id": prospect_id,
            "contact_id": contact_id,
            "enrollment_id": enrollment_id,
            "event_type": payload.type,
            "source": source,
            "payload": payload.model_dump(mode="json"),
        }
        rows = await self._run(self.client.table("events").insert(data))
        return _event_from_row(rows[0])

    async def list_events(
        self,
        prospect_id: int | None = None,
        event_type: str | None = None,
        limit: int | None = None,
    ) -> list[Event]:
        query = self.client.table("events").select("*")
        if prospect_id is not None:
            query = query.eq("prospect_id", prospect_id)
        if event_type is not None:
            query = query.eq("event_type", event_type)
        query = query.order("id", desc=True)
        if limit:
            query = query.limit(limit)
        rows = await self._run(query)
        return [_event_from_row(r) for r in reversed(rows)]

    # ============== Suppression ==============

    async def upsert_suppression(self, entry: SuppressionEntry) -> SuppressionEntry:
        await self._run(
            self.client.table("suppression_entries").upsert(
                entry.model_dump(mode="json"),
                on_conflict="email_normalized",
                ignore_duplicates=True,
            )
        )
        stored = await self.get_suppression(entry.email_normalized)
        return stored or entry

    async def get_suppression(self, email_normalized: str) -> SuppressionEntry | None:
        rows = await self._run(
            self.client.table("suppression_entries")
            .select("*")
            .eq("email_normalized", email_normalized)
            .limit(1)
        )
        return SuppressionEntry.model_validate(rows[0]) if rows else None

    async def filter_suppressed(self, emails: Iterable[str]) -> set[str]:
        emails = list(emails)
        if not emails:
            return set()
        rows = await self._run(
            self.client.table("suppression_entries")
            .select("email_normalized")
            .in_("email_normalized", emails)
        )
        return {r["email_normalized"] for r in rows}

    # ============== Backlinks ==============

    async def create_backlink(self, prospect_id: int, page_url: str, target_url: str) -> Backlink:
        rows = await self._run(
            self.client.table("backlinks").insert(
                {"prospect_id": prospect_id, "page_url": page_url, "target_url": target_url}
            )
        )
        return Backlink.model_validate(rows[0])

    # ============== App settings ==============

    async def get_setting(self, key: str) -> dict[str, Any] | None:
        rows = await self._run(
            self.client.table("app_settings").select("value").eq("key", key).limit(1)
        )
        return rows[0]["value"] if rows else None

    async def put_setting(self, key: str, value: dict[str, Any]) -> None:
        await self._run(
            self.client.table("app_settings").upsert({"key": key, "value": value}, on_conflict="key")
        )


def _dump(fields: dict[str, Any]) -> dict[str, Any]:
    """Convert enums and datetimes to their JSON column form."""
    out: dict[str, Any] = {}
    for key, value in fields.items():
        if isinstance(value, datetime):
            out[key] = value.isoformat()
        elif isinstance(value, Enum):
            out[key] = value.value
        else:
            out[key] = value
    return out


def _event_from_row(row: dict[str, Any]) -> Event:
    return Event.model_validate(
        {
            "id": row["id"],
            "prospect_id": row["prospect_id"],
            "contact_id": row.get("contact_id"),
            "enrollment_id": row.get("enrollment_id"),
            "source": row["source"],
            "payload": row["payload"],
            "created_at": row["created_at"],
        }
    )
