"""Prospect CRM data models using Pydantic."""

from datetime import datetime, timezone
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


class ProspectStatus(str, Enum):
    """Prospect lifecycle states."""

    NEW = "NEW"
    ENRICHING = "ENRICHING"
    READY_TO_CONTACT = "READY_TO_CONTACT"
    CONTACTED_EMAIL = "CONTACTED_EMAIL"
    CONTACTED_MANUAL = "CONTACTED_MANUAL"
    FOLLOWUP_DUE = "FOLLOWUP_DUE"
    REPLIED = "REPLIED"
    NEGOTIATING = "NEGOTIATING"
    WON = "WON"
    LINK_PENDING = "LINK_PENDING"
    LINK_VERIFIED = "LINK_VERIFIED"
    LINK_LOST = "LINK_LOST"
    RE_CONTACTED = "RE_CONTACTED"
    LOST = "LOST"
    DO_NOT_CONTACT = "DO_NOT_CONTACT"


class EmailStatus(str, Enum):
    """Validation status of a contact email."""

    VERIFIED = "verified"
    RISKY = "risky"
    INVALID = "invalid"
    DISPOSABLE = "disposable"
    UNVERIFIED = "unverified"


class EnrollmentStatus(str, Enum):
    """Enrollment lifecycle."""

    ACTIVE = "active"
    COMPLETED = "completed"
    STOPPED = "stopped"


# Enrollments in these states block a new enrollment for the same prospect
OPEN_ENROLLMENT_STATUSES = (EnrollmentStatus.ACTIVE, EnrollmentStatus.COMPLETED)


class Prospect(BaseModel):
    """A candidate website pursued for a backlink, keyed by normalized domain."""

    id: int
    domain: str
    status: ProspectStatus = ProspectStatus.NEW
    source: Literal["manual", "csv_import", "scraper"] = "manual"

    # Scoring
    score: int = Field(default=0, ge=0, le=100)
    tier: int = Field(default=4, ge=1, le=4)

    # Localisation
    language: str | None = None
    country: str | None = None
    timezone: str | None = None
    category: str = "blogger"

    # Contact form
    contact_form_url: str | None = None
    contact_form_fields: list[str] = Field(default_factory=list)
    has_captcha: bool = False

    # Authority metrics
    open_pagerank: float | None = None
    moz_da: float | None = None
    spam_score: int = 0

    tags: list[str] = Field(default_factory=list)

    # Outreach timestamps
    last_contacted_at: datetime | None = None
    next_followup_at: datetime | None = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Contact(BaseModel):
    """A person/email attached to exactly one prospect."""

    id: int
    prospect_id: int
    email: str
    email_normalized: str
    first_name: str | None = None
    last_name: str | None = None
    email_status: EmailStatus = EmailStatus.UNVERIFIED
    opted_out: bool = False
    discovered_via: str = "manual"
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def is_usable(self) -> bool:
        """Eligible for outreach: not opted out and not known-invalid."""
        return not self.opted_out and self.email_status != EmailStatus.INVALID


class Campaign(BaseModel):
    """An outreach campaign prospects can be enrolled into."""

    id: int
    name: str
    language: str
    category_filter: list[str] | None = None
    country_filter: list[str] | None = None
    min_tier: int | None = Field(default=None, ge=1, le=4)
    is_active: bool = True
    total_enrolled: int = 0
    total_replied: int = 0
    total_won: int = 0
    created_at: datetime = Field(default_factory=utcnow)


class Enrollment(BaseModel):
    """Association of one prospect to one campaign."""

    id: int
    prospect_id: int
    contact_id: int | None = None
    campaign_id: int
    status: EnrollmentStatus = EnrollmentStatus.ACTIVE
    stopped_reason: str | None = None
    enrolled_at: datetime = Field(default_factory=utcnow)


class Backlink(BaseModel):
    """A link obtained from a prospect's site."""

    id: int
    prospect_id: int
    page_url: str
    target_url: str
    is_live: bool | None = None
    created_at: datetime = Field(default_factory=utcnow)


class SuppressionEntry(BaseModel):
    """Normalized email that must never be contacted again."""

    email_normalized: str
    reason: str
    source: str
    created_at: datetime = Field(default_factory=utcnow)
