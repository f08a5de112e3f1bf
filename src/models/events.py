"""Append-only event log entries.

Each event carries a payload whose shape is fixed by its ``type``; the
payload union is discriminated on that field so readers can match on it
exhaustively.
"""

from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from src.models.prospect import ProspectStatus, utcnow


class EnrichmentCompleted(BaseModel):
    type: Literal["enrichment_completed"] = "enrichment_completed"
    score: int
    tier: int
    language: str | None = None
    country: str | None = None
    open_pagerank: float | None = None
    moz_da: float | None = None
    spam_penalty: int = 0
    has_contact_form: bool = False
    emails_found: int = 0
    failed_sources: list[str] = Field(default_factory=list)


class EnrichmentSkipped(BaseModel):
    type: Literal["enrichment_skipped"] = "enrichment_skipped"
    reason: str
    status: ProspectStatus


class LanguageCorrected(BaseModel):
    type: Literal["language_corrected"] = "language_corrected"
    previous: str
    corrected: str


class ContactsDiscovered(BaseModel):
    type: Literal["contacts_discovered"] = "contacts_discovered"
    emails: list[str]
    skipped_suppressed: int = 0


class TagsAssigned(BaseModel):
    type: Literal["tags_assigned"] = "tags_assigned"
    tags: list[str]


class TagAssignmentFailed(BaseModel):
    type: Literal["tag_assignment_failed"] = "tag_assignment_failed"
    error: str


class AutoEnrollSkipped(BaseModel):
    type: Literal["auto_enroll_skipped"] = "auto_enroll_skipped"
    stage: Literal["throttle", "eligibility", "suppression", "duplicate", "matching"]
    reason: str


class EnrollmentSuccess(BaseModel):
    type: Literal["enrollment_success"] = "enrollment_success"
    campaign_id: int
    campaign_name: str
    match_score: float | None = None
    automatic: bool = True


class EnrollmentFailed(BaseModel):
    type: Literal["enrollment_failed"] = "enrollment_failed"
    campaign_id: int
    error: str


class EnrollmentBlocked(BaseModel):
    type: Literal["enrollment_blocked"] = "enrollment_blocked"
    reason: str
    email: str | None = None


class StatusChanged(BaseModel):
    type: Literal["status_changed"] = "status_changed"
    from_status: ProspectStatus
    to_status: ProspectStatus
    external: bool = False


class ProcessingFailed(BaseModel):
    type: Literal["processing_failed"] = "processing_failed"
    stage: str
    error: str


EventPayload = Annotated[
    Union[
        EnrichmentCompleted,
        EnrichmentSkipped,
        LanguageCorrected,
        ContactsDiscovered,
        TagsAssigned,
        TagAssignmentFailed,
        AutoEnrollSkipped,
        EnrollmentSuccess,
        EnrollmentFailed,
        EnrollmentBlocked,
        StatusChanged,
        ProcessingFailed,
    ],
    Field(discriminator="type"),
]


class Event(BaseModel):
    """A single immutable audit fact."""

    model_config = {"frozen": True}

    id: int
    prospect_id: int
    contact_id: int | None = None
    enrollment_id: int | None = None
    source: str
    payload: EventPayload
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def type(self) -> str:
        return self.payload.type
