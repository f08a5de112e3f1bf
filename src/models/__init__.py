"""Data models package."""

from src.models.errors import (
    BacklinkEngineError,
    DuplicateProspectError,
    EnrollmentConflictError,
    InvalidTransitionError,
    ProspectNotFoundError,
)
from src.models.events import Event, EventPayload
from src.models.prospect import (
    Backlink,
    Campaign,
    Contact,
    EmailStatus,
    Enrollment,
    EnrollmentStatus,
    Prospect,
    ProspectStatus,
    SuppressionEntry,
)
from src.models.signals import (
    CollectedSignals,
    ContactFormResult,
    ScoreResult,
    ScrapedEmail,
)

__all__ = [
    "Prospect",
    "ProspectStatus",
    "Contact",
    "EmailStatus",
    "Campaign",
    "Enrollment",
    "EnrollmentStatus",
    "Backlink",
    "SuppressionEntry",
    "Event",
    "EventPayload",
    "CollectedSignals",
    "ContactFormResult",
    "ScoreResult",
    "ScrapedEmail",
    "BacklinkEngineError",
    "DuplicateProspectError",
    "EnrollmentConflictError",
    "InvalidTransitionError",
    "ProspectNotFoundError",
]
