"""Closed set of background job kinds."""

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class EnrichProspectJob:
    """Enrich one prospect, then run it through the gatekeeper."""

    prospect_id: int
    auto_enroll: bool = True


@dataclass(frozen=True)
class BatchEnrichNewJob:
    """Enrich every NEW prospect that was never scored."""

    limit: int | None = None


@dataclass(frozen=True)
class AutoEnrollmentSweepJob:
    """Gate all READY_TO_CONTACT prospects."""

    limit: int | None = None


@dataclass(frozen=True)
class EnrollProspectJob:
    """Deliver one enrollment into an explicitly chosen campaign."""

    prospect_id: int
    campaign_id: int


Job = Union[EnrichProspectJob, BatchEnrichNewJob, AutoEnrollmentSweepJob, EnrollProspectJob]
