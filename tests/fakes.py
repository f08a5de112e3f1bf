"""Test doubles for pipeline collaborators."""

from src.models.signals import CollectedSignals
from src.services.enrollment import EnrollmentResult


class FakeCollector:
    """Returns canned signals per domain; raises for domains listed in ``failing``."""

    def __init__(
        self,
        signals: dict[str, CollectedSignals] | None = None,
        failing: set[str] | None = None,
    ):
        self.signals = signals or {}
        self.failing = failing or set()
        self.calls: list[str] = []

    async def collect(self, domain: str) -> CollectedSignals:
        self.calls.append(domain)
        if domain in self.failing:
            raise RuntimeError(f"collector exploded for {domain}")
        return self.signals.get(domain, CollectedSignals(domain=domain))

    async def close(self) -> None:
        return None


class RaisingEnrollmentClient:
    def __init__(self, error: Exception):
        self.error = error
        self.calls = 0

    async def enroll_prospect(self, prospect_id: int, campaign_id: int) -> EnrollmentResult:
        self.calls += 1
        raise self.error


class FailingTagAssignor:
    async def assign_tags(self, prospect_id, domain, context):
        raise RuntimeError("tag store unavailable")
