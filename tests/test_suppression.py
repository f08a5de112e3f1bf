"""Tests for the suppression list."""

import pytest

from src.models.prospect import EnrollmentStatus
from src.services.suppression import SuppressionList


@pytest.fixture
def suppression(repository, events):
    return SuppressionList(repository, events)


class TestSuppressionList:
    async def test_lookup_is_case_insensitive(self, suppression):
        await suppression.add(" Jane@Example.FR", reason="unsubscribed", source="webhook")

        assert await suppression.is_suppressed("jane@example.fr")
        assert await suppression.is_suppressed("JANE@EXAMPLE.FR ")
        assert not await suppression.is_suppressed("bob@example.fr")

    async def test_add_is_idempotent(self, repository, suppression):
        first = await suppression.add("jane@example.fr", reason="bounce", source="webhook")
        second = await suppression.add("jane@example.fr", reason="complaint", source="manual")

        assert second.reason == first.reason == "bounce"
        assert len(repository.suppression) == 1

    async def test_add_rejects_garbage(self, suppression):
        with pytest.raises(ValueError):
            await suppression.add("not-an-email", reason="bounce", source="manual")

    async def test_contacts_opted_out_and_enrollments_stopped(
        self, repository, suppression, ready_prospect, event_types
    ):
        prospect = await ready_prospect(email="jane@example.fr")
        campaign = await repository.create_campaign("FR", "fr")
        enrollment = await repository.create_enrollment(prospect.id, campaign.id)

        await suppression.add("jane@example.fr", reason="bounce", source="webhook")

        [contact] = await repository.list_contacts(prospect.id)
        assert contact.opted_out
        stopped = repository.enrollments[enrollment.id]
        assert stopped.status == EnrollmentStatus.STOPPED
        assert stopped.stopped_reason == "suppressed:bounce"
        assert await repository.find_open_enrollment(prospect.id) is None
        assert "enrollment_blocked" in event_types(prospect.id)

    async def test_filter_suppressed(self, suppression):
        await suppression.add("jane@example.fr", reason="bounce", source="webhook")

        found = await suppression.filter_suppressed(["Jane@example.fr", "bob@example.fr", ""])
        assert found == {"jane@example.fr"}
