"""Tests for the auto-enrollment gatekeeper."""

import pytest

from src.models.errors import EnrollmentConflictError
from src.models.prospect import (
    Contact,
    EmailStatus,
    Prospect,
    ProspectStatus,
    SuppressionEntry,
    utcnow,
)
from src.pipeline.gatekeeper import (
    AutoEnrollmentConfig,
    AutoEnrollmentGatekeeper,
    eligibility_reason,
    load_auto_enrollment_config,
    save_auto_enrollment_config,
)
from src.services.enrollment import RepositoryEnrollmentClient
from src.services.repository import InMemoryRepository
from tests.fakes import RaisingEnrollmentClient

CONFIG = AutoEnrollmentConfig(
    enabled=True,
    max_per_hour=0,
    max_per_day=0,
    min_score=50,
    min_tier=3,
    allowed_categories=("blogger",),
    allowed_languages=("fr",),
    require_verified_email=True,
)


@pytest.fixture
def gatekeeper(repository, events):
    return AutoEnrollmentGatekeeper(
        repository, events, RepositoryEnrollmentClient(repository, events)
    )


def contact(contact_id: int = 1, status: EmailStatus = EmailStatus.VERIFIED, opted_out: bool = False):
    return Contact(
        id=contact_id,
        prospect_id=1,
        email=f"c{contact_id}@example.fr",
        email_normalized=f"c{contact_id}@example.fr",
        email_status=status,
        opted_out=opted_out,
    )


def eligible_prospect(**overrides) -> Prospect:
    fields = {
        "id": 1,
        "domain": "example.fr",
        "status": ProspectStatus.READY_TO_CONTACT,
        "score": 55,
        "tier": 2,
        "category": "blogger",
        "language": "fr",
    }
    fields.update(overrides)
    return Prospect(**fields)


class TestScenarios:
    """End-to-end gate decisions."""

    async def test_eligible_prospect_is_enrolled(self, repository, gatekeeper, ready_prospect, event_types):
        prospect = await ready_prospect()
        campaign = await repository.create_campaign("FR bloggers", "fr")

        decision = await gatekeeper.evaluate(prospect.id, CONFIG)

        assert decision.enrolled
        assert decision.campaign_id == campaign.id
        assert event_types(prospect.id).count("enrollment_success") == 1
        assert (await repository.get_prospect(prospect.id)).status == ProspectStatus.CONTACTED_EMAIL
        assert (await repository.get_campaign(campaign.id)).total_enrolled == 1

    async def test_already_enrolled_prospect_is_skipped(self, repository, gatekeeper, ready_prospect, event_types):
        prospect = await ready_prospect()
        campaign = await repository.create_campaign("FR bloggers", "fr")
        await repository.create_enrollment(prospect.id, campaign.id)

        decision = await gatekeeper.evaluate(prospect.id, CONFIG)

        assert not decision.enrolled
        assert decision.stage == "duplicate"
        assert decision.reason == "already_enrolled"
        assert len(repository.enrollments) == 1
        assert "enrollment_success" not in event_types(prospect.id)

    async def test_no_matching_campaign(self, repository, gatekeeper, ready_prospect):
        prospect = await ready_prospect()
        await repository.create_campaign("EN bloggers", "en")

        decision = await gatekeeper.evaluate(prospect.id, CONFIG)

        assert decision.stage == "matching"
        assert decision.reason == "no_matching_campaign"
        assert repository.enrollments == {}

    async def test_suppressed_contact_is_skipped(self, repository, gatekeeper, ready_prospect):
        prospect = await ready_prospect(email="jane@example.fr")
        await repository.create_campaign("FR bloggers", "fr")
        await repository.upsert_suppression(
            SuppressionEntry(email_normalized="jane@example.fr", reason="bounce", source="test")
        )

        decision = await gatekeeper.evaluate(prospect.id, CONFIG)

        assert decision.stage == "suppression"
        assert repository.enrollments == {}

    async def test_every_rejection_is_recorded(self, repository, gatekeeper, ready_prospect):
        prospect = await ready_prospect(score=10, tier=4)

        await gatekeeper.evaluate(prospect.id, CONFIG)

        skipped = [e for e in repository.events if e.type == "auto_enroll_skipped"]
        assert len(skipped) == 1
        assert skipped[0].payload.stage == "eligibility"
        assert skipped[0].payload.reason == "score_too_low:10<50"


class TestThrottle:
    async def test_disabled(self, gatekeeper):
        config = CONFIG.model_copy(update={"enabled": False})
        assert await gatekeeper.throttle_reason(config) == "auto_enrollment_disabled"

    async def test_unlimited_caps(self, gatekeeper):
        assert await gatekeeper.throttle_reason(CONFIG) is None

    async def test_hourly_cap(self, repository, gatekeeper, ready_prospect):
        other = await ready_prospect("other.fr")
        campaign = await repository.create_campaign("FR", "fr")
        await repository.create_enrollment(other.id, campaign.id)

        config = CONFIG.model_copy(update={"max_per_hour": 1})
        assert await gatekeeper.throttle_reason(config, utcnow()) == "hourly_limit_reached (1/1)"

    async def test_daily_cap(self, repository, gatekeeper, ready_prospect):
        other = await ready_prospect("other.fr")
        campaign = await repository.create_campaign("FR", "fr")
        await repository.create_enrollment(other.id, campaign.id)

        config = CONFIG.model_copy(update={"max_per_day": 1})
        assert await gatekeeper.throttle_reason(config, utcnow()) == "daily_limit_reached (1/1)"

    async def test_throttled_prospect_gets_skip_event(self, repository, gatekeeper, ready_prospect):
        prospect = await ready_prospect()
        config = CONFIG.model_copy(update={"enabled": False})

        decision = await gatekeeper.evaluate(prospect.id, config)

        assert decision.throttled
        assert repository.events[-1].payload.reason == "auto_enrollment_disabled"


class TestEligibility:
    def test_eligible(self):
        assert eligibility_reason(eligible_prospect(), [contact()], CONFIG) is None

    @pytest.mark.parametrize(
        "contacts",
        [
            [],
            [contact(opted_out=True)],
            [contact(status=EmailStatus.INVALID)],
        ],
    )
    def test_no_valid_contact(self, contacts):
        assert eligibility_reason(eligible_prospect(), contacts, CONFIG) == "no_valid_contact"

    def test_first_usable_contact_decides_verification(self):
        contacts = [contact(1, opted_out=True), contact(2, EmailStatus.RISKY), contact(3)]
        assert eligibility_reason(eligible_prospect(), contacts, CONFIG) == "email_not_verified"

        relaxed = CONFIG.model_copy(update={"require_verified_email": False})
        assert eligibility_reason(eligible_prospect(), contacts, relaxed) is None

    @pytest.mark.parametrize(
        "overrides,reason",
        [
            ({"status": ProspectStatus.NEW}, "wrong_status:NEW"),
            ({"score": 49}, "score_too_low:49<50"),
            ({"tier": 4}, "tier_too_low:T4>T3"),
            ({"category": "forum"}, "category_not_allowed:forum"),
            ({"language": "de"}, "language_not_allowed:de"),
        ],
    )
    def test_rejection_reasons(self, overrides, reason):
        assert eligibility_reason(eligible_prospect(**overrides), [contact()], CONFIG) == reason

    def test_category_rejected_regardless_of_quality(self):
        prospect = eligible_prospect(category="forum", score=100, tier=1)
        assert eligibility_reason(prospect, [contact()], CONFIG) == "category_not_allowed:forum"

    def test_missing_language_is_allowed(self):
        assert eligibility_reason(eligible_prospect(language=None), [contact()], CONFIG) is None


class TestEnrollmentOutcomes:
    async def test_conflict_on_create_is_recorded_as_duplicate(self, repository, events, ready_prospect):
        prospect = await ready_prospect()
        await repository.create_campaign("FR", "fr")
        client = RaisingEnrollmentClient(EnrollmentConflictError(prospect.id))
        gatekeeper = AutoEnrollmentGatekeeper(repository, events, client)

        decision = await gatekeeper.evaluate(prospect.id, CONFIG)

        assert client.calls == 1
        assert decision.stage == "duplicate"
        assert decision.reason == "already_enrolled"

    async def test_delivery_failure_is_recorded(self, repository, events, ready_prospect, event_types):
        prospect = await ready_prospect()
        await repository.create_campaign("FR", "fr")
        gatekeeper = AutoEnrollmentGatekeeper(
            repository, events, RaisingEnrollmentClient(RuntimeError("mail platform down"))
        )

        decision = await gatekeeper.evaluate(prospect.id, CONFIG)

        assert not decision.enrolled
        assert decision.stage == "enrollment"
        assert "enrollment_failed" in event_types(prospect.id)


class TestSweep:
    async def test_stops_when_throttled(self, repository, gatekeeper, ready_prospect):
        first = await ready_prospect("first.fr", score=60)
        second = await ready_prospect("second.fr", score=55)
        await repository.create_campaign("FR", "fr")

        result = await gatekeeper.sweep(10, CONFIG.model_copy(update={"max_per_hour": 1}))

        assert result.enrolled == 1
        assert result.throttled
        assert [d.prospect_id for d in result.decisions] == [first.id, second.id]
        assert result.decisions[0].enrolled

    async def test_disabled_sweep_does_nothing(self, repository, gatekeeper, ready_prospect):
        await ready_prospect()
        await repository.create_campaign("FR", "fr")

        result = await gatekeeper.sweep(10, CONFIG.model_copy(update={"enabled": False}))

        assert result.decisions == []
        assert repository.enrollments == {}

    async def test_one_failure_does_not_abort(self, repository, gatekeeper, ready_prospect, event_types):
        broken = await ready_prospect("broken.fr", score=90)
        healthy = await ready_prospect("healthy.fr", score=60)
        await repository.create_campaign("FR", "fr")

        original = repository.list_contacts

        async def list_contacts(prospect_id):
            if prospect_id == broken.id:
                raise RuntimeError("storage hiccup")
            return await original(prospect_id)

        repository.list_contacts = list_contacts

        result = await gatekeeper.sweep(10, CONFIG)

        assert result.failed == 1
        assert result.enrolled == 1
        assert "processing_failed" in event_types(broken.id)
        assert "enrollment_success" in event_types(healthy.id)


class BrokenSettingsRepository(InMemoryRepository):
    async def get_setting(self, key):
        raise ConnectionError("settings store unreachable")


class TestConfigLoading:
    async def test_defaults_without_stored_overrides(self, repository):
        config = await load_auto_enrollment_config(repository)
        assert config == AutoEnrollmentConfig.from_settings()

    async def test_stored_overrides_are_merged(self, repository):
        await repository.put_setting("auto_enrollment", {"enabled": True, "max_per_hour": 5})
        config = await load_auto_enrollment_config(repository)
        assert config.enabled is True
        assert config.max_per_hour == 5
        assert config.min_score == AutoEnrollmentConfig.from_settings().min_score

    async def test_storage_failure_falls_back_to_defaults(self):
        config = await load_auto_enrollment_config(BrokenSettingsRepository())
        assert config == AutoEnrollmentConfig.from_settings()

    async def test_invalid_override_falls_back_to_defaults(self, repository):
        await repository.put_setting("auto_enrollment", {"min_tier": 9})
        config = await load_auto_enrollment_config(repository)
        assert config == AutoEnrollmentConfig.from_settings()

    async def test_save_then_load(self, repository):
        saved = await save_auto_enrollment_config(repository, enabled=True, allowed_languages=["fr"])
        loaded = await load_auto_enrollment_config(repository)
        assert loaded == saved
        assert loaded.allowed_languages == ("fr",)

    def test_config_is_immutable(self):
        with pytest.raises(Exception):
            CONFIG.enabled = False
