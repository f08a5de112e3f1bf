"""Auto-enrollment gatekeeper.

A prospect is enrolled only after passing, in order: the global throttle,
the eligibility rules, the suppression list, the duplicate-enrollment guard
and campaign matching. Every rejection is recorded as an
``auto_enroll_skipped`` event with a machine-readable reason.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from config.settings import settings
from src.models.errors import EnrollmentConflictError, ProspectNotFoundError
from src.models.events import (
    AutoEnrollSkipped,
    EnrollmentFailed,
    EnrollmentSuccess,
    ProcessingFailed,
)
from src.models.prospect import Contact, EmailStatus, Prospect, ProspectStatus, utcnow
from src.processors.campaign_matcher import select_campaign
from src.services.enrollment import EnrollmentClient
from src.services.event_log import EventLog
from src.services.repository import Repository, first_usable_contact
from src.services.suppression import SuppressionList
from src.utils.logger import get_logger
from src.utils.rate_limit import KeyedLock

logger = get_logger("gatekeeper")

AUTO_ENROLLMENT_SETTING_KEY = "auto_enrollment"

GateStage = Literal["throttle", "eligibility", "suppression", "duplicate", "matching", "enrollment"]


class AutoEnrollmentConfig(BaseModel):
    """Auto-enrollment rules, loaded once per batch run and passed explicitly."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    enabled: bool = False
    max_per_hour: int = Field(default=50, ge=0)  # 0 = unlimited
    max_per_day: int = Field(default=500, ge=0)  # 0 = unlimited
    min_score: int = Field(default=50, ge=0, le=100)
    min_tier: int = Field(default=3, ge=1, le=4)
    allowed_categories: tuple[str, ...] = ("blogger", "influencer", "media")
    allowed_languages: tuple[str, ...] = ("fr", "en", "de", "es", "pt")
    require_verified_email: bool = True

    @classmethod
    def from_settings(cls) -> "AutoEnrollmentConfig":
        return cls(
            enabled=settings.auto_enrollment_enabled,
            max_per_hour=settings.auto_enrollment_max_per_hour,
            max_per_day=settings.auto_enrollment_max_per_day,
            min_score=settings.auto_enrollment_min_score,
            min_tier=settings.auto_enrollment_min_tier,
            allowed_categories=tuple(settings.auto_enrollment_allowed_categories),
            allowed_languages=tuple(settings.auto_enrollment_allowed_languages),
            require_verified_email=settings.auto_enrollment_require_verified_email,
        )


async def load_auto_enrollment_config(repository: Repository) -> AutoEnrollmentConfig:
    """Stored overrides merged over the settings defaults.

    A storage failure or an invalid stored value falls back to the defaults.
    """
    defaults = AutoEnrollmentConfig.from_settings()
    try:
        stored = await repository.get_setting(AUTO_ENROLLMENT_SETTING_KEY)
    except Exception as e:
        logger.warning("auto_enrollment_config_load_failed", error=str(e))
        return defaults

    if not stored:
        return defaults

    try:
        return AutoEnrollmentConfig.model_validate({**defaults.model_dump(), **stored})
    except ValidationError as e:
        logger.warning("auto_enrollment_config_invalid", error=str(e))
        return defaults


async def save_auto_enrollment_config(repository: Repository, **updates) -> AutoEnrollmentConfig:
    """Validate and persist config overrides."""
    current = await load_auto_enrollment_config(repository)
    updated = AutoEnrollmentConfig.model_validate({**current.model_dump(), **updates})
    await repository.put_setting(AUTO_ENROLLMENT_SETTING_KEY, updated.model_dump(mode="json"))
    logger.info("auto_enrollment_config_updated", **updated.model_dump(mode="json"))
    return updated


def eligibility_reason(
    prospect: Prospect, contacts: list[Contact], config: AutoEnrollmentConfig
) -> str | None:
    """First eligibility rule the prospect fails, or None if eligible.

    ``contacts`` must be ordered by creation time.
    """
    contact = first_usable_contact(contacts)
    if contact is None:
        return "no_valid_contact"

    if config.require_verified_email and contact.email_status != EmailStatus.VERIFIED:
        return "email_not_verified"

    if prospect.status != ProspectStatus.READY_TO_CONTACT:
        return f"wrong_status:{prospect.status.value}"

    if prospect.score < config.min_score:
        return f"score_too_low:{prospect.score}<{config.min_score}"

    # Lower tier number is better: "too low" means numerically too high
    if prospect.tier > config.min_tier:
        return f"tier_too_low:T{prospect.tier}>T{config.min_tier}"

    if prospect.category not in config.allowed_categories:
        return f"category_not_allowed:{prospect.category}"

    if prospect.language and prospect.language not in config.allowed_languages:
        return f"language_not_allowed:{prospect.language}"

    return None


@dataclass
class GateDecision:
    """Outcome of one gatekeeper evaluation."""

    prospect_id: int
    enrolled: bool = False
    stage: GateStage | None = None
    reason: str | None = None
    campaign_id: int | None = None
    enrollment_id: int | None = None

    @property
    def throttled(self) -> bool:
        return self.stage == "throttle"


@dataclass
class SweepResult:
    enrolled: int = 0
    skipped: int = 0
    failed: int = 0
    throttled: bool = False
    decisions: list[GateDecision] = field(default_factory=list)


class AutoEnrollmentGatekeeper:
    """Decides whether and where a ready prospect gets enrolled."""

    def __init__(
        self,
        repository: Repository,
        events: EventLog,
        enrollment_client: EnrollmentClient,
        suppression: SuppressionList | None = None,
        fallback_language: str | None = None,
        locks: KeyedLock | None = None,
    ):
        self.repository = repository
        self.events = events
        self.enrollment_client = enrollment_client
        self.suppression = suppression or SuppressionList(repository, events)
        self.fallback_language = fallback_language or settings.fallback_language
        self.locks = locks or KeyedLock()

    async def throttle_reason(self, config: AutoEnrollmentConfig, now: datetime | None = None) -> str | None:
        """Global gate: enabled flag plus hourly and daily caps.

        Counts are live aggregates, so concurrent sweeps can overshoot a
        cap by up to the enrollment concurrency.
        """
        if not config.enabled:
            return "auto_enrollment_disabled"

        now = now or utcnow()
        if config.max_per_hour > 0:
            last_hour = await self.repository.count_enrollments_since(now - timedelta(hours=1))
            if last_hour >= config.max_per_hour:
                return f"hourly_limit_reached ({last_hour}/{config.max_per_hour})"

        if config.max_per_day > 0:
            start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
            today = await self.repository.count_enrollments_since(start_of_day)
            if today >= config.max_per_day:
                return f"daily_limit_reached ({today}/{config.max_per_day})"

        return None

    async def _skip(self, prospect_id: int, stage: GateStage, reason: str) -> GateDecision:
        await self.events.record(
            prospect_id, AutoEnrollSkipped(stage=stage, reason=reason), source="gatekeeper"
        )
        logger.info("auto_enroll_skipped", prospect_id=prospect_id, stage=stage, reason=reason)
        return GateDecision(prospect_id=prospect_id, stage=stage, reason=reason)

    async def evaluate(
        self,
        prospect_id: int,
        config: AutoEnrollmentConfig,
        now: datetime | None = None,
    ) -> GateDecision:
        """Run the full gate for one prospect and enroll it if it passes."""
        now = now or utcnow()

        reason = await self.throttle_reason(config, now)
        if reason:
            return await self._skip(prospect_id, "throttle", reason)

        prospect = await self.repository.get_prospect(prospect_id)
        if prospect is None:
            raise ProspectNotFoundError(f"Prospect {prospect_id} not found")

        contacts = await self.repository.list_contacts(prospect_id)
        reason = eligibility_reason(prospect, contacts, config)
        if reason:
            return await self._skip(prospect_id, "eligibility", reason)

        contact = first_usable_contact(contacts)
        if await self.suppression.is_suppressed(contact.email_normalized):
            return await self._skip(prospect_id, "suppression", "email_suppressed")

        if await self.repository.find_open_enrollment(prospect_id):
            return await self._skip(prospect_id, "duplicate", "already_enrolled")

        campaigns = await self.repository.list_active_campaigns()
        match = select_campaign(prospect, campaigns, self.fallback_language, now)
        if match is None:
            return await self._skip(prospect_id, "matching", "no_matching_campaign")

        return await self._enroll(prospect, match.campaign.id, match.campaign.name, match.score, config, now)

    async def _enroll(
        self,
        prospect: Prospect,
        campaign_id: int,
        campaign_name: str,
        match_score: float,
        config: AutoEnrollmentConfig,
        now: datetime,
    ) -> GateDecision:
        try:
            result = await self.enrollment_client.enroll_prospect(prospect.id, campaign_id)
        except EnrollmentConflictError:
            # Lost the race against another writer between check and create
            return await self._skip(prospect.id, "duplicate", "already_enrolled")
        except Exception as e:
            logger.error(
                "enrollment_failed",
                prospect_id=prospect.id,
                campaign_id=campaign_id,
                error=str(e),
            )
            await self.events.record(
                prospect.id,
                EnrollmentFailed(campaign_id=campaign_id, error=str(e)),
                source="gatekeeper",
            )
            return GateDecision(
                prospect_id=prospect.id, stage="enrollment", reason=str(e), campaign_id=campaign_id
            )

        if not result.success:
            await self.events.record(
                prospect.id,
                EnrollmentFailed(campaign_id=campaign_id, error=result.reason or "rejected"),
                source="gatekeeper",
                contact_id=result.contact_id,
            )
            return GateDecision(
                prospect_id=prospect.id,
                stage="enrollment",
                reason=result.reason,
                campaign_id=campaign_id,
            )

        await self.events.record(
            prospect.id,
            EnrollmentSuccess(campaign_id=campaign_id, campaign_name=campaign_name, match_score=match_score),
            source="gatekeeper",
            contact_id=result.contact_id,
            enrollment_id=result.enrollment_id,
        )
        logger.info(
            "prospect_auto_enrolled",
            prospect_id=prospect.id,
            domain=prospect.domain,
            campaign_id=campaign_id,
            enrollment_id=result.enrollment_id,
        )
        await self._warn_if_overshot(config, now)

        return GateDecision(
            prospect_id=prospect.id,
            enrolled=True,
            campaign_id=campaign_id,
            enrollment_id=result.enrollment_id,
        )

    async def sweep(self, limit: int, config: AutoEnrollmentConfig | None = None) -> SweepResult:
        """Evaluate ready prospects, best score first.

        The config is loaded once for the whole sweep. The sweep stops at
        the first throttle rejection; any other per-prospect error is logged
        and counted without aborting the rest.
        """
        config = config or await load_auto_enrollment_config(self.repository)
        result = SweepResult()

        if not config.enabled:
            logger.info("auto_enrollment_disabled")
            return result

        prospects = await self.repository.list_prospects_ready_for_enrollment(limit)
        logger.info("enrollment_sweep_started", candidates=len(prospects))

        for prospect in prospects:
            try:
                async with self.locks.hold(prospect.id):
                    decision = await self.evaluate(prospect.id, config)
            except Exception as e:
                logger.error("auto_enroll_error", prospect_id=prospect.id, error=str(e))
                await self.events.record(
                    prospect.id, ProcessingFailed(stage="auto_enrollment", error=str(e)), source="batch"
                )
                result.failed += 1
                continue

            result.decisions.append(decision)
            if decision.enrolled:
                result.enrolled += 1
            elif decision.throttled:
                result.throttled = True
                break
            elif decision.stage == "enrollment":
                result.failed += 1
            else:
                result.skipped += 1

        logger.info(
            "enrollment_sweep_completed",
            enrolled=result.enrolled,
            skipped=result.skipped,
            failed=result.failed,
            throttled=result.throttled,
        )
        return result

    async def _warn_if_overshot(self, config: AutoEnrollmentConfig, now: datetime) -> None:
        if config.max_per_hour <= 0:
            return
        last_hour = await self.repository.count_enrollments_since(now - timedelta(hours=1))
        if last_hour > config.max_per_hour:
            logger.warning(
                "throttle_cap_overshot",
                window="hour",
                count=last_hour,
                cap=config.max_per_hour,
            )
