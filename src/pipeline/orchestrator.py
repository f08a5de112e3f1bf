"""Enrichment pipeline orchestrator."""

from dataclasses import dataclass, field
from datetime import datetime

from config.settings import settings
from src.enrichers.tags import RuleBasedTagAssignor, TagAssignor, TagContext
from src.models.errors import InvalidTransitionError, ProspectNotFoundError
from src.models.events import (
    ContactsDiscovered,
    EnrichmentCompleted,
    EnrichmentSkipped,
    EnrollmentFailed,
    EnrollmentSuccess,
    LanguageCorrected,
    ProcessingFailed,
    TagAssignmentFailed,
    TagsAssigned,
)
from src.models.prospect import Prospect, ProspectStatus, utcnow
from src.pipeline.collector import SignalCollector
from src.pipeline.gatekeeper import (
    AutoEnrollmentConfig,
    AutoEnrollmentGatekeeper,
    GateDecision,
    SweepResult,
    load_auto_enrollment_config,
)
from src.pipeline.state import ProspectStateMachine, can_enrich
from src.processors.merger import MergeResult, merge_fields
from src.processors.scorer import score_prospect
from src.services.enrollment import (
    EnrollmentClient,
    EnrollmentResult,
    RepositoryEnrollmentClient,
)
from src.services.event_log import EventLog
from src.services.repository import Repository, has_verified_contact
from src.services.suppression import SuppressionList
from src.utils.logger import get_logger
from src.utils.rate_limit import KeyedLock

logger = get_logger("pipeline")


@dataclass
class EnrichmentOutcome:
    """Result of enriching one prospect."""

    prospect_id: int
    enriched: bool = False
    score: int | None = None
    tier: int | None = None
    skipped_reason: str | None = None
    gate: GateDecision | None = None


@dataclass
class BatchResult:
    """Counters for one batch run."""

    processed: int = 0
    enriched: int = 0
    skipped: int = 0
    failed: int = 0
    enrolled: int = 0

    outcomes: list[EnrichmentOutcome] = field(default_factory=list)

    started_at: datetime = field(default_factory=utcnow)
    completed_at: datetime | None = None

    @property
    def duration_seconds(self) -> float | None:
        if self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None


class EnrichmentPipeline:
    """Turns a bare domain into a scored, tagged and possibly enrolled prospect.

    Every step appends to the event log. The whole enrich -> gate sequence
    for one prospect runs under a per-prospect lock, so a scheduled batch
    and a manual re-enrichment never interleave on the same record.
    """

    def __init__(
        self,
        repository: Repository,
        events: EventLog | None = None,
        collector: SignalCollector | None = None,
        tag_assignor: TagAssignor | None = None,
        enrollment_client: EnrollmentClient | None = None,
        gatekeeper: AutoEnrollmentGatekeeper | None = None,
        supported_languages: list[str] | None = None,
        locks: KeyedLock | None = None,
    ):
        """Initialize the pipeline.

        Args:
            repository: Persistence adapter.
            events: Event log; built on ``repository`` when omitted.
            collector: Signal collector; a default one makes real HTTP calls.
            tag_assignor: Tag collaborator, rule based by default.
            enrollment_client: Delivery collaborator used by the default gatekeeper.
            gatekeeper: Auto-enrollment gatekeeper.
            supported_languages: Language codes accepted as valid on merge.
            locks: Per-prospect locks, shareable with other pipelines.
        """
        self.repository = repository
        self.events = events or EventLog(repository)
        self.locks = locks or KeyedLock()
        self.state = ProspectStateMachine(repository, self.events)
        self.suppression = SuppressionList(repository, self.events)
        self.collector = collector or SignalCollector()
        self.tag_assignor = tag_assignor or RuleBasedTagAssignor(repository)
        self.supported_languages = supported_languages or settings.supported_languages

        client = enrollment_client or RepositoryEnrollmentClient(
            repository, self.events, self.suppression, self.state
        )
        self.gatekeeper = gatekeeper or AutoEnrollmentGatekeeper(
            repository,
            self.events,
            client,
            suppression=self.suppression,
            locks=self.locks,
        )

    async def close(self) -> None:
        await self.collector.close()

    # ============== Single prospect ==============

    async def enrich_prospect(self, prospect_id: int) -> EnrichmentOutcome:
        """Collect, merge, score and tag one prospect.

        Callers must hold the prospect's lock; ``process_prospect`` does.

        Raises:
            ProspectNotFoundError: If the prospect does not exist.
        """
        prospect = await self.repository.get_prospect(prospect_id)
        if prospect is None:
            raise ProspectNotFoundError(f"Prospect {prospect_id} not found")

        if not can_enrich(prospect.status):
            if prospect.status == ProspectStatus.DO_NOT_CONTACT:
                reason = "do_not_contact"
            else:
                reason = "not_enrichable"
            await self.events.record(
                prospect_id,
                EnrichmentSkipped(reason=reason, status=prospect.status),
                source="enrichment",
            )
            logger.info(
                "enrichment_skipped",
                prospect_id=prospect_id,
                reason=reason,
                status=prospect.status.value,
            )
            return EnrichmentOutcome(prospect_id=prospect_id, skipped_reason=reason)

        logger.info("enrichment_started", prospect_id=prospect_id, domain=prospect.domain)
        prospect = await self.state.start_enrichment(prospect_id)

        signals = await self.collector.collect(prospect.domain)

        existing = await self.repository.list_contacts(prospect_id)
        suppressed = await self.suppression.filter_suppressed(e.email for e in signals.emails)
        merge = merge_fields(
            prospect,
            signals,
            existing_contacts=len(existing),
            supported_languages=self.supported_languages,
            suppressed_emails=suppressed,
        )

        if merge.language_correction:
            previous, corrected = merge.language_correction
            await self.events.record(
                prospect_id,
                LanguageCorrected(previous=previous, corrected=corrected),
                source="enrichment",
            )

        result = score_prospect(
            rank=merge.value(prospect, "open_pagerank"),
            domain_authority=merge.value(prospect, "moz_da"),
            has_contact_form=bool(merge.value(prospect, "contact_form_url")),
            spam_penalty=merge.value(prospect, "spam_score"),
        )

        await self._create_contacts(prospect, merge)

        updated = await self.state.finish_enrichment(
            prospect_id, **merge.changes, score=result.score, tier=result.tier
        )

        await self._assign_tags(updated)

        await self.events.record(
            prospect_id,
            EnrichmentCompleted(
                score=result.score,
                tier=result.tier,
                language=updated.language,
                country=updated.country,
                open_pagerank=signals.open_pagerank,
                moz_da=signals.moz_da,
                spam_penalty=signals.spam_penalty,
                has_contact_form=signals.contact_form.has_contact_form,
                emails_found=len(signals.emails),
                failed_sources=signals.failed_sources,
            ),
            source="enrichment",
        )
        logger.info(
            "enrichment_completed",
            prospect_id=prospect_id,
            domain=prospect.domain,
            score=result.score,
            tier=result.tier,
            status=updated.status.value,
        )
        return EnrichmentOutcome(
            prospect_id=prospect_id, enriched=True, score=result.score, tier=result.tier
        )

    async def _create_contacts(self, prospect: Prospect, merge: MergeResult) -> None:
        if not merge.new_contacts and not merge.skipped_suppressed:
            return

        created = []
        for scraped in merge.new_contacts:
            contact = await self.repository.create_contact(
                prospect.id,
                scraped.email,
                first_name=scraped.first_name,
                last_name=scraped.last_name,
                email_status=scraped.status,
                discovered_via=f"scrape:{scraped.source}",
            )
            created.append(contact.email_normalized)

        await self.events.record(
            prospect.id,
            ContactsDiscovered(emails=created, skipped_suppressed=merge.skipped_suppressed),
            source="enrichment",
        )
        logger.info(
            "contacts_discovered",
            prospect_id=prospect.id,
            created=len(created),
            skipped_suppressed=merge.skipped_suppressed,
        )

    async def _assign_tags(self, prospect: Prospect) -> None:
        """Tag the prospect; a failure here never aborts enrichment."""
        try:
            contacts = await self.repository.list_contacts(prospect.id)
            context = TagContext(
                category=prospect.category,
                tier=prospect.tier,
                score=prospect.score,
                country=prospect.country,
                has_verified_email=has_verified_contact(contacts),
            )
            tags = await self.tag_assignor.assign_tags(prospect.id, prospect.domain, context)
        except Exception as e:
            logger.warning("tag_assignment_failed", prospect_id=prospect.id, error=str(e))
            await self.events.record(
                prospect.id, TagAssignmentFailed(error=str(e)), source="enrichment"
            )
            return

        if tags:
            await self.events.record(prospect.id, TagsAssigned(tags=tags), source="enrichment")

    async def process_prospect(
        self,
        prospect_id: int,
        config: AutoEnrollmentConfig | None = None,
        auto_enroll: bool = True,
    ) -> EnrichmentOutcome:
        """Enrich then gate one prospect under its lock."""
        async with self.locks.hold(prospect_id):
            outcome = await self.enrich_prospect(prospect_id)
            if not auto_enroll or not outcome.enriched:
                return outcome

            config = config or await load_auto_enrollment_config(self.repository)
            if config.enabled:
                outcome.gate = await self.gatekeeper.evaluate(prospect_id, config)
            return outcome

    async def enroll_prospect(self, prospect_id: int, campaign_id: int) -> EnrollmentResult:
        """Enroll into a chosen campaign, bypassing throttle and matching.

        Suppression and the one-open-enrollment rule still apply.

        Raises:
            EnrollmentConflictError: If the prospect already has an open enrollment.
            ProspectNotFoundError: If the prospect or campaign is missing.
        """
        async with self.locks.hold(prospect_id):
            campaign = await self.repository.get_campaign(campaign_id)
            if campaign is None:
                raise ProspectNotFoundError(f"Campaign {campaign_id} not found")

            result = await self.gatekeeper.enrollment_client.enroll_prospect(prospect_id, campaign_id)
            if result.success:
                payload = EnrollmentSuccess(
                    campaign_id=campaign_id, campaign_name=campaign.name, automatic=False
                )
            else:
                payload = EnrollmentFailed(campaign_id=campaign_id, error=result.reason or "rejected")
            await self.events.record(
                prospect_id,
                payload,
                source="manual",
                contact_id=result.contact_id,
                enrollment_id=result.enrollment_id,
            )
            return result

    # ============== Batches ==============

    async def _record_failure(self, prospect_id: int, stage: str, error: Exception) -> None:
        logger.error(
            "prospect_processing_failed",
            prospect_id=prospect_id,
            stage=stage,
            error=str(error),
            error_type=type(error).__name__,
        )
        await self.events.record(
            prospect_id, ProcessingFailed(stage=stage, error=str(error)), source="batch"
        )

    async def run_enrichment_batch(
        self, limit: int | None = None, auto_enroll: bool = True
    ) -> BatchResult:
        """Enrich NEW unscored prospects one after another.

        One prospect's failure is logged and recorded on that prospect and
        the loop moves on.
        """
        limit = limit or settings.enrichment_batch_size
        result = BatchResult()

        prospects = await self.repository.list_prospects_for_enrichment(limit)
        config = await load_auto_enrollment_config(self.repository) if auto_enroll else None
        logger.info("enrichment_batch_started", candidates=len(prospects))

        for prospect in prospects:
            result.processed += 1
            try:
                outcome = await self.process_prospect(prospect.id, config, auto_enroll)
            except InvalidTransitionError as e:
                # Moved by another writer since the batch was listed
                logger.info("enrichment_skipped", prospect_id=prospect.id, reason=str(e))
                result.skipped += 1
                continue
            except Exception as e:
                await self._record_failure(prospect.id, "enrichment", e)
                result.failed += 1
                continue

            result.outcomes.append(outcome)
            if outcome.enriched:
                result.enriched += 1
            else:
                result.skipped += 1
            if outcome.gate and outcome.gate.enrolled:
                result.enrolled += 1

        result.completed_at = utcnow()
        logger.info(
            "enrichment_batch_completed",
            processed=result.processed,
            enriched=result.enriched,
            skipped=result.skipped,
            failed=result.failed,
            enrolled=result.enrolled,
            duration=result.duration_seconds,
        )
        return result

    async def run_enrollment_sweep(
        self, limit: int | None = None, config: AutoEnrollmentConfig | None = None
    ) -> SweepResult:
        """Gate every ready prospect, best score first."""
        return await self.gatekeeper.sweep(limit or settings.auto_enrollment_batch_size, config)
