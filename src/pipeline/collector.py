"""Signal collection for one prospect domain."""

import asyncio
from typing import Awaitable, TypeVar

import httpx

from config.settings import settings
from src.enrichers.contact_form import ContactFormDetector
from src.enrichers.country import detect_country
from src.enrichers.email import EmailExtractor
from src.enrichers.email_validator import EmailValidator
from src.enrichers.language import LanguageDetector
from src.models.prospect import EmailStatus
from src.models.signals import CollectedSignals, ContactFormResult, ScrapedEmail
from src.scrapers.authority import (
    MozClient,
    OpenPageRankClient,
    SafeBrowsingClient,
    SignalReading,
)
from src.scrapers.website import SiteContent, WebsiteScraper
from src.utils.logger import get_logger
from src.utils.rate_limit import RateLimiter

logger = get_logger("collector")

T = TypeVar("T")

DROPPED_EMAIL_STATUSES = (EmailStatus.INVALID, EmailStatus.DISPOSABLE)


class SignalCollector:
    """Gathers independent signals for a domain.

    Each source is isolated: a failure in one of them is logged, recorded
    in ``failed_sources`` and turned into an unknown value.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        api_rate_limiter: RateLimiter | None = None,
        website: WebsiteScraper | None = None,
        open_pagerank: OpenPageRankClient | None = None,
        moz: MozClient | None = None,
        safe_browsing: SafeBrowsingClient | None = None,
        email_extractor: EmailExtractor | None = None,
        email_validator: EmailValidator | None = None,
        contact_form_detector: ContactFormDetector | None = None,
        language_detector: LanguageDetector | None = None,
    ):
        """Initialize the collector.

        Args:
            client: Shared HTTP client for the API sources.
            api_rate_limiter: Limiter shared by the three API sources.
            website: Page fetcher; built on ``client`` when omitted.
        """
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=settings.http_timeout_seconds,
            headers={"User-Agent": settings.user_agent},
        )
        limiter = api_rate_limiter or RateLimiter(settings.api_requests_per_minute)

        self.open_pagerank = open_pagerank or OpenPageRankClient(self.client, limiter)
        self.moz = moz or MozClient(self.client, limiter)
        self.safe_browsing = safe_browsing or SafeBrowsingClient(self.client, limiter)
        self.website = website or WebsiteScraper()
        self.email_extractor = email_extractor or EmailExtractor()
        self.email_validator = email_validator or EmailValidator()
        self.contact_form_detector = contact_form_detector or ContactFormDetector()
        self.language_detector = language_detector or LanguageDetector()

    async def close(self) -> None:
        await self.website.close()
        if self._owns_client:
            await self.client.aclose()

    async def _guard(self, name: str, awaitable: Awaitable[T], default: T, failed: list[str]) -> T:
        try:
            return await awaitable
        except Exception as e:
            logger.warning("signal_source_failed", source=name, error=str(e), error_type=type(e).__name__)
            failed.append(name)
            return default

    async def collect(self, domain: str) -> CollectedSignals:
        """Collect all signals for ``domain``."""
        failed: list[str] = []

        sources = (self.open_pagerank, self.moz, self.safe_browsing)
        rank, authority, safety, site = await asyncio.gather(
            *(
                self._guard(s.name, s.fetch(domain), SignalReading(s.name, status="failed"), failed)
                for s in sources
            ),
            self._guard("website", self.website.scrape_site(domain), SiteContent(domain=domain), failed),
        )
        for reading in (rank, authority, safety):
            if reading.status == "failed" and reading.source not in failed:
                failed.append(reading.source)

        signals = CollectedSignals(
            domain=domain,
            open_pagerank=rank.value if rank.known else None,
            moz_da=authority.value if authority.known else None,
            spam_penalty=int(safety.value) if safety.known else 0,
            safety_checked=safety.known,
            homepage_reachable=site.reachable,
        )

        language = await self._guard(
            "language", self._detect_language(domain, site), None, failed
        )
        if language:
            signals.detected_language, signals.language_source = language

        signals.detected_country = await self._guard(
            "country", self._detect_country(domain), None, failed
        )
        signals.contact_form = await self._guard(
            "contact_form", self._detect_contact_form(site), ContactFormResult(), failed
        )
        signals.emails = await self._guard("emails", self._find_emails(site), [], failed)
        signals.failed_sources = failed

        logger.info(
            "signals_collected",
            domain=domain,
            open_pagerank=signals.open_pagerank,
            moz_da=signals.moz_da,
            spam_penalty=signals.spam_penalty,
            language=signals.detected_language,
            country=signals.detected_country,
            has_contact_form=signals.contact_form.has_contact_form,
            emails=len(signals.emails),
            failed_sources=failed,
        )
        return signals

    async def _detect_language(self, domain: str, site: SiteContent) -> tuple[str, str]:
        detection = self.language_detector.detect(domain, site.homepage)
        return detection.language, detection.source

    async def _detect_country(self, domain: str) -> str | None:
        return detect_country(domain)

    async def _detect_contact_form(self, site: SiteContent) -> ContactFormResult:
        return self.contact_form_detector.detect_site(site)

    async def _find_emails(self, site: SiteContent) -> list[ScrapedEmail]:
        """Extract and validate emails; invalid and disposable ones are dropped."""
        candidates = self.email_extractor.extract(site.pages)
        if not candidates:
            return []

        results = await asyncio.gather(
            *(self.email_validator.validate(c.email) for c in candidates)
        )
        kept = []
        for candidate, result in zip(candidates, results):
            if result.status in DROPPED_EMAIL_STATUSES:
                logger.debug("email_dropped", email=candidate.email, status=result.status.value)
                continue
            kept.append(candidate.model_copy(update={"status": result.status}))
        return kept
