"""Shared fixtures."""

from typing import Callable

import httpx
import pytest
from bs4 import BeautifulSoup

from src.models.prospect import EmailStatus, ProspectStatus
from src.scrapers.website import Page
from src.services.event_log import EventLog
from src.services.repository import InMemoryRepository
from src.utils.rate_limit import RateLimiter


@pytest.fixture
def repository():
    return InMemoryRepository()


@pytest.fixture
def events(repository):
    return EventLog(repository)


@pytest.fixture
def fast_limiter():
    return RateLimiter(requests_per_minute=100_000)


@pytest.fixture
def make_page() -> Callable[..., Page]:
    """Build a Page the same way WebsiteScraper.fetch_page does."""

    def build(html: str, url: str = "https://example.fr/", headers: dict | None = None) -> Page:
        text_soup = BeautifulSoup(html, "lxml")
        for element in text_soup(["script", "style", "noscript", "template"]):
            element.decompose()
        return Page(
            url=url,
            html=html,
            soup=BeautifulSoup(html, "lxml"),
            text=text_soup.get_text(separator=" ", strip=True),
            headers=headers or {},
        )

    return build


@pytest.fixture
def mock_client() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.AsyncClient]:
    """AsyncClient backed by an in-process handler."""

    def build(handler):
        return httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True)

    return build


@pytest.fixture
def ready_prospect(repository):
    """Factory for a READY_TO_CONTACT prospect with one verified contact."""

    async def create(domain: str = "example.fr", email: str | None = None, **overrides):
        fields = {
            "status": ProspectStatus.READY_TO_CONTACT,
            "score": 55,
            "tier": 2,
            "category": "blogger",
            "language": "fr",
        }
        fields.update(overrides)
        prospect = await repository.create_prospect(domain, **fields)
        await repository.create_contact(
            prospect.id, email or f"jane@{domain}", email_status=EmailStatus.VERIFIED
        )
        return prospect

    return create


@pytest.fixture
def event_types(repository: InMemoryRepository) -> Callable[..., list[str]]:
    """Event types recorded so far, optionally for one prospect."""

    def collect(prospect_id: int | None = None) -> list[str]:
        return [
            e.type for e in repository.events
            if prospect_id is None or e.prospect_id == prospect_id
        ]

    return collect
