"""Website fetcher for prospect enrichment."""

import re
from dataclasses import dataclass, field
from urllib.parse import urljoin, urlparse

import httpx
from bs4 import BeautifulSoup

from config.settings import settings
from src.utils.domain import homepage_url
from src.utils.logger import get_logger
from src.utils.rate_limit import RateLimiter

logger = get_logger("website")

CONTACT_LINK_PATTERN = re.compile(
    r"contact|kontakt|contacto|contato|contatti|nous-contacter|get-in-touch|write-to-us",
    re.I,
)

# Tried in order when the homepage has no usable contact link
FALLBACK_CONTACT_PATHS = ["/contact", "/contact-us", "/kontakt", "/contacto"]


@dataclass
class Page:
    """A fetched and parsed HTML page."""

    url: str
    html: str
    soup: BeautifulSoup
    text: str
    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class SiteContent:
    """Homepage plus, when found, the site's contact page."""

    domain: str
    homepage: Page | None = None
    contact_page: Page | None = None

    @property
    def reachable(self) -> bool:
        return self.homepage is not None

    @property
    def pages(self) -> list[Page]:
        return [p for p in (self.homepage, self.contact_page) if p is not None]


class WebsiteScraper:
    """Fetches prospect homepages and contact pages."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
        rate_limiter: RateLimiter | None = None,
    ):
        """Initialize the website scraper.

        Args:
            client: Shared HTTP client; one is created when omitted.
            timeout: Per-request timeout in seconds.
            rate_limiter: Limiter for outbound page fetches.
        """
        self.timeout = timeout or settings.http_timeout_seconds
        self.rate_limiter = rate_limiter or RateLimiter(settings.website_requests_per_minute)
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            headers={
                "User-Agent": settings.user_agent,
                "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
                "Accept-Language": "en-US,en;q=0.9,fr;q=0.8",
            },
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._owns_client:
            await self.client.aclose()

    async def fetch_page(self, url: str) -> Page | None:
        """Fetch a single page and parse it.

        Returns:
            Parsed page, or None on timeout, transport error or non-2xx.
        """
        await self.rate_limiter.acquire()
        try:
            response = await self.client.get(url, timeout=self.timeout)
            response.raise_for_status()
        except httpx.TimeoutException:
            logger.warning("page_timeout", url=url)
            return None
        except httpx.HTTPStatusError as e:
            logger.debug("page_http_error", url=url, status=e.response.status_code)
            return None
        except httpx.HTTPError as e:
            logger.debug("page_request_error", url=url, error=str(e))
            return None

        html = response.text
        soup = BeautifulSoup(html, "lxml")

        # Visible text only; the full soup is kept for markup checks
        text_soup = BeautifulSoup(html, "lxml")
        for element in text_soup(["script", "style", "noscript", "template"]):
            element.decompose()
        text = text_soup.get_text(separator=" ", strip=True)

        return Page(
            url=str(response.url),
            html=html,
            soup=soup,
            text=text,
            headers={k.lower(): v for k, v in response.headers.items()},
        )

    def find_contact_link(self, page: Page) -> str | None:
        """Return the first same-site link that looks like a contact page."""
        host = urlparse(page.url).netloc
        for link in page.soup.find_all("a", href=True):
            href = link["href"]
            if href.startswith(("mailto:", "tel:", "javascript:", "#")):
                continue
            if CONTACT_LINK_PATTERN.search(href) or CONTACT_LINK_PATTERN.search(
                link.get_text(" ", strip=True)
            ):
                full_url = urljoin(page.url, href)
                if urlparse(full_url).netloc == host and full_url.rstrip("/") != page.url.rstrip("/"):
                    return full_url
        return None

    async def scrape_site(self, domain: str) -> SiteContent:
        """Fetch the homepage and the contact page of a domain."""
        site = SiteContent(domain=domain)
        site.homepage = await self.fetch_page(homepage_url(domain))
        if site.homepage is None:
            logger.info("homepage_unreachable", domain=domain)
            return site

        contact_url = self.find_contact_link(site.homepage)
        if contact_url:
            site.contact_page = await self.fetch_page(contact_url)
        else:
            for path in FALLBACK_CONTACT_PATHS:
                site.contact_page = await self.fetch_page(urljoin(site.homepage.url, path))
                if site.contact_page:
                    break

        logger.debug(
            "site_scraped",
            domain=domain,
            contact_page=site.contact_page.url if site.contact_page else None,
        )
        return site
