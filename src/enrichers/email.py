"""Email extraction from website content."""

import re

from bs4 import BeautifulSoup

from src.models.signals import CONFIDENCE_RANK, ScrapedEmail
from src.scrapers.website import Page
from src.utils.domain import normalize_email
from src.utils.logger import get_logger

logger = get_logger("email_extractor")


class EmailExtractor:
    """Extract email addresses (and nearby names) from fetched pages."""

    EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")

    # name [at] domain.com / name (at) domain.com / name @ domain . com
    OBFUSCATED_PATTERNS = [
        re.compile(r"([a-zA-Z0-9._%+-]+)\s*\[at\]\s*([a-zA-Z0-9.-]+\.[a-zA-Z]{2,})", re.I),
        re.compile(r"([a-zA-Z0-9._%+-]+)\s*\(at\)\s*([a-zA-Z0-9.-]+\.[a-zA-Z]{2,})", re.I),
        re.compile(r"([a-zA-Z0-9._%+-]+)\s+@\s+([a-zA-Z0-9.-]+)\s*\.\s*([a-zA-Z]{2,})", re.I),
    ]

    IGNORED_EMAILS = {
        "example@example.com",
        "test@test.com",
        "admin@localhost",
        "noreply@noreply.com",
        "no-reply@example.com",
    }

    # Platform addresses embedded in themes and widgets
    EXCLUDE_PATTERNS = [
        re.compile(r"@(example|test|domain|email|yourwebsite|yourdomain)\.com$"),
        re.compile(r"@sentry"),
        re.compile(r"@wix"),
        re.compile(r"@wordpress"),
        re.compile(r"@squarespace"),
        re.compile(r"\.(jpg|jpeg|png|gif|svg|webp)$"),
    ]

    SIMPLE_SYNTAX = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

    def extract(self, pages: list[Page]) -> list[ScrapedEmail]:
        """Extract emails from pages.

        Args:
            pages: Pages fetched for one site (homepage, contact page).

        Returns:
            Deduplicated emails, highest confidence first.
        """
        found: dict[str, ScrapedEmail] = {}
        for page in pages:
            for item in self._extract_from_page(page):
                existing = found.get(item.email)
                if existing is None or CONFIDENCE_RANK[item.confidence] > CONFIDENCE_RANK[existing.confidence]:
                    found[item.email] = item

        emails = sorted(found.values(), key=lambda e: CONFIDENCE_RANK[e.confidence], reverse=True)
        logger.debug("emails_extracted", count=len(emails), pages=len(pages))
        return emails

    def _extract_from_page(self, page: Page) -> list[ScrapedEmail]:
        emails: list[ScrapedEmail] = []

        # 1. mailto links (highest confidence)
        for link in page.soup.select('a[href^="mailto:"]'):
            email = normalize_email(link["href"][len("mailto:"):].split("?")[0])
            if self.is_plausible(email):
                first, last = self.extract_name(email, page.soup)
                emails.append(
                    ScrapedEmail(
                        email=email,
                        source="mailto",
                        confidence="high",
                        first_name=first,
                        last_name=last,
                        page_url=page.url,
                    )
                )

        # 2. Visible text
        for match in self.EMAIL_PATTERN.finditer(page.text):
            email = normalize_email(match.group())
            if self.is_plausible(email):
                emails.append(ScrapedEmail(email=email, source="text", confidence="medium", page_url=page.url))

        # 3. Raw HTML (comments, attributes, inline scripts)
        for match in self.EMAIL_PATTERN.finditer(page.html):
            email = normalize_email(match.group())
            if self.is_plausible(email):
                emails.append(ScrapedEmail(email=email, source="html", confidence="medium", page_url=page.url))

        # 4. Obfuscated forms
        for pattern in self.OBFUSCATED_PATTERNS:
            for match in pattern.finditer(page.text):
                groups = match.groups()
                domain = ".".join(groups[1:]) if len(groups) == 3 else groups[1]
                email = normalize_email(f"{groups[0]}@{domain}")
                if self.is_plausible(email):
                    emails.append(
                        ScrapedEmail(email=email, source="obfuscated", confidence="low", page_url=page.url)
                    )

        return emails

    def is_plausible(self, email: str) -> bool:
        """Cheap filter for strings that look like real, contactable emails."""
        if email in self.IGNORED_EMAILS:
            return False
        if not 5 <= len(email) <= 254:
            return False
        if any(pattern.search(email) for pattern in self.EXCLUDE_PATTERNS):
            return False
        return bool(self.SIMPLE_SYNTAX.match(email))

    @staticmethod
    def extract_name(email: str, soup: BeautifulSoup) -> tuple[str | None, str | None]:
        """Guess a person's name from the markup around a mailto link.

        Uses the link text when it is not the address itself (2 to 4 words),
        otherwise the parent element's short text.
        """
        for link in soup.select('a[href^="mailto:"]'):
            if normalize_email(link["href"][len("mailto:"):].split("?")[0]) != email:
                continue

            text = link.get_text(" ", strip=True)
            if text and normalize_email(text) != email and len(text) < 100:
                parts = [p for p in text.split() if len(p) > 1]
                if 2 <= len(parts) <= 4 and not any("@" in p for p in parts):
                    return parts[0].capitalize(), " ".join(p.capitalize() for p in parts[1:])

            parent = link.parent
            nearby = parent.get_text(" ", strip=True) if parent else ""
            if nearby and len(nearby) < 200:
                parts = [p for p in nearby.split() if 2 < len(p) < 30 and "@" not in p]
                if 2 <= len(parts) <= 4:
                    return parts[0].capitalize(), parts[1].capitalize()
            break

        return None, None
