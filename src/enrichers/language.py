"""Language detection for prospect sites."""

import re
from dataclasses import dataclass
from typing import Literal

from config.settings import settings
from src.scrapers.website import Page
from src.utils.logger import get_logger

logger = get_logger("language")

# Most frequent function words per supported language. Used for a simple
# vote when the markup does not declare a language.
STOP_WORDS: dict[str, frozenset[str]] = {
    "en": frozenset("the and of to in is that for it with as on are this you be at by not".split()),
    "fr": frozenset("le la les et des est une un du en que pour dans qui pas sur au avec vous nous".split()),
    "de": frozenset("der die das und ist nicht ein eine zu den mit von sich auf für dem ich sie wir".split()),
    "es": frozenset("el la los las y es en que de un una por con para del se lo como más pero".split()),
    "pt": frozenset("o a os as e é em que de um uma para com não do da dos se mais por".split()),
    "ru": frozenset("и в не на что я с он как это по но из у за то вы все".split()),
}

SCRIPT_RANGES: dict[str, re.Pattern] = {
    "ar": re.compile(r"[؀-ۿ]"),
    "zh": re.compile(r"[一-鿿]"),
    "hi": re.compile(r"[ऀ-ॿ]"),
    "ru": re.compile(r"[Ѐ-ӿ]"),
}

TLD_LANGUAGE = {
    "fr": "fr", "be": "fr",
    "de": "de", "ch": "de", "at": "de",
    "es": "es", "mx": "es", "ar": "es", "cl": "es", "pe": "es", "ve": "es",
    "pt": "pt", "br": "pt",
    "ru": "ru", "ua": "ru", "by": "ru",
    "cn": "zh", "hk": "zh", "tw": "zh",
    "in": "hi",
    "ae": "ar", "sa": "ar", "eg": "ar",
    "uk": "en", "us": "en", "ca": "en", "ie": "en", "au": "en", "nz": "en",
    "sg": "en", "za": "en", "ng": "en", "ke": "en",
}

DOMAIN_KEYWORDS = {
    "french": "fr", "francais": "fr", "france": "fr",
    "deutsch": "de", "german": "de", "germany": "de",
    "spanish": "es", "espanol": "es", "spain": "es",
    "portuguese": "pt", "portugal": "pt",
    "russian": "ru", "russia": "ru",
    "chinese": "zh", "china": "zh",
    "hindi": "hi", "india": "hi",
    "arabic": "ar",
}

MIN_TEXT_LENGTH = 50
MAX_TEXT_LENGTH = 5000

WORD_PATTERN = re.compile(r"[^\W\d_]+", re.UNICODE)


@dataclass
class LanguageDetection:
    language: str
    source: Literal["html", "content", "tld"]


class LanguageDetector:
    """Detects a site's language from markup, visible text, then domain."""

    def __init__(self, supported: list[str] | None = None, fallback: str | None = None):
        self.supported = set(supported or settings.supported_languages)
        self.fallback = fallback or settings.fallback_language

    def _supported(self, code: str | None) -> str | None:
        if not code:
            return None
        code = code.strip().lower().replace("_", "-").split("-")[0]
        return code if code in self.supported else None

    def from_page(self, page: Page) -> LanguageDetection | None:
        """Detect from fetched content; None when nothing conclusive."""
        html_tag = page.soup.find("html")
        declared = self._supported(html_tag.get("lang") if html_tag else None)
        if declared:
            return LanguageDetection(declared, "html")

        og_locale = page.soup.find("meta", attrs={"property": "og:locale"})
        http_equiv = page.soup.find("meta", attrs={"http-equiv": re.compile("^content-language$", re.I)})
        for candidate in (
            og_locale.get("content") if og_locale else None,
            http_equiv.get("content") if http_equiv else None,
            page.headers.get("content-language"),
        ):
            declared = self._supported(candidate.split(",")[0] if candidate else None)
            if declared:
                return LanguageDetection(declared, "html")

        voted = self.from_text(page.text)
        if voted:
            return LanguageDetection(voted, "content")
        return None

    def from_text(self, text: str) -> str | None:
        """Vote on the language of a text by script and stop-word frequency."""
        text = " ".join(text.split())[:MAX_TEXT_LENGTH]
        if len(text) < MIN_TEXT_LENGTH:
            return None

        letters = sum(1 for ch in text if ch.isalpha()) or 1
        for language in SCRIPT_RANGES:
            if len(SCRIPT_RANGES[language].findall(text)) / letters > 0.3:
                return self._supported(language)

        words = [w.lower() for w in WORD_PATTERN.findall(text)]
        if not words:
            return None

        counts = {
            language: sum(1 for w in words if w in vocabulary)
            for language, vocabulary in STOP_WORDS.items()
        }
        best = max(counts, key=lambda lang: counts[lang])
        ranked = sorted(counts.values(), reverse=True)
        # Require a clear winner
        if ranked[0] < 3 or ranked[0] == ranked[1]:
            return None
        return self._supported(best)

    def from_domain(self, domain: str) -> str:
        """TLD and keyword heuristic; always returns a language."""
        parts = domain.lower().split(".")
        for part in (parts[-1], parts[-2] if len(parts) >= 3 else None):
            language = self._supported(TLD_LANGUAGE.get(part or ""))
            if language:
                return language

        for keyword, language in DOMAIN_KEYWORDS.items():
            if keyword in domain.lower() and language in self.supported:
                return language

        return self.fallback

    def detect(self, domain: str, page: Page | None) -> LanguageDetection:
        """Full chain: page content first, domain heuristic as fallback."""
        if page is not None:
            detection = self.from_page(page)
            if detection:
                return detection
        language = self.from_domain(domain)
        logger.debug("language_from_domain", domain=domain, language=language)
        return LanguageDetection(language, "tld")
