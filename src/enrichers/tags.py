"""Tag assignment for enriched prospects."""

from dataclasses import dataclass
from typing import Callable, Protocol

from src.services.repository import Repository
from src.utils.logger import get_logger

logger = get_logger("tags")


@dataclass(frozen=True)
class TagContext:
    """Merged record fields tag rules may look at."""

    category: str
    tier: int
    score: int
    country: str | None
    has_verified_email: bool


class TagAssignor(Protocol):
    async def assign_tags(self, prospect_id: int, domain: str, context: TagContext) -> list[str]: ...


EUROPEAN_COUNTRIES = frozenset({
    "FR", "DE", "ES", "IT", "GB", "NL", "BE", "CH", "AT", "PT",
    "PL", "SE", "NO", "FI", "DK", "IE", "GR", "CZ", "RO", "HU",
})


def _domain_has(*keywords: str) -> Callable[[str, TagContext], bool]:
    return lambda domain, _ctx: any(k in domain for k in keywords)


# (tag, rule) pairs evaluated in order; domain is lower-cased
TAG_RULES: list[tuple[str, Callable[[str, TagContext], bool]]] = [
    # Type
    ("presse_ecrite", _domain_has("journal", "presse", "news", "magazine", "quotidien", "hebdo")),
    ("blogueur", _domain_has("blog")),
    ("influenceur", lambda d, c: c.category == "influencer" or "influenc" in d),
    ("media", lambda d, c: c.category == "media" or any(k in d for k in ("tv", "radio", "media"))),
    # Sector
    ("assurance", _domain_has("assurance", "insurance", "mutuelle")),
    ("finance", _domain_has("banque", "finance", "bank", "credit", "invest")),
    ("voyage", _domain_has("voyage", "travel", "tourisme", "tourism", "vacances", "holiday")),
    ("tech", _domain_has("tech", "digital", "numerique", "software")),
    ("sante", _domain_has("sante", "health", "medical", "hopital", "hospital", "clinique")),
    ("immobilier", _domain_has("immobilier", "immo", "realestate", "property")),
    ("education", _domain_has("education", "ecole", "school", "university", "formation")),
    # Quality
    ("premium", lambda d, c: c.tier == 1),
    ("high_authority", lambda d, c: c.score >= 80),
    ("verified", lambda d, c: c.has_verified_email and c.score >= 50),
    # Geography
    ("france", lambda d, c: c.country == "FR"),
    ("europe", lambda d, c: c.country in EUROPEAN_COUNTRIES),
    ("international", _domain_has("international")),
]


def detect_tags(domain: str, context: TagContext) -> list[str]:
    """Pure rule evaluation, in rule order."""
    domain = domain.lower()
    return [tag for tag, rule in TAG_RULES if rule(domain, context)]


class RuleBasedTagAssignor:
    """Detects tags from domain keywords and merged fields and stores them."""

    def __init__(self, repository: Repository):
        self.repository = repository

    async def assign_tags(self, prospect_id: int, domain: str, context: TagContext) -> list[str]:
        tags = detect_tags(domain, context)
        if tags:
            await self.repository.add_prospect_tags(prospect_id, tags)
        logger.debug("tags_detected", prospect_id=prospect_id, tags=tags)
        return tags
