"""Enrichers package."""

from src.enrichers.contact_form import ContactFormDetector
from src.enrichers.country import detect_country, timezone_for_country
from src.enrichers.email import EmailExtractor
from src.enrichers.email_validator import EmailValidator
from src.enrichers.language import LanguageDetector
from src.enrichers.tags import RuleBasedTagAssignor, TagAssignor, TagContext

__all__ = [
    "EmailExtractor",
    "EmailValidator",
    "ContactFormDetector",
    "LanguageDetector",
    "detect_country",
    "timezone_for_country",
    "RuleBasedTagAssignor",
    "TagAssignor",
    "TagContext",
]
