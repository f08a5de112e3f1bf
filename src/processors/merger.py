"""Field merge rules between stored prospect values and fresh detections."""

from dataclasses import dataclass, field
from typing import Any, Iterable

from src.enrichers.country import timezone_for_country
from src.models.prospect import EmailStatus, Prospect
from src.models.signals import CONFIDENCE_RANK, CollectedSignals, ScrapedEmail
from src.utils.logger import get_logger

logger = get_logger("merger")

MAX_AUTO_CONTACTS = 3
AUTO_CONTACT_STATUSES = (EmailStatus.VERIFIED, EmailStatus.RISKY)


@dataclass
class MergeResult:
    """What to persist after merging.

    ``changes`` holds only prospect fields whose value actually differs
    from the stored record, so merging twice yields no changes.
    """

    changes: dict[str, Any] = field(default_factory=dict)
    new_contacts: list[ScrapedEmail] = field(default_factory=list)
    language_correction: tuple[str, str] | None = None
    skipped_suppressed: int = 0

    def value(self, prospect: Prospect, name: str) -> Any:
        """Merged value of a field: the change if any, else the stored one."""
        return self.changes.get(name, getattr(prospect, name))


def merge_fields(
    prospect: Prospect,
    signals: CollectedSignals,
    existing_contacts: int,
    supported_languages: Iterable[str],
    suppressed_emails: Iterable[str] = (),
) -> MergeResult:
    """Reconcile detections with the stored record, field by field.

    Args:
        prospect: Current stored prospect.
        signals: Fresh collector output.
        existing_contacts: Number of contacts already attached.
        supported_languages: Language codes considered valid.
        suppressed_emails: Normalized emails that must not become contacts.
    """
    result = MergeResult()
    merged: dict[str, Any] = {}
    supported = set(supported_languages)

    # Language: fill if empty, self-heal if unsupported, else trust stored
    detected = signals.detected_language
    if detected:
        if not prospect.language:
            merged["language"] = detected
        elif prospect.language not in supported and detected != prospect.language:
            logger.warning(
                "invalid_language_corrected",
                prospect_id=prospect.id,
                previous=prospect.language,
                corrected=detected,
            )
            merged["language"] = detected
            result.language_correction = (prospect.language, detected)

    # Country: a stored value is never overwritten
    country = prospect.country
    if not country and signals.detected_country:
        country = signals.detected_country
        merged["country"] = country

    # Timezone follows the country whenever it was empty or just changed
    if not prospect.country or country != prospect.country:
        timezone = timezone_for_country(country)
        if timezone:
            merged["timezone"] = timezone

    # Contact form: only when none was known before
    form = signals.contact_form
    if not prospect.contact_form_url and form.has_contact_form:
        merged["contact_form_url"] = form.contact_form_url
        merged["contact_form_fields"] = list(form.fields)
        merged["has_captcha"] = form.has_captcha

    # Authority metrics: a fresh known value wins, unknown keeps the stored one
    if signals.open_pagerank is not None:
        merged["open_pagerank"] = signals.open_pagerank
    if signals.moz_da is not None:
        merged["moz_da"] = signals.moz_da
    if signals.safety_checked:
        merged["spam_score"] = signals.spam_penalty

    result.changes = {k: v for k, v in merged.items() if getattr(prospect, k) != v}

    if existing_contacts == 0:
        result.new_contacts, result.skipped_suppressed = select_contacts(
            signals.emails, set(suppressed_emails)
        )

    return result


def select_contacts(
    emails: list[ScrapedEmail], suppressed: set[str]
) -> tuple[list[ScrapedEmail], int]:
    """Top scraped emails eligible to become contacts.

    Only verified or risky addresses qualify, best confidence first,
    capped at ``MAX_AUTO_CONTACTS``.
    """
    eligible = [e for e in emails if e.status in AUTO_CONTACT_STATUSES]
    allowed = [e for e in eligible if e.email not in suppressed]
    allowed.sort(key=lambda e: CONFIDENCE_RANK[e.confidence], reverse=True)
    return allowed[:MAX_AUTO_CONTACTS], len(eligible) - len(allowed)
