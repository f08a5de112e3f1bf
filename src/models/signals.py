"""Signal models produced by the collector and consumed by merge/scoring."""

from typing import Literal

from pydantic import BaseModel, Field

from src.models.prospect import EmailStatus

Confidence = Literal["high", "medium", "low"]

CONFIDENCE_RANK: dict[str, int] = {"high": 3, "medium": 2, "low": 1}

FORM_FIELD_NAMES = ("name", "email", "phone", "subject", "message", "company")


class ScrapedEmail(BaseModel):
    """Email found on a page, with provenance and validation result."""

    email: str
    source: Literal["mailto", "text", "html", "obfuscated"]
    confidence: Confidence
    status: EmailStatus = EmailStatus.UNVERIFIED
    first_name: str | None = None
    last_name: str | None = None
    page_url: str | None = None


class ContactFormResult(BaseModel):
    """Outcome of contact-form detection for one site."""

    has_contact_form: bool = False
    contact_form_url: str | None = None
    fields: list[str] = Field(default_factory=list)
    has_captcha: bool = False
    confidence: Confidence = "low"
    detection_method: Literal["form_analysis", "url_pattern", "none"] = "none"


class CollectedSignals(BaseModel):
    """Everything the collector learned about a domain.

    ``None`` always means "unknown": the source was skipped, timed out or
    answered with an error.
    """

    domain: str
    open_pagerank: float | None = None
    moz_da: float | None = None
    spam_penalty: int = 0
    safety_checked: bool = False
    detected_language: str | None = None
    language_source: Literal["html", "content", "tld", "none"] = "none"
    detected_country: str | None = None
    homepage_reachable: bool = False
    contact_form: ContactFormResult = Field(default_factory=ContactFormResult)
    emails: list[ScrapedEmail] = Field(default_factory=list)
    failed_sources: list[str] = Field(default_factory=list)


class ScoreResult(BaseModel):
    """Stored score and the tier derived from exactly that score."""

    score: int = Field(ge=0, le=100)
    tier: int = Field(ge=1, le=4)
