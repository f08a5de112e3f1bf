"""Contact form detection."""

import re

from bs4 import BeautifulSoup, Tag

from src.models.signals import CONFIDENCE_RANK, FORM_FIELD_NAMES, ContactFormResult
from src.scrapers.website import Page, SiteContent
from src.utils.logger import get_logger

logger = get_logger("contact_form")

# Each match against a form's action/id/class adds 10 points
FORM_INDICATORS = [
    re.compile(p, re.I)
    for p in (
        r"contact",
        r"kontakt",
        r"contacto",
        r"contato",
        r"formulaire",
        r"message",
        r"send.*message",
        r"get.*touch",
        r"contact[-_]form",
        r"contact[-_]us",
        r"message[-_]form",
        r"inquiry",
        r"enquiry",
    )
]

SEND_WORDS = re.compile(r"send|envoyer|enviar|senden|отправить|送信|भेजें|إرسال", re.I)

CAPTCHA_MARKERS = (
    "g-recaptcha",
    "h-captcha",
    "cf-turnstile",
    "grecaptcha",
    "hcaptcha",
    "data-sitekey",
    "recaptcha",
)
CAPTCHA_SCRIPTS = re.compile(r"recaptcha|hcaptcha|turnstile", re.I)

FIELD_PATTERNS = {
    "name": re.compile(r"name|nom|nombre|nome|имя|名前|नाम|اسم", re.I),
    "email": re.compile(r"e-?mail|correo|correio|почта|メール|ईमेल|بريد", re.I),
    "phone": re.compile(r"phone|tel|telefon|téléphone|telefone|телефон|電話|फोन|هاتف", re.I),
    "subject": re.compile(r"subject|sujet|asunto|assunto|betreff|тема|件名|विषय|موضوع", re.I),
    "message": re.compile(
        r"message|nachricht|mensaje|mensagem|сообщение|メッセージ|संदेश|رسالة|comment|comentario",
        re.I,
    ),
    "company": re.compile(r"company|entreprise|empresa|firma|компания|会社|कंपनी|شركة", re.I),
}

CONTACT_URL_PATTERN = re.compile(
    r"/(contact|kontakt|contacto|contato|get-in-touch|nous-contacter)", re.I
)


class ContactFormDetector:
    """Scores the forms on a page and reports the most contact-like one."""

    def detect_site(self, site: SiteContent) -> ContactFormResult:
        """Check the homepage first, then the contact page."""
        if site.homepage is None:
            return ContactFormResult()

        result = self.detect(site.homepage)
        if result.has_contact_form or site.contact_page is None:
            return result
        return self.detect(site.contact_page)

    def detect(self, page: Page) -> ContactFormResult:
        """Detect a contact form on one page."""
        has_captcha = self.detect_captcha(page.html, page.soup)
        best: ContactFormResult | None = None

        for form in page.soup.find_all("form"):
            score = self.score_form(form)
            if score <= 0:
                continue

            fields = self.detect_fields(form)
            candidate = ContactFormResult(
                has_contact_form=True,
                contact_form_url=page.url,
                fields=fields,
                has_captcha=has_captcha,
                confidence=self.confidence(score, fields),
                detection_method="form_analysis",
            )
            if best is None or CONFIDENCE_RANK[candidate.confidence] > CONFIDENCE_RANK[best.confidence]:
                best = candidate

        if best:
            logger.debug("contact_form_detected", url=page.url, confidence=best.confidence)
            return best

        # A form-bearing page at a contact-looking URL still counts
        forms = page.soup.find_all("form")
        if forms and CONTACT_URL_PATTERN.search(page.url):
            logger.debug("contact_form_detected_by_url", url=page.url)
            return ContactFormResult(
                has_contact_form=True,
                contact_form_url=page.url,
                fields=self.detect_fields(forms[0]),
                has_captcha=has_captcha,
                confidence="medium",
                detection_method="url_pattern",
            )

        return ContactFormResult()

    @staticmethod
    def score_form(form: Tag) -> int:
        score = 0
        attrs = " ".join(
            [
                form.get("action") or "",
                form.get("id") or "",
                " ".join(form.get("class") or []),
            ]
        )
        for pattern in FORM_INDICATORS:
            if pattern.search(attrs):
                score += 10

        if form.find("input", attrs={"type": re.compile(r"^email$", re.I)}) and form.find("textarea"):
            score += 15

        if SEND_WORDS.search(form.decode_contents()):
            score += 5

        return score

    @staticmethod
    def detect_fields(form: Tag) -> list[str]:
        found: set[str] = set()
        for element in form.find_all(["input", "textarea", "select"]):
            label = element.find_parent("label")
            text = " ".join(
                [
                    element.get("name") or "",
                    element.get("id") or "",
                    element.get("placeholder") or "",
                    label.get_text(" ", strip=True) if label else "",
                ]
            )
            for field_name, pattern in FIELD_PATTERNS.items():
                if pattern.search(text):
                    found.add(field_name)
            if (element.get("type") or "").lower() == "email":
                found.add("email")
            if element.name == "textarea" and "message" not in found and not text.strip():
                found.add("message")
        return [name for name in FORM_FIELD_NAMES if name in found]

    @staticmethod
    def detect_captcha(html: str, soup: BeautifulSoup) -> bool:
        if any(marker in html for marker in CAPTCHA_MARKERS):
            return True
        return any(
            CAPTCHA_SCRIPTS.search(script["src"]) for script in soup.find_all("script", src=True)
        )

    @staticmethod
    def confidence(score: int, fields: list[str]) -> str:
        has_email_and_message = "email" in fields and "message" in fields
        if score >= 25 and has_email_and_message:
            return "high"
        if score >= 15 or has_email_and_message:
            return "medium"
        return "low"
