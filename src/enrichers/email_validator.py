"""Email validation: syntax, disposable domains, role prefixes, MX, free providers."""

import re
from dataclasses import dataclass, field
from typing import Awaitable, Callable

import dns.asyncresolver
import dns.exception
import dns.resolver

from src.models.prospect import EmailStatus
from src.utils.domain import email_domain, normalize_email
from src.utils.logger import get_logger

logger = get_logger("email_validator")

EMAIL_SYNTAX = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

DISPOSABLE_DOMAINS = frozenset({
    "10minutemail.com", "10minutemail.net", "guerrillamail.com", "guerrillamail.net",
    "mailinator.com", "temp-mail.org", "tempmail.com", "tempmailaddress.com",
    "throwaway.email", "trashmail.com", "yopmail.com", "fakeinbox.com",
    "getnada.com", "maildrop.cc", "mintemail.com", "sharklasers.com",
    "grr.la", "guerrillamailblock.com", "pokemail.net", "spam4.me",
    "bccto.me", "getairmail.com", "armyspy.com", "cuvox.de", "dayrep.com",
    "einrot.com", "gustr.com", "jourrapide.com", "rhyta.com", "superrito.com",
    "teleworm.us", "33mail.com", "anonbox.net", "emailondeck.com",
    "mailcatch.com", "mailnesia.com", "mailsac.com", "mytrashmail.com",
    "spambox.us", "spamgourmet.com", "tempinbox.com", "trashymail.com",
    "wegwerfmail.de", "discardmail.com", "discardmail.de", "dispostable.com",
    "disposableinbox.com", "deadaddress.com", "despam.it", "spamfree24.org",
})

ROLE_PREFIXES = frozenset({
    "abuse", "admin", "administrator", "all", "billing", "contact", "help",
    "info", "mail", "marketing", "noreply", "no-reply", "postmaster", "root",
    "sales", "security", "spam", "support", "webmaster", "hostmaster",
    "mailer-daemon", "newsletter", "accounts", "service", "services",
    "team", "office", "hello", "press", "media", "news", "jobs",
    "careers", "hr", "legal", "finance", "accounting",
    "enquiry", "enquiries", "inquiry", "inquiries", "feedback", "complaints",
})

FREE_PROVIDERS = frozenset({
    "gmail.com", "yahoo.com", "hotmail.com", "outlook.com", "live.com",
    "aol.com", "icloud.com", "mail.com", "protonmail.com", "gmx.com",
    "zoho.com", "yandex.com", "mail.ru", "fastmail.com",
    "yahoo.fr", "yahoo.co.uk", "hotmail.fr", "hotmail.co.uk", "live.fr",
    "orange.fr", "wanadoo.fr", "free.fr", "laposte.net", "sfr.fr",
    "gmx.de", "gmx.fr", "web.de", "t-online.de", "freenet.de",
})

MxLookup = Callable[[str], Awaitable[list[str]]]


@dataclass
class ValidationResult:
    """Validation outcome for one email."""

    email: str
    status: EmailStatus
    reason: str | None = None
    is_role: bool = False
    is_free_provider: bool = False
    mx_hosts: list[str] = field(default_factory=list)


async def resolve_mx(domain: str, lifetime: float = 8.0) -> list[str]:
    """Return MX hosts for a domain; empty when none or on DNS failure."""
    resolver = dns.asyncresolver.Resolver()
    resolver.lifetime = lifetime
    try:
        answer = await resolver.resolve(domain, "MX")
    except (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer, dns.resolver.NoNameservers):
        return []
    except dns.exception.DNSException as e:
        logger.debug("mx_lookup_failed", domain=domain, error=str(e))
        return []
    return [str(r.exchange).rstrip(".").lower() for r in answer]


class EmailValidator:
    """Classifies emails as verified, risky, invalid or disposable.

    No SMTP probing is done: deliverability is approximated by MX records.
    """

    def __init__(self, mx_lookup: MxLookup | None = None):
        self.mx_lookup = mx_lookup or resolve_mx
        self._mx_cache: dict[str, list[str]] = {}

    async def _mx(self, domain: str) -> list[str]:
        if domain not in self._mx_cache:
            self._mx_cache[domain] = await self.mx_lookup(domain)
        return self._mx_cache[domain]

    async def validate(self, email: str) -> ValidationResult:
        """Validate one email address.

        Checks run in order and stop at the first decisive one. Role-based
        addresses (``info@``, ``contact@`` ...) are deliverable but
        impersonal, so they are reported as risky.
        """
        normalized = normalize_email(email)

        if not EMAIL_SYNTAX.match(normalized):
            return ValidationResult(normalized, EmailStatus.INVALID, reason="invalid_syntax")

        domain = email_domain(normalized)
        if domain in DISPOSABLE_DOMAINS:
            return ValidationResult(normalized, EmailStatus.DISPOSABLE, reason="disposable_domain")

        local = normalized.split("@", 1)[0]
        if local in ROLE_PREFIXES:
            return ValidationResult(normalized, EmailStatus.RISKY, reason="role_address", is_role=True)

        mx_hosts = await self._mx(domain)
        is_free = domain in FREE_PROVIDERS
        if not mx_hosts:
            return ValidationResult(
                normalized, EmailStatus.INVALID, reason="no_mx_records", is_free_provider=is_free
            )

        if is_free:
            return ValidationResult(
                normalized,
                EmailStatus.RISKY,
                reason="free_provider",
                is_free_provider=True,
                mx_hosts=mx_hosts,
            )

        return ValidationResult(normalized, EmailStatus.VERIFIED, mx_hosts=mx_hosts)
