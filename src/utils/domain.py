"""Domain and email normalization helpers."""

from urllib.parse import urlparse


def normalize_domain(raw: str) -> str:
    """Extract a clean, lowercase hostname without ``www.``.

    Accepts bare domains as well as full URLs:
    ``https://www.Example.com/blog?utm_source=x`` -> ``example.com``.

    Raises:
        ValueError: If no hostname can be extracted.
    """
    value = (raw or "").strip()
    if not value:
        raise ValueError("Empty domain")

    if "://" not in value:
        value = f"https://{value}"

    host = (urlparse(value).hostname or "").lower().rstrip(".")
    if host.startswith("www."):
        host = host[4:]

    if not host or "." not in host:
        raise ValueError(f"Invalid domain: {raw!r}")

    return host


def homepage_url(domain: str) -> str:
    """Build the homepage URL used for scraping a prospect."""
    return f"https://{normalize_domain(domain)}/"


def normalize_email(email: str) -> str:
    """Normalize an email address for uniqueness checks."""
    return (email or "").strip().lower()


def email_domain(email: str) -> str:
    """Return the domain part of an email address (empty if malformed)."""
    _, _, domain = normalize_email(email).partition("@")
    return domain
