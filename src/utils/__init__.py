"""Utility modules."""

from src.utils.domain import email_domain, homepage_url, normalize_domain, normalize_email
from src.utils.logger import setup_logging, get_logger
from src.utils.rate_limit import KeyedLock, RateLimiter

__all__ = [
    "setup_logging",
    "get_logger",
    "RateLimiter",
    "KeyedLock",
    "normalize_domain",
    "normalize_email",
    "email_domain",
    "homepage_url",
]
