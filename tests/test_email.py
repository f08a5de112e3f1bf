"""Tests for email extraction and validation."""

import pytest

from src.enrichers.email import EmailExtractor
from src.enrichers.email_validator import EmailValidator
from src.models.prospect import EmailStatus


class CountingMx:
    def __init__(self, records: dict[str, list[str]]):
        self.records = records
        self.calls: list[str] = []

    async def __call__(self, domain: str) -> list[str]:
        self.calls.append(domain)
        return self.records.get(domain, [])


@pytest.fixture
def mx():
    return CountingMx({"example.fr": ["mx1.example.fr"], "gmail.com": ["gmail-smtp-in.l.google.com"]})


@pytest.fixture
def validator(mx):
    return EmailValidator(mx_lookup=mx)


class TestEmailValidator:
    async def test_verified(self, validator):
        result = await validator.validate(" Jane@Example.FR ")
        assert result.email == "jane@example.fr"
        assert result.status == EmailStatus.VERIFIED
        assert result.mx_hosts == ["mx1.example.fr"]

    async def test_invalid_syntax(self, validator, mx):
        result = await validator.validate("not an email")
        assert result.status == EmailStatus.INVALID
        assert result.reason == "invalid_syntax"
        assert mx.calls == []

    async def test_disposable(self, validator):
        result = await validator.validate("someone@yopmail.com")
        assert result.status == EmailStatus.DISPOSABLE

    async def test_role_address_is_risky(self, validator, mx):
        result = await validator.validate("contact@example.fr")
        assert result.status == EmailStatus.RISKY
        assert result.is_role
        assert mx.calls == []

    async def test_free_provider_is_risky(self, validator):
        result = await validator.validate("jane.martin@gmail.com")
        assert result.status == EmailStatus.RISKY
        assert result.is_free_provider

    async def test_no_mx_is_invalid(self, validator):
        result = await validator.validate("jane@no-mail-here.fr")
        assert result.status == EmailStatus.INVALID
        assert result.reason == "no_mx_records"

    async def test_mx_lookups_are_cached(self, validator, mx):
        await validator.validate("jane@example.fr")
        await validator.validate("bob@example.fr")
        assert mx.calls == ["example.fr"]


class TestEmailExtractor:
    def test_mailto_with_name(self, make_page):
        page = make_page('<p><a href="mailto:Jane@Example.fr?subject=Hi">Jane Martin</a></p>')
        [email] = EmailExtractor().extract([page])
        assert email.email == "jane@example.fr"
        assert email.source == "mailto"
        assert email.confidence == "high"
        assert (email.first_name, email.last_name) == ("Jane", "Martin")

    def test_text_and_obfuscated(self, make_page):
        page = make_page("<p>Redaction : bob@example.fr. Partenariats : alice [at] example.fr</p>")
        emails = {e.email: e for e in EmailExtractor().extract([page])}
        assert emails["bob@example.fr"].confidence == "medium"
        assert emails["alice@example.fr"].source == "obfuscated"
        assert emails["alice@example.fr"].confidence == "low"

    def test_highest_confidence_wins_across_pages(self, make_page):
        home = make_page("<p>jane@example.fr</p>")
        contact = make_page('<a href="mailto:jane@example.fr">Jane Martin</a>', url="https://example.fr/contact")
        emails = EmailExtractor().extract([home, contact])
        assert len(emails) == 1
        assert emails[0].confidence == "high"
        assert emails[0].page_url == "https://example.fr/contact"

    def test_platform_and_asset_addresses_are_ignored(self, make_page):
        page = make_page(
            '<img src="/img/logo@2x.png">'
            "<script>var dsn = 'abc@sentry.io';</script>"
            "<p>example@example.com</p>"
        )
        assert EmailExtractor().extract([page]) == []

    def test_sorted_by_confidence(self, make_page):
        page = make_page(
            '<p>carol (at) example.fr</p><p>dan@example.fr</p><a href="mailto:eve@example.fr">Eve</a>'
        )
        confidences = [e.confidence for e in EmailExtractor().extract([page])]
        assert confidences == ["high", "medium", "low"]
