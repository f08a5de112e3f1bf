"""Tests for the ranking, authority and safety sources."""

import httpx
import pytest
from pydantic import SecretStr

from src.scrapers.authority import MozClient, OpenPageRankClient, SafeBrowsingClient


def json_handler(body, status_code: int = 200, seen: list | None = None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status_code, json=body)

    return handler


class TestOpenPageRank:
    async def test_decimal_rank(self, mock_client, fast_limiter):
        seen = []
        body = {"status_code": 200, "response": [{"status_code": 200, "page_rank_decimal": 5.47}]}
        async with mock_client(json_handler(body, seen=seen)) as client:
            source = OpenPageRankClient(client, fast_limiter, api_key=SecretStr("opr-key"))
            reading = await source.fetch("example.fr")

        assert reading.known
        assert reading.value == pytest.approx(5.47)
        assert seen[0].headers["API-OPR"] == "opr-key"
        assert seen[0].url.params["domains[]"] == "example.fr"

    async def test_unknown_domain_is_unknown(self, mock_client, fast_limiter):
        body = {"status_code": 200, "response": [{"status_code": 404, "error": "Domain not found"}]}
        async with mock_client(json_handler(body)) as client:
            source = OpenPageRankClient(client, fast_limiter, api_key=SecretStr("opr-key"))
            reading = await source.fetch("example.fr")

        assert not reading.known
        assert reading.status == "ok"

    async def test_missing_key_skips_without_request(self, mock_client, fast_limiter):
        seen = []
        async with mock_client(json_handler({}, seen=seen)) as client:
            source = OpenPageRankClient(client, fast_limiter, api_key=SecretStr(""))
            reading = await source.fetch("example.fr")

        assert reading.status == "skipped"
        assert seen == []

    async def test_malformed_payload_fails_softly(self, mock_client, fast_limiter):
        body = {"response": [{"status_code": 200, "page_rank_decimal": "n/a"}]}
        async with mock_client(json_handler(body)) as client:
            source = OpenPageRankClient(client, fast_limiter, api_key=SecretStr("opr-key"))
            reading = await source.fetch("example.fr")

        assert reading.status == "failed"
        assert reading.value is None


class TestMoz:
    async def test_domain_authority(self, mock_client, fast_limiter):
        seen = []
        body = {"results": [{"domain_authority": 42}]}
        async with mock_client(json_handler(body, seen=seen)) as client:
            source = MozClient(
                client, fast_limiter, access_id=SecretStr("id"), secret_key=SecretStr("secret")
            )
            reading = await source.fetch("example.fr")

        assert reading.value == 42.0
        assert seen[0].method == "POST"
        assert seen[0].headers["Authorization"].startswith("Basic ")

    async def test_server_error_fails_softly(self, mock_client, fast_limiter):
        async with mock_client(json_handler({"error": "boom"}, status_code=500)) as client:
            source = MozClient(
                client, fast_limiter, access_id=SecretStr("id"), secret_key=SecretStr("secret")
            )
            reading = await source.fetch("example.fr")

        assert reading.status == "failed"

    async def test_half_configured_is_skipped(self, mock_client, fast_limiter):
        async with mock_client(json_handler({})) as client:
            source = MozClient(client, fast_limiter, access_id=SecretStr("id"), secret_key=SecretStr(""))
            assert not source.is_configured()


class TestSafeBrowsing:
    async def test_clean_domain_has_no_penalty(self, mock_client, fast_limiter):
        seen = []
        async with mock_client(json_handler({}, seen=seen)) as client:
            source = SafeBrowsingClient(client, fast_limiter, api_key=SecretStr("gsb"))
            reading = await source.fetch("example.fr")

        assert reading.value == 0.0
        assert seen[0].url.params["key"] == "gsb"
        assert b"https://example.fr/" in seen[0].content

    async def test_flagged_domain_gets_full_penalty(self, mock_client, fast_limiter):
        body = {"matches": [{"threatType": "MALWARE"}]}
        async with mock_client(json_handler(body)) as client:
            source = SafeBrowsingClient(client, fast_limiter, api_key=SecretStr("gsb"))
            reading = await source.fetch("example.fr")

        assert reading.value == 100.0

    async def test_timeout_fails_softly(self, mock_client, fast_limiter):
        def handler(request):
            raise httpx.ReadTimeout("too slow", request=request)

        async with mock_client(handler) as client:
            source = SafeBrowsingClient(client, fast_limiter, api_key=SecretStr("gsb"))
            reading = await source.fetch("example.fr")

        assert reading.status == "failed"
        assert not reading.known
