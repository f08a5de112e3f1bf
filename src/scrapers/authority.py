"""Ranking, domain-authority and safety lookups.

Every source degrades to an "unknown" reading on missing credentials,
timeouts, non-2xx answers or malformed payloads. Nothing here raises into
the pipeline.
"""

from dataclasses import dataclass
from typing import Any, Literal

import httpx
from pydantic import SecretStr

from config.settings import settings
from src.utils.domain import homepage_url
from src.utils.logger import get_logger
from src.utils.rate_limit import RateLimiter

logger = get_logger("authority")

OPEN_PAGERANK_URL = "https://openpagerank.com/api/v1.0/getPageRank"
MOZ_URL_METRICS_URL = "https://lsapi.seomoz.com/v2/url_metrics"
SAFE_BROWSING_URL = "https://safebrowsing.googleapis.com/v4/threatMatches:find"

SAFE_BROWSING_THREAT_TYPES = [
    "MALWARE",
    "SOCIAL_ENGINEERING",
    "UNWANTED_SOFTWARE",
    "POTENTIALLY_HARMFUL_APPLICATION",
]

SPAM_PENALTY = 100


@dataclass
class SignalReading:
    """One source's answer for one domain."""

    source: str
    value: float | None = None
    status: Literal["ok", "skipped", "failed"] = "ok"

    @property
    def known(self) -> bool:
        return self.status == "ok" and self.value is not None


class SignalSource:
    """Base class handling rate limiting, timeouts and error degradation."""

    name = "signal"

    def __init__(
        self,
        client: httpx.AsyncClient,
        rate_limiter: RateLimiter,
        timeout: float | None = None,
    ):
        self.client = client
        self.rate_limiter = rate_limiter
        self.timeout = timeout or settings.http_timeout_seconds

    def is_configured(self) -> bool:
        return True

    async def _lookup(self, domain: str) -> float | None:
        raise NotImplementedError

    async def fetch(self, domain: str) -> SignalReading:
        """Look up ``domain``; never raises."""
        if not self.is_configured():
            logger.warning("signal_source_not_configured", source=self.name)
            return SignalReading(self.name, status="skipped")

        await self.rate_limiter.acquire()
        try:
            value = await self._lookup(domain)
        except httpx.TimeoutException:
            logger.warning("signal_source_failed", source=self.name, domain=domain, error="timeout")
        except httpx.HTTPStatusError as e:
            logger.warning(
                "signal_source_failed",
                source=self.name,
                domain=domain,
                status=e.response.status_code,
            )
        except httpx.HTTPError as e:
            logger.warning("signal_source_failed", source=self.name, domain=domain, error=str(e))
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.warning(
                "signal_source_failed",
                source=self.name,
                domain=domain,
                error=f"malformed response: {e}",
            )
        else:
            return SignalReading(self.name, value=value)

        return SignalReading(self.name, status="failed")

    async def _get_json(self, url: str, **kwargs: Any) -> Any:
        response = await self.client.get(url, timeout=self.timeout, **kwargs)
        response.raise_for_status()
        return response.json()

    async def _post_json(self, url: str, **kwargs: Any) -> Any:
        response = await self.client.post(url, timeout=self.timeout, **kwargs)
        response.raise_for_status()
        return response.json()


class OpenPageRankClient(SignalSource):
    """Open PageRank decimal rank (0-10)."""

    name = "open_pagerank"

    def __init__(self, *args: Any, api_key: SecretStr | None = None, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.api_key = api_key if api_key is not None else settings.open_pagerank_api_key

    def is_configured(self) -> bool:
        return bool(self.api_key and self.api_key.get_secret_value())

    async def _lookup(self, domain: str) -> float | None:
        body = await self._get_json(
            OPEN_PAGERANK_URL,
            params={"domains[]": domain},
            headers={"API-OPR": self.api_key.get_secret_value()},
        )
        entries = body.get("response") or []
        if entries and entries[0].get("status_code") == 200:
            return float(entries[0]["page_rank_decimal"])
        return None


class MozClient(SignalSource):
    """Moz Links API v2 domain authority (0-100)."""

    name = "moz"

    def __init__(
        self,
        *args: Any,
        access_id: SecretStr | None = None,
        secret_key: SecretStr | None = None,
        **kwargs: Any,
    ):
        super().__init__(*args, **kwargs)
        self.access_id = access_id if access_id is not None else settings.moz_access_id
        self.secret_key = secret_key if secret_key is not None else settings.moz_secret_key

    def is_configured(self) -> bool:
        return bool(
            self.access_id
            and self.secret_key
            and self.access_id.get_secret_value()
            and self.secret_key.get_secret_value()
        )

    async def _lookup(self, domain: str) -> float | None:
        body = await self._post_json(
            MOZ_URL_METRICS_URL,
            json={"targets": [domain]},
            auth=(self.access_id.get_secret_value(), self.secret_key.get_secret_value()),
        )
        results = body.get("results") or []
        if results and results[0].get("domain_authority") is not None:
            return float(results[0]["domain_authority"])
        return None


class SafeBrowsingClient(SignalSource):
    """Google Safe Browsing; value is the spam penalty (0 or 100)."""

    name = "safe_browsing"

    def __init__(self, *args: Any, api_key: SecretStr | None = None, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.api_key = api_key if api_key is not None else settings.google_safe_browsing_api_key

    def is_configured(self) -> bool:
        return bool(self.api_key and self.api_key.get_secret_value())

    async def _lookup(self, domain: str) -> float | None:
        body = await self._post_json(
            SAFE_BROWSING_URL,
            params={"key": self.api_key.get_secret_value()},
            json={
                "client": {"clientId": "backlink-engine", "clientVersion": "1.0.0"},
                "threatInfo": {
                    "threatTypes": SAFE_BROWSING_THREAT_TYPES,
                    "platformTypes": ["ANY_PLATFORM"],
                    "threatEntryTypes": ["URL"],
                    "threatEntries": [{"url": homepage_url(domain)}],
                },
            },
        )
        if body.get("matches"):
            logger.warning("domain_flagged_by_safe_browsing", domain=domain, matches=len(body["matches"]))
            return float(SPAM_PENALTY)
        return 0.0
