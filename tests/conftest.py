"""
Pytest fixtures for TrustScan tests. No test touches the network: HTTP goes
through httpx.MockTransport, DNS/TLS/LLM are replaced with fakes.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable

import httpx
import pytest

from trustscan_agent.config import Settings
from trustscan_agent.models import ImpersonationVerdict, SSLInfo


async def no_sleep(_seconds: float) -> None:
    return None


class FakeClassifier:
    def __init__(self, verdict: ImpersonationVerdict | None = None, error: Exception | None = None):
        self.verdict = verdict or ImpersonationVerdict()
        self.error = error
        self.calls: list[str] = []

    async def classify(self, hostname: str) -> ImpersonationVerdict:
        self.calls.append(hostname)
        if self.error is not None:
            raise self.error
        return self.verdict


def valid_tls(hostname: str, timeout: float) -> SSLInfo:
    return SSLInfo(is_valid=True, issuer="Let's Encrypt", days_remaining=60, secure=True)


def expired_tls(hostname: str, timeout: float) -> SSLInfo:
    return SSLInfo(is_valid=False, issuer="Let's Encrypt", days_remaining=-3, secure=False)


def self_signed_tls(hostname: str, timeout: float) -> SSLInfo:
    return SSLInfo(is_valid=True, issuer="Self Signed CA", days_remaining=90, secure=False)


def failed_tls(hostname: str, timeout: float) -> SSLInfo:
    return SSLInfo(is_valid=False, issuer="Error", days_remaining=0, secure=False)


async def resolves(hostname: str) -> None:
    return None


def rdap_date(years_ago: float) -> str:
    moment = datetime.now(timezone.utc) - timedelta(days=365 * years_ago)
    return moment.strftime("%Y-%m-%dT%H:%M:%SZ")


class FakeUpstream:
    """Routes mocked requests to VirusTotal, RDAP, ip-api and the scanned site.

    Every request is recorded so tests can assert what was (not) called.
    """

    def __init__(
        self,
        *,
        malicious: int = 0,
        engines: list[str] | None = None,
        age_years: float | None = 3.0,
        site_headers: dict[str, str] | None = None,
        fail: set[str] | None = None,
        domain_stats: dict[str, int] | None = None,
    ):
        self.malicious = malicious
        self.engines = engines or []
        self.age_years = age_years
        self.site_headers = site_headers if site_headers is not None else {"strict-transport-security": "max-age=63072000"}
        self.fail = fail or set()
        self.domain_stats = domain_stats or {"malicious": 0, "suspicious": 0, "harmless": 70, "undetected": 20}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        host = request.url.host
        path = request.url.path

        if host == "www.virustotal.com":
            if "vt" in self.fail:
                return httpx.Response(503)
            if path == "/api/v3/urls":
                return httpx.Response(200, json={"data": {"id": "an-1"}})
            if path.startswith("/api/v3/analyses/"):
                results = {e: {"category": "malicious", "engine_name": e} for e in self.engines}
                results["Clean AV"] = {"category": "harmless", "engine_name": "Clean AV"}
                return httpx.Response(200, json={"data": {"attributes": {
                    "status": "completed",
                    "stats": {"malicious": self.malicious, "harmless": 60},
                    "results": results,
                }}})
            if path.startswith("/api/v3/domains/"):
                return httpx.Response(200, json={"data": {"attributes": {
                    "creation_date": 946684800,
                    "registrar": "MarkMonitor Inc.",
                    "country": "US",
                    "last_analysis_stats": self.domain_stats,
                }}})

        if host == "rdap.org":
            if "rdap" in self.fail:
                return httpx.Response(500)
            events = []
            if self.age_years is not None:
                events.append({"eventAction": "registration", "eventDate": rdap_date(self.age_years)})
            return httpx.Response(200, json={"events": events})

        if host == "ip-api.com":
            if "ip" in self.fail:
                return httpx.Response(500)
            return httpx.Response(200, json={"countryCode": "US", "isp": "Example ISP", "query": "93.184.216.34"})

        if request.method == "HEAD":
            if "site" in self.fail:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, headers=self.site_headers)

        return httpx.Response(404)

    def hits(self, host: str) -> int:
        return sum(1 for r in self.requests if r.url.host == host)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        virustotal_api_key="vt-test-key",
        gemini_api_key=None,
        vt_initial_delay_s=0,
        vt_poll_interval_s=0,
    )


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def make_client() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.AsyncClient]:
    def factory(handler):
        return httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True)

    return factory
