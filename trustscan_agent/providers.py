"""
HTTP-backed signal providers.

Each ``check_*`` coroutine either returns a ``SignalOutcome`` or raises; the
collector owns the mapping from an exception to the provider's default value.
All calls go through ``call_with_retry`` so they share one backoff policy.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

import httpx

from .config import Settings
from .models import (
    ConsensusStats,
    DomainAge,
    DomainMetadata,
    HostingInfo,
    ReputationInfo,
    SecurityHeaders,
    SignalOutcome,
)
from .retry import PROBE_POLICY, Sleep, call_with_retry

logger = logging.getLogger(__name__)

VT_BASE = "https://www.virustotal.com/api/v3"
RDAP_BASE = "https://rdap.org/domain"
IP_API_BASE = "http://ip-api.com/json"

_SECONDS_PER_YEAR = 60 * 60 * 24 * 365

UNKNOWN_AGE = DomainAge(age_years=5, label="Unknown Age")


def _years_since(moment: datetime, now: datetime | None = None) -> float:
    now = now or datetime.now(timezone.utc)
    return (now - moment).total_seconds() / _SECONDS_PER_YEAR


def age_label(age_years: float) -> str:
    if age_years < 0.1:
        return "Freshly Registered (<1 Mo)"
    if age_years < 1:
        return "< 1 Year"
    return f"{age_years:.1f} Years"


async def check_headers(client: httpx.AsyncClient, url: str, *, sleep: Sleep = asyncio.sleep) -> SignalOutcome[SecurityHeaders]:
    res = await call_with_retry(lambda: client.head(url, follow_redirects=True), PROBE_POLICY, sleep=sleep)
    h = res.headers
    return SignalOutcome(
        success=True,
        data=SecurityHeaders(
            hsts="strict-transport-security" in h,
            csp="content-security-policy" in h,
            x_frame="x-frame-options" in h or "frame-options" in h,
        ),
    )


async def check_reputation(
    client: httpx.AsyncClient,
    url: str,
    settings: Settings,
    *,
    sleep: Sleep = asyncio.sleep,
) -> SignalOutcome[ReputationInfo]:
    """Submit ``url`` to VirusTotal and read the multi-engine verdict."""
    api_key = settings.virustotal_api_key
    if not api_key:
        return SignalOutcome(success=False, data=ReputationInfo(platform="VirusTotal (No API Key)"))

    headers = {"x-apikey": api_key}
    submit = await call_with_retry(
        lambda: client.post(f"{VT_BASE}/urls", headers=headers, data={"url": url}),
        sleep=sleep,
    )
    analysis_id = submit.json()["data"]["id"]

    await sleep(settings.vt_initial_delay_s)

    attributes: dict[str, Any] = {}
    attempts = max(1, settings.vt_poll_attempts)
    for i in range(attempts):
        res = await call_with_retry(
            lambda: client.get(f"{VT_BASE}/analyses/{analysis_id}", headers=headers),
            sleep=sleep,
        )
        attributes = res.json()["data"]["attributes"]
        if attributes.get("status") == "completed":
            break
        if i < attempts - 1:
            await sleep(settings.vt_poll_interval_s)
    else:
        # Still queued: the partial stats are read as final.
        logger.warning("VirusTotal analysis %s not completed after %d polls", analysis_id, attempts)

    stats = attributes.get("stats") or {}
    results = attributes.get("results") or {}
    engines = [
        str(r.get("engine_name"))
        for r in results.values()
        if isinstance(r, dict) and r.get("category") == "malicious"
    ][:3]

    return SignalOutcome(
        success=True,
        data=ReputationInfo(
            malicious_count=int(stats.get("malicious") or 0),
            platform="VirusTotal API",
            details=engines,
        ),
    )


async def check_domain_metadata(
    client: httpx.AsyncClient,
    hostname: str,
    settings: Settings,
    *,
    sleep: Sleep = asyncio.sleep,
) -> SignalOutcome[DomainMetadata | None]:
    api_key = settings.virustotal_api_key
    if not api_key:
        return SignalOutcome(success=False, data=None)

    res = await call_with_retry(
        lambda: client.get(f"{VT_BASE}/domains/{hostname}", headers={"x-apikey": api_key}),
        sleep=sleep,
    )
    attrs = res.json()["data"]["attributes"]

    created_ts = attrs.get("creation_date")
    if created_ts:
        created = datetime.fromtimestamp(int(created_ts), tz=timezone.utc)
        creation_date = created.isoformat().replace("+00:00", "Z")
        age_years = _years_since(created)
    else:
        creation_date = "Unknown"
        age_years = 0.0

    stats = attrs.get("last_analysis_stats") or {}
    malicious = int(stats.get("malicious") or 0)
    suspicious = int(stats.get("suspicious") or 0)
    harmless = int(stats.get("harmless") or 0)
    undetected = int(stats.get("undetected") or 0)

    return SignalOutcome(
        success=True,
        data=DomainMetadata(
            creation_date=creation_date,
            age_years=age_years,
            registrar=attrs.get("registrar") or "Unknown",
            server_country=attrs.get("country") or "XX",
            consensus_stats=ConsensusStats(
                malicious=malicious,
                suspicious=suspicious,
                clean=harmless,
                total=malicious + suspicious + harmless + undetected,
            ),
        ),
    )


async def check_domain_age(
    client: httpx.AsyncClient,
    hostname: str,
    *,
    sleep: Sleep = asyncio.sleep,
) -> SignalOutcome[DomainAge]:
    res = await call_with_retry(
        lambda: client.get(
            f"{RDAP_BASE}/{hostname}",
            headers={"accept": "application/rdap+json, application/json"},
            follow_redirects=True,
        ),
        sleep=sleep,
    )
    data = res.json()

    reg_date = None
    for e in data.get("events") or []:
        action = str(e.get("eventAction") or "").lower()
        if action in ("registration", "last changed"):
            reg_date = e.get("eventDate")
            break
    if not reg_date:
        return SignalOutcome(success=False, data=UNKNOWN_AGE)

    registered = datetime.fromisoformat(str(reg_date).replace("Z", "+00:00"))
    if registered.tzinfo is None:
        registered = registered.replace(tzinfo=timezone.utc)
    age = _years_since(registered)
    return SignalOutcome(success=True, data=DomainAge(age_years=age, label=age_label(age)))


async def check_hosting(client: httpx.AsyncClient, hostname: str, *, sleep: Sleep = asyncio.sleep) -> HostingInfo:
    res = await call_with_retry(lambda: client.get(f"{IP_API_BASE}/{hostname}"), sleep=sleep)
    data = res.json()
    return HostingInfo(
        country=data.get("countryCode") or "Unknown",
        isp=data.get("isp") or "Unknown",
        ip=data.get("query") or "0.0.0.0",
    )
