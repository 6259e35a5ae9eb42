from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, TypeVar

import httpx

from .config import Settings
from .impersonation import ImpersonationClassifier
from .models import (
    DataQuality,
    HostingInfo,
    ImpersonationVerdict,
    ReputationInfo,
    ScanTarget,
    SecurityHeaders,
    SignalOutcome,
    Signals,
    SSLInfo,
)
from .providers import (
    UNKNOWN_AGE,
    check_domain_age,
    check_domain_metadata,
    check_headers,
    check_hosting,
    check_reputation,
)
from .retry import Sleep
from .tls_probe import probe_tls

logger = logging.getLogger(__name__)

T = TypeVar("T")

TLSProbe = Callable[[str, float], SSLInfo]

_FAILED_SSL = SSLInfo(is_valid=False, issuer="Error", days_remaining=0, secure=False)


def _settle(name: str, hostname: str, value: Any, default: T) -> T:
    if isinstance(value, BaseException):
        logger.warning("signal %s failed for %s: %r", name, hostname, value)
        return default
    return value


async def _ssl_outcome(hostname: str, probe: TLSProbe, timeout: float) -> SignalOutcome[SSLInfo]:
    info = await asyncio.to_thread(probe, hostname, timeout)
    return SignalOutcome(success=info.is_valid or info.days_remaining > 0, data=info)


async def _impersonation_outcome(
    classifier: ImpersonationClassifier, hostname: str
) -> SignalOutcome[ImpersonationVerdict]:
    return SignalOutcome(success=True, data=await classifier.classify(hostname))


async def collect_signals(
    target: ScanTarget,
    *,
    client: httpx.AsyncClient,
    settings: Settings,
    classifier: ImpersonationClassifier,
    tls_probe: TLSProbe = probe_tls,
    sleep: Sleep = asyncio.sleep,
) -> Signals:
    """Query every provider concurrently and wait for all of them to settle.

    A provider that raises is replaced by its default outcome (``success=False``);
    it never cancels or short-circuits the others.
    """
    host = target.hostname
    calls: list[Awaitable[Any]] = [
        _ssl_outcome(host, tls_probe, settings.tls_timeout_s),
        check_headers(client, target.url, sleep=sleep),
        check_reputation(client, target.url, settings, sleep=sleep),
        check_domain_age(client, host, sleep=sleep),
        check_domain_metadata(client, host, settings, sleep=sleep),
        _impersonation_outcome(classifier, host),
        check_hosting(client, host, sleep=sleep),
    ]
    ssl_r, headers_r, rep_r, age_r, meta_r, imp_r, hosting_r = await asyncio.gather(*calls, return_exceptions=True)

    return Signals(
        ssl=_settle("ssl", host, ssl_r, SignalOutcome(False, _FAILED_SSL)),
        headers=_settle("headers", host, headers_r, SignalOutcome(False, SecurityHeaders())),
        reputation=_settle(
            "reputation", host, rep_r, SignalOutcome(False, ReputationInfo(platform="VirusTotal (Failed)"))
        ),
        domain_age=_settle("domain_age", host, age_r, SignalOutcome(False, UNKNOWN_AGE)),
        domain_metadata=_settle("domain_metadata", host, meta_r, SignalOutcome(False, None)),
        impersonation=_settle("impersonation", host, imp_r, SignalOutcome(False, ImpersonationVerdict())),
        hosting=_settle("hosting", host, hosting_r, HostingInfo()),
    )


def data_quality(signals: Signals) -> DataQuality:
    return DataQuality(
        virus_total_success=signals.reputation.success,
        domain_age_success=signals.domain_age.success,
        domain_metadata_success=signals.domain_metadata.success,
        typosquatting_success=signals.impersonation.success,
        ssl_success=signals.ssl.success,
        headers_success=signals.headers.success,
    )
