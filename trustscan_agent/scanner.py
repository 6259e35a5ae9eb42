from __future__ import annotations

import asyncio
import logging
import re
from typing import Awaitable, Callable
from urllib.parse import urlparse

import dns.asyncresolver
import dns.exception
import dns.resolver
import httpx

from .cache import TTLCache
from .collector import TLSProbe, collect_signals, data_quality
from .config import Settings
from .impersonation import GeminiImpersonationClassifier, ImpersonationClassifier
from .models import ScanResult, ScanTarget
from .retry import Sleep
from .scoring import aggregate, failure_result
from .tls_probe import probe_tls

logger = logging.getLogger(__name__)

_DOMAIN_RE = re.compile(r"^[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
_SCHEME_RE = re.compile(r"^([a-zA-Z][a-zA-Z\d+.-]*)://")

Resolver = Callable[[str], Awaitable[None]]


class ScanError(Exception):
    """A request-level failure reported to the caller as ``{"error": message}``."""

    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidTargetError(ScanError):
    status_code = 400


class DomainNotFoundError(ScanError):
    status_code = 404


class ResolutionError(ScanError):
    status_code = 400


def parse_target(query: str) -> ScanTarget:
    value = (query or "").strip()
    if not value:
        raise InvalidTargetError("Please provide a URL or domain to scan.")

    scheme = _SCHEME_RE.match(value)
    if scheme is None:
        value = "https://" + value
    else:
        if scheme.group(1).lower() not in ("http", "https"):
            raise InvalidTargetError("Please use an http(s) website URL.")
        value = scheme.group(1).lower() + value[len(scheme.group(1)):]

    try:
        hostname = urlparse(value).hostname or ""
    except ValueError:
        hostname = ""

    if not _DOMAIN_RE.match(hostname):
        raise InvalidTargetError("Invalid domain format. Please enter a valid URL (e.g., google.com)")

    return ScanTarget(hostname=hostname.lower(), url=value)


async def resolve_host(hostname: str) -> None:
    """Check the name exists in DNS. Raises ``DomainNotFoundError`` or ``ResolutionError``."""
    try:
        try:
            await dns.asyncresolver.resolve(hostname, "A")
        except dns.resolver.NoAnswer:
            await dns.asyncresolver.resolve(hostname, "AAAA")
    except dns.resolver.NXDOMAIN:
        raise DomainNotFoundError("Domain does not exist. It may be unregistered or offline.")
    except dns.exception.DNSException as e:
        logger.warning("DNS resolution failed for %s: %r", hostname, e)
        raise ResolutionError("Domain resolution failed. Please check the URL.")


class Scanner:
    """Runs one scan: validate, resolve, consult the cache, collect, score, cache."""

    def __init__(
        self,
        settings: Settings,
        *,
        cache: TTLCache[ScanResult] | None = None,
        classifier: ImpersonationClassifier | None = None,
        resolver: Resolver = resolve_host,
        tls_probe: TLSProbe = probe_tls,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.settings = settings
        self.cache = cache if cache is not None else TTLCache(settings.cache_ttl_s, settings.cache_max_entries)
        self.classifier = classifier or GeminiImpersonationClassifier(settings.gemini_api_key, settings.gemini_model)
        self._resolve = resolver
        self._tls_probe = tls_probe
        self._transport = transport
        self._sleep = sleep

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.settings.http_timeout_s,
            follow_redirects=True,
            transport=self._transport,
        )

    async def scan(self, query: str) -> ScanResult:
        target = parse_target(query)
        try:
            return await self._scan_target(target)
        except ScanError:
            raise
        except Exception:
            logger.exception("risk engine failed for %s", target.hostname)
            return failure_result()

    async def _scan_target(self, target: ScanTarget) -> ScanResult:
        await self._resolve(target.hostname)

        cached = self.cache.get(target.hostname)
        if cached is not None:
            logger.info("scan %s served from cache", target.hostname)
            return cached.model_copy(deep=True)

        logger.info("scanning %s", target.hostname)
        async with self._client() as client:
            signals = await collect_signals(
                target,
                client=client,
                settings=self.settings,
                classifier=self.classifier,
                tls_probe=self._tls_probe,
                sleep=self._sleep,
            )
        result = aggregate(signals, data_quality(signals))

        self.cache.set(target.hostname, result)
        logger.info(
            "scan %s verdict=%s score=%d confidence=%s",
            target.hostname, result.risk_level, result.score, result.confidence,
        )
        return result.model_copy(deep=True)
