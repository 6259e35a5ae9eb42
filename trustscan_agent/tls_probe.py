from __future__ import annotations

import logging
import socket
import ssl
from datetime import datetime, timezone
from time import monotonic

from cryptography import x509
from cryptography.x509.oid import NameOID

from .models import SSLInfo

logger = logging.getLogger(__name__)


def _name_attr(name: x509.Name, oid) -> str | None:
    attrs = name.get_attributes_for_oid(oid)
    if not attrs:
        return None
    value = attrs[0].value
    return value if isinstance(value, str) else value.decode("utf-8", errors="replace")


def _issuer_label(cert: x509.Certificate) -> str:
    return (
        _name_attr(cert.issuer, NameOID.ORGANIZATION_NAME)
        or _name_attr(cert.issuer, NameOID.COMMON_NAME)
        or "Unknown"
    )


def _days_until(not_after: datetime, now: datetime | None = None) -> int:
    now = now or datetime.now(timezone.utc)
    return int((not_after - now).total_seconds() // 86400)


def ssl_info_from_der(der: bytes | None, secure: bool, now: datetime | None = None) -> SSLInfo:
    if not der:
        return SSLInfo(is_valid=False, issuer="Unknown", days_remaining=0, secure=False)

    cert = x509.load_der_x509_certificate(der)
    days = _days_until(cert.not_valid_after_utc, now)
    return SSLInfo(is_valid=days > 0, issuer=_issuer_label(cert), days_remaining=days, secure=secure)


def _peer_der(hostname: str, timeout: float, verify: bool) -> bytes | None:
    if verify:
        ctx = ssl.create_default_context()
    else:
        ctx = ssl.create_default_context()
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE

    with socket.create_connection((hostname, 443), timeout=timeout) as sock:
        with ctx.wrap_socket(sock, server_hostname=hostname) as ssock:
            return ssock.getpeercert(binary_form=True)


def probe_tls(hostname: str, timeout: float = 3.0) -> SSLInfo:
    """Inspect the certificate served on port 443.

    A verified handshake is tried first; if the chain does not verify we
    reconnect with validation off to still read issuer and expiry, and report
    ``secure=False``. Both handshakes share one ``timeout`` budget.
    Blocking: call through ``asyncio.to_thread``.
    """
    deadline = monotonic() + timeout
    try:
        try:
            der = _peer_der(hostname, timeout, verify=True)
            secure = True
        except ssl.SSLCertVerificationError as e:
            logger.info("certificate for %s does not verify: %s", hostname, e)
            remaining = deadline - monotonic()
            if remaining <= 0:
                raise TimeoutError(f"TLS budget spent for {hostname}")
            der = _peer_der(hostname, remaining, verify=False)
            secure = False
        return ssl_info_from_der(der, secure)
    except (socket.timeout, TimeoutError):
        return SSLInfo(is_valid=False, issuer="Timeout", days_remaining=0, secure=False)
    except (OSError, ValueError) as e:
        logger.info("TLS probe failed for %s: %r", hostname, e)
        return SSLInfo(is_valid=False, issuer="Error", days_remaining=0, secure=False)
