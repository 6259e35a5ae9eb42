from __future__ import annotations

import os
from dataclasses import dataclass, field


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _cors_allow_origins() -> list[str]:
    raw = os.getenv("TRUSTSCAN_CORS_ORIGINS", "").strip()
    if not raw:
        return ["http://localhost:3000"]
    return [o.strip() for o in raw.split(",") if o.strip()]


@dataclass(frozen=True)
class Settings:
    virustotal_api_key: str | None = None
    gemini_api_key: str | None = None
    gemini_model: str = "gemini-1.5-flash"

    cache_ttl_s: float = 24 * 60 * 60
    cache_max_entries: int = 1024

    tls_timeout_s: float = 3.0
    http_timeout_s: float = 10.0

    # VirusTotal analysis polling: initial wait, then bounded polls.
    vt_initial_delay_s: float = 5.0
    vt_poll_attempts: int = 3
    vt_poll_interval_s: float = 2.0

    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:3000"])
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            virustotal_api_key=os.getenv("VIRUSTOTAL_API_KEY") or None,
            gemini_api_key=os.getenv("GEMINI_API_KEY") or None,
            gemini_model=os.getenv("GEMINI_MODEL", "gemini-1.5-flash"),
            cache_ttl_s=_env_float("SCAN_CACHE_TTL_S", 24 * 60 * 60),
            cache_max_entries=max(1, _env_int("SCAN_CACHE_MAX_ENTRIES", 1024)),
            tls_timeout_s=_env_float("TLS_TIMEOUT_S", 3.0),
            http_timeout_s=_env_float("HTTP_TIMEOUT_S", 10.0),
            vt_initial_delay_s=_env_float("VT_INITIAL_DELAY_S", 5.0),
            vt_poll_attempts=max(1, _env_int("VT_POLL_ATTEMPTS", 3)),
            vt_poll_interval_s=_env_float("VT_POLL_INTERVAL_S", 2.0),
            cors_origins=_cors_allow_origins(),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
