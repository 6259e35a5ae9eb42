"""
Weighted risk aggregation.

Signals add risk points to an accumulator that starts at 0; the final score is
``100 - risk`` clamped to 0..100, so lower is worse. Confirmed malware and
confirmed impersonation carry a flat 100 points each and saturate the score on
their own; the other signals compound.
"""
from __future__ import annotations

from .models import (
    Confidence,
    DataQuality,
    RiskLevel,
    ScanDetails,
    ScanResult,
    Signals,
)

CONFIRMED_THREAT_ENGINES = 3
CONFIRMED_THREAT_RISK = 100
HEURISTIC_NOISE_RISK = 15

NEW_DOMAIN_YEARS = 0.08
NEW_DOMAIN_RISK = 50
YOUNG_DOMAIN_YEARS = 0.5
YOUNG_DOMAIN_RISK = 20
ESTABLISHED_DOMAIN_YEARS = 1
ESTABLISHED_DOMAIN_BONUS = 10

IMPERSONATION_RISK = 100
INVALID_SSL_RISK = 40
MISSING_HSTS_RISK = 5


def _clamp_score(score: int) -> int:
    return max(0, min(100, int(score)))


def verdict_for(score: int) -> RiskLevel:
    if score <= 40:
        return "Critical"
    if score <= 70:
        return "Caution"
    return "Safe"


def confidence_for(quality: DataQuality) -> Confidence:
    percent = quality.successful() / quality.total() * 100
    if percent >= 80:
        return "High"
    if percent >= 50:
        return "Medium"
    return "Low"


def _risk_and_flags(signals: Signals) -> tuple[int, list[str]]:
    risk = 0
    flags: list[str] = []

    malicious = signals.reputation.data.malicious_count
    if malicious >= CONFIRMED_THREAT_ENGINES:
        risk += CONFIRMED_THREAT_RISK
        flags.append(f"CONFIRMED THREAT: Flagged by {malicious} vendors")
    elif malicious > 0:
        risk += HEURISTIC_NOISE_RISK
        flags.append(f"Suspicious Activity: {malicious} flags (Likely Heuristic Noise)")

    # No evidence is not evidence of risk: only a caveat, no points.
    if not signals.reputation.success:
        flags.append("VirusTotal check unavailable - using cached/limited data")

    age = signals.domain_age.data.age_years
    if age < NEW_DOMAIN_YEARS:
        risk += NEW_DOMAIN_RISK
        flags.append("New Domain (< 1 Month Old) - High Risk")
    elif age < YOUNG_DOMAIN_YEARS:
        risk += YOUNG_DOMAIN_RISK
        flags.append("Young Domain (< 6 Months)")
    elif age > ESTABLISHED_DOMAIN_YEARS:
        risk -= ESTABLISHED_DOMAIN_BONUS

    impersonation = signals.impersonation.data
    if impersonation.suspicious:
        risk += IMPERSONATION_RISK
        flags.append(f"IMPERSONATION DETECTED: Mimicking {impersonation.target or 'a known brand'}")

    ssl_info = signals.ssl.data
    # Expired, untrusted chain, or probe failure.
    if not (ssl_info.is_valid and ssl_info.secure):
        risk += INVALID_SSL_RISK
        flags.append("Invalid SSL")

    if not signals.headers.data.hsts:
        risk += MISSING_HSTS_RISK
        flags.append("Missing HSTS header")

    return risk, flags


def _summary(signals: Signals, verdict: RiskLevel, risk: int, confidence: Confidence, quality: DataQuality) -> str:
    parts = [f"VERDICT: {verdict.upper()}. Domain is {signals.domain_age.data.label}. "]

    meta = signals.domain_metadata.data
    if meta is not None:
        if meta.server_country != "XX":
            parts.append(f"Hosted in {meta.server_country}. ")
        if meta.registrar != "Unknown":
            parts.append(f"Registrar: {meta.registrar}. ")
        if meta.consensus_stats.malicious > 0:
            parts.append(
                f"{meta.consensus_stats.malicious}/{meta.consensus_stats.total} "
                "security vendors flagged as malicious. "
            )

    impersonation = signals.impersonation.data
    if impersonation.suspicious:
        parts.append(f"Alert: Potential impersonation of {impersonation.target or 'a known brand'}. ")

    if signals.reputation.data.malicious_count >= CONFIRMED_THREAT_ENGINES:
        parts.append("Malware signatures confirmed. ")
    elif risk < 20:
        parts.append("No significant threats detected.")

    if confidence != "High":
        parts.append(
            f" [{confidence} Confidence - {quality.successful()}/{quality.total()} checks successful]"
        )

    return "".join(parts).strip()


def aggregate(signals: Signals, quality: DataQuality) -> ScanResult:
    """Reduce collected signals to a score, verdict, confidence and explanation."""
    risk, flags = _risk_and_flags(signals)
    score = _clamp_score(100 - risk)
    verdict = verdict_for(score)
    confidence = confidence_for(quality)

    return ScanResult(
        score=score,
        risk_level=verdict,
        confidence=confidence,
        domain_age=signals.domain_age.data.label,
        impersonation_target=signals.impersonation.data.target,
        domain_metadata=signals.domain_metadata.data,
        red_flags=flags,
        summary=_summary(signals, verdict, risk, confidence, quality),
        data_quality=quality,
        details=ScanDetails(
            ssl=signals.ssl.data,
            headers=signals.headers.data,
            reputation=signals.reputation.data,
            hosting=signals.hosting,
        ),
    )


def failure_result() -> ScanResult:
    return ScanResult(
        score=0,
        risk_level="Unknown",
        confidence="Low",
        red_flags=["Scan Failed", "Engine Error"],
        summary="Critical failure in Weighted Risk Engine.",
        data_quality=DataQuality(),
    )
