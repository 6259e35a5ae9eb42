from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

RiskLevel = Literal["Safe", "Caution", "Critical", "Unknown"]
Confidence = Literal["High", "Medium", "Low"]

T = TypeVar("T")


class _WireModel(BaseModel):
    # JSON uses camelCase (riskLevel, redFlags, ...); Python uses snake_case.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class ScanRequest(BaseModel):
    query: str


class SSLInfo(_WireModel):
    is_valid: bool
    issuer: str
    days_remaining: int
    secure: bool


class SecurityHeaders(_WireModel):
    hsts: bool = False
    csp: bool = False
    x_frame: bool = False


class ReputationInfo(_WireModel):
    malicious_count: int = 0
    platform: str
    details: list[str] = []


class HostingInfo(_WireModel):
    country: str = "XX"
    isp: str = "Unknown"
    ip: str = "0.0.0.0"


class DomainAge(_WireModel):
    age_years: float
    label: str


class ConsensusStats(_WireModel):
    malicious: int = 0
    suspicious: int = 0
    clean: int = 0
    total: int = 0


class DomainMetadata(_WireModel):
    creation_date: str
    age_years: float
    registrar: str
    server_country: str
    consensus_stats: ConsensusStats


class ImpersonationVerdict(_WireModel):
    suspicious: bool = False
    target: str | None = None


class DataQuality(_WireModel):
    virus_total_success: bool = False
    domain_age_success: bool = False
    domain_metadata_success: bool = False
    typosquatting_success: bool = False
    ssl_success: bool = False
    headers_success: bool = False

    def successful(self) -> int:
        return sum(1 for v in self.model_dump().values() if v)

    def total(self) -> int:
        return len(type(self).model_fields)


class ScanDetails(_WireModel):
    ssl: SSLInfo
    headers: SecurityHeaders
    reputation: ReputationInfo
    hosting: HostingInfo


class ScanResult(_WireModel):
    score: int
    risk_level: RiskLevel
    confidence: Confidence
    domain_age: str | None = None
    impersonation_target: str | None = None
    domain_metadata: DomainMetadata | None = None
    red_flags: list[str]
    summary: str
    data_quality: DataQuality
    details: ScanDetails | None = None


@dataclass(frozen=True)
class ScanTarget:
    hostname: str
    url: str


@dataclass(frozen=True)
class SignalOutcome(Generic[T]):
    """Result of one provider call. ``data`` is well-formed even when ``success`` is False."""

    success: bool
    data: T


@dataclass(frozen=True)
class Signals:
    ssl: SignalOutcome[SSLInfo]
    headers: SignalOutcome[SecurityHeaders]
    reputation: SignalOutcome[ReputationInfo]
    domain_age: SignalOutcome[DomainAge]
    domain_metadata: SignalOutcome[DomainMetadata | None]
    impersonation: SignalOutcome[ImpersonationVerdict]
    hosting: HostingInfo
