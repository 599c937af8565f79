"""Finding, result and scan option models."""

from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from uuid import uuid4

import yaml
from pydantic import BaseModel, Field

from apiprobe.config.common import (
    FindingCategory,
    FindingType,
    OWASPApiCategory,
    PayloadCategory,
    SeverityLevel,
)
from apiprobe.config.openapi import load_openapi
from apiprobe.config.probe import Evidence, ProbeResponse, utcnow
from apiprobe.config.target import AuthConfig, Endpoint, TargetConfig


class Payload(BaseModel):
    """A fuzzing input for one category."""

    category: PayloadCategory
    value: str
    custom: bool = False

    model_config = {"frozen": True}


class Finding(BaseModel):
    """A vulnerability signal reported by a probe."""

    id: str = Field(default_factory=lambda: uuid4().hex)
    type: FindingType
    category: FindingCategory
    severity: SeverityLevel
    description: str
    endpoint: Optional[str] = None
    evidence: Optional[Evidence] = None
    cwe_id: str
    owasp_category: OWASPApiCategory
    timestamp: datetime = Field(default_factory=utcnow)

    @property
    def signature(self) -> tuple:
        """Identity of a finding independent of id and timestamp."""
        payload = getattr(self.evidence, "payload", None)
        origin = getattr(self.evidence, "origin", None)
        claim = getattr(self.evidence, "claim", None)
        return (
            self.type.value,
            self.severity.value,
            self.endpoint,
            repr(payload),
            origin,
            claim,
        )


class TokenAnalysis(BaseModel):
    """Outcome of analysing a bearer token."""

    token: str
    header: Dict[str, Any] = Field(default_factory=dict)
    claims: Dict[str, Any] = Field(default_factory=dict)
    algorithm: Optional[str] = None
    decoded: bool = False
    signature_valid: Optional[bool] = None
    discovered_secret: Optional[str] = None
    findings: List[Finding] = Field(default_factory=list)


class CorsResult(BaseModel):
    findings: List[Finding] = Field(default_factory=list)
    tested_origins: List[str] = Field(default_factory=list)
    summary: Dict[str, int] = Field(default_factory=dict)


class RateLimitResult(BaseModel):
    total_requests: int = 0
    successful_requests: int = 0
    blocked_requests: int = 0
    error_requests: int = 0
    rate_limit_detected: bool = False
    average_response_time: float = 0.0


class PayloadResult(BaseModel):
    """Outcome of one targeted payload."""

    payload: str
    parameter: str
    category: Optional[PayloadCategory] = None
    vulnerable: bool = False
    indicator: Optional[str] = None
    response: ProbeResponse
    finding: Optional[Finding] = None


class EndpointFuzzResult(BaseModel):
    endpoint: str
    findings: List[Finding] = Field(default_factory=list)


class ScanOptions(BaseModel):
    """Tunables for one scan. Probe and category names are validated by the engine."""

    probes: Optional[List[str]] = None
    categories: List[str] = Field(default_factory=lambda: ["injection", "xss"])
    max_payloads_per_category: int = Field(default=50, ge=1)

    timeout: float = Field(default=10.0, gt=0)
    tampering_timeout: float = Field(default=5.0, gt=0)
    fuzz_timeout: float = Field(default=10.0, gt=0)

    parallel: int = Field(default=5, ge=1)  # concurrent requests against the target
    request_delay: float = Field(default=0.0, ge=0)  # minimum spacing between requests
    retries: int = Field(default=0, ge=0)  # transport-level retries per request

    rate_limit_requests: int = Field(default=20, ge=1)
    rate_limit_delay: float = Field(default=0.1, ge=0)

    cors_origins: Optional[List[str]] = None
    custom_payloads: List[Payload] = Field(default_factory=list)

    body_sample_limit: int = Field(default=65536, ge=1)
    evidence_body_limit: int = Field(default=500, ge=1)
    user_agent: str = "apiprobe/0.1"


class ScanResult(BaseModel):
    """Aggregated output of one scan."""

    scan_id: str
    target: str
    findings: List[Finding] = Field(default_factory=list)
    tests_executed: List[str] = Field(default_factory=list)
    summary: Dict[str, int] = Field(default_factory=dict)
    errors: List[str] = Field(default_factory=list)
    duration_seconds: float = 0.0
    cancelled: bool = False

    @property
    def critical_count(self) -> int:
        return sum(1 for f in self.findings if f.severity == SeverityLevel.CRITICAL)

    @property
    def high_count(self) -> int:
        return sum(1 for f in self.findings if f.severity == SeverityLevel.HIGH)

    @property
    def medium_count(self) -> int:
        return sum(1 for f in self.findings if f.severity == SeverityLevel.MEDIUM)

    @property
    def low_count(self) -> int:
        return sum(1 for f in self.findings if f.severity == SeverityLevel.LOW)

    def add_error(self, error: str) -> None:
        self.errors.append(error)

    def refresh_summary(self) -> Dict[str, int]:
        self.summary = severity_counts(self.findings)
        return self.summary


def severity_counts(findings: List[Finding]) -> Dict[str, int]:
    counts = {level.value: 0 for level in SeverityLevel}
    for finding in findings:
        counts[finding.severity.value] += 1
    return counts


class ScanConfig(BaseModel):
    """A scan described in one YAML document (used by the CLI).

    ``openapi`` names an OpenAPI/Swagger file, relative to the scan file,
    whose operations are appended to ``endpoints``.
    """

    target: TargetConfig
    endpoints: List[Endpoint] = Field(default_factory=list)
    authentication: Optional[AuthConfig] = None
    options: ScanOptions = Field(default_factory=ScanOptions)
    openapi: Optional[str] = None

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "ScanConfig":
        """Load a scan description from YAML file."""
        path = Path(path)
        with open(path) as f:
            data = yaml.safe_load(f)
        if not data:
            raise ValueError(f"Empty scan file: {path}")
        if not isinstance(data, dict):
            raise ValueError(f"Scan file must contain a mapping: {path}")

        config = cls.model_validate(data)
        if config.openapi:
            config = config.with_openapi(path.parent / config.openapi)
        return config

    def with_openapi(self, path: Union[str, Path]) -> "ScanConfig":
        """Copy of this config with the operations of an OpenAPI document appended."""
        document = load_openapi(path)
        return self.model_copy(update={"endpoints": list(self.endpoints) + document.endpoints})
