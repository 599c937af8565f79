"""Vulnerability taxonomy and Finding construction.

Every probe reports through FindingFactory so severity, CWE and OWASP
mappings come from one read-only table.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping, Optional

from apiprobe.config import (
    ConfigEvidence,
    Endpoint,
    Finding,
    FindingCategory,
    FindingType,
    HttpEvidence,
    OWASPApiCategory,
    ProbeResponse,
    SeverityLevel,
)
from apiprobe.config.common import PayloadCategory


@dataclass(frozen=True)
class TaxonomyEntry:
    category: FindingCategory
    severity: SeverityLevel
    cwe_id: str
    owasp_category: OWASPApiCategory
    description: str


_C = FindingCategory
_S = SeverityLevel
_O = OWASPApiCategory

TAXONOMY: Mapping[FindingType, TaxonomyEntry] = MappingProxyType({
    FindingType.BROKEN_AUTH: TaxonomyEntry(
        _C.AUTH, _S.CRITICAL, "CWE-306", _O.API2_BROKEN_AUTHENTICATION,
        "Endpoint accepts requests without authentication"),
    FindingType.PRIVILEGE_ESCALATION: TaxonomyEntry(
        _C.AUTH, _S.HIGH, "CWE-285", _O.API5_BROKEN_FUNCTION_AUTHORIZATION,
        "Potential privilege escalation vulnerability detected"),
    FindingType.BOLA: TaxonomyEntry(
        _C.BUSINESS_LOGIC, _S.HIGH, "CWE-639", _O.API1_BOLA,
        "Object identifier may be vulnerable to ID manipulation"),
    FindingType.API_KEY_INSECURE: TaxonomyEntry(
        _C.AUTH, _S.MEDIUM, "CWE-200", _O.API2_BROKEN_AUTHENTICATION,
        "API key sent as query parameter - may be logged or cached"),
    FindingType.API_KEY_WEAK: TaxonomyEntry(
        _C.AUTH, _S.MEDIUM, "CWE-326", _O.API2_BROKEN_AUTHENTICATION,
        "API key is too short - should be at least 16 characters"),
    FindingType.API_KEY_PREDICTABLE: TaxonomyEntry(
        _C.AUTH, _S.HIGH, "CWE-798", _O.API2_BROKEN_AUTHENTICATION,
        "API key contains predictable patterns"),
    FindingType.JWT_INVALID: TaxonomyEntry(
        _C.AUTH, _S.MEDIUM, "CWE-347", _O.API2_BROKEN_AUTHENTICATION,
        "Invalid JWT format"),
    FindingType.JWT_NONE_ALGORITHM: TaxonomyEntry(
        _C.AUTH, _S.CRITICAL, "CWE-327", _O.API2_BROKEN_AUTHENTICATION,
        'JWT uses "none" algorithm - signature not verified, token is forgeable'),
    FindingType.JWT_WEAK_SECRET: TaxonomyEntry(
        _C.AUTH, _S.CRITICAL, "CWE-798", _O.API2_BROKEN_AUTHENTICATION,
        "JWT can be verified with a weak secret"),
    FindingType.JWT_EXPIRED: TaxonomyEntry(
        _C.AUTH, _S.MEDIUM, "CWE-613", _O.API2_BROKEN_AUTHENTICATION,
        "JWT token has expired"),
    FindingType.JWT_SENSITIVE_DATA_EXPOSURE: TaxonomyEntry(
        _C.DATA_EXPOSURE, _S.HIGH, "CWE-200", _O.API2_BROKEN_AUTHENTICATION,
        "Sensitive data found in JWT payload"),
    FindingType.JWT_SIGNATURE_BYPASS: TaxonomyEntry(
        _C.AUTH, _S.CRITICAL, "CWE-347", _O.API2_BROKEN_AUTHENTICATION,
        'Endpoint accepts a JWT re-signed with the "none" algorithm'),
    FindingType.SQL_INJECTION: TaxonomyEntry(
        _C.INJECTION, _S.CRITICAL, "CWE-89", _O.API8_SECURITY_MISCONFIGURATION,
        "Potential injection vulnerability detected"),
    FindingType.XSS: TaxonomyEntry(
        _C.INJECTION, _S.HIGH, "CWE-79", _O.API8_SECURITY_MISCONFIGURATION,
        "Potential xss vulnerability detected"),
    FindingType.PATH_TRAVERSAL: TaxonomyEntry(
        _C.INJECTION, _S.HIGH, "CWE-22", _O.API8_SECURITY_MISCONFIGURATION,
        "Potential traversal vulnerability detected"),
    FindingType.COMMAND_INJECTION: TaxonomyEntry(
        _C.INJECTION, _S.CRITICAL, "CWE-78", _O.API8_SECURITY_MISCONFIGURATION,
        "Potential command vulnerability detected"),
    FindingType.XXE: TaxonomyEntry(
        _C.INJECTION, _S.HIGH, "CWE-611", _O.API8_SECURITY_MISCONFIGURATION,
        "Potential xxe vulnerability detected"),
    FindingType.FORMAT_STRING: TaxonomyEntry(
        _C.INJECTION, _S.MEDIUM, "CWE-134", _O.API8_SECURITY_MISCONFIGURATION,
        "Potential format-string vulnerability detected"),
    FindingType.CORS_MISCONFIGURATION: TaxonomyEntry(
        _C.CONFIG, _S.HIGH, "CWE-942", _O.API8_SECURITY_MISCONFIGURATION,
        "CORS allows all origins with credentials"),
    FindingType.NO_RATE_LIMITING: TaxonomyEntry(
        _C.RATE_LIMITING, _S.MEDIUM, "CWE-770", _O.API4_RESOURCE_CONSUMPTION,
        "No rate limiting detected on endpoint"),
    FindingType.SECURITY_MISCONFIG: TaxonomyEntry(
        _C.CONFIG, _S.MEDIUM, "CWE-693", _O.API8_SECURITY_MISCONFIGURATION,
        "Missing security headers"),
    FindingType.VERBOSE_ERROR: TaxonomyEntry(
        _C.DATA_EXPOSURE, _S.MEDIUM, "CWE-209", _O.API8_SECURITY_MISCONFIGURATION,
        "Endpoint returns verbose error messages that may leak internals"),
    FindingType.MASS_ASSIGNMENT: TaxonomyEntry(
        _C.BUSINESS_LOGIC, _S.HIGH, "CWE-915", _O.API3_BROKEN_PROPERTY_AUTHORIZATION,
        "Endpoint accepted privileged properties it should not bind"),
    FindingType.MALFORMED_RESPONSE: TaxonomyEntry(
        _C.CONFIG, _S.LOW, "CWE-20", _O.API8_SECURITY_MISCONFIGURATION,
        "Response declares JSON but the body could not be parsed"),
    FindingType.SSRF: TaxonomyEntry(
        _C.INJECTION, _S.HIGH, "CWE-918", _O.API7_SSRF,
        "Parameter may be vulnerable to Server Side Request Forgery"),
})

CATEGORY_FINDINGS: Mapping[PayloadCategory, FindingType] = MappingProxyType({
    PayloadCategory.INJECTION: FindingType.SQL_INJECTION,
    PayloadCategory.XSS: FindingType.XSS,
    PayloadCategory.TRAVERSAL: FindingType.PATH_TRAVERSAL,
    PayloadCategory.COMMAND: FindingType.COMMAND_INJECTION,
    PayloadCategory.XXE: FindingType.XXE,
    PayloadCategory.FORMAT_STRING: FindingType.FORMAT_STRING,
})


class FindingFactory:
    """Builds normalized findings from probe signals."""

    def __init__(self, evidence_body_limit: int = 500):
        self.evidence_body_limit = evidence_body_limit

    def create(
        self,
        finding_type: FindingType,
        endpoint: Optional[Endpoint] = None,
        evidence: Any = None,
        description: Optional[str] = None,
        severity: Optional[SeverityLevel] = None,
    ) -> Finding:
        entry = TAXONOMY[finding_type]
        return Finding(
            type=finding_type,
            category=entry.category,
            severity=severity or entry.severity,
            description=description or entry.description,
            endpoint=endpoint.label if endpoint is not None else None,
            evidence=evidence,
            cwe_id=entry.cwe_id,
            owasp_category=entry.owasp_category,
        )

    def http_evidence(
        self,
        response: ProbeResponse,
        payload: Any = None,
        indicator: Optional[str] = None,
    ) -> HttpEvidence:
        return HttpEvidence(
            request=response.request,
            response=response.truncated(self.evidence_body_limit),
            payload=payload,
            indicator=indicator,
        )

    def from_response(
        self,
        finding_type: FindingType,
        endpoint: Optional[Endpoint],
        response: ProbeResponse,
        payload: Any = None,
        indicator: Optional[str] = None,
        description: Optional[str] = None,
        severity: Optional[SeverityLevel] = None,
    ) -> Finding:
        """Finding whose evidence is the exact probe call that produced it."""
        return self.create(
            finding_type,
            endpoint=endpoint,
            evidence=self.http_evidence(response, payload, indicator),
            description=description,
            severity=severity,
        )

    def from_config(
        self,
        finding_type: FindingType,
        setting: str,
        description: Optional[str] = None,
        **detail: Any,
    ) -> Finding:
        return self.create(
            finding_type,
            evidence=ConfigEvidence(setting=setting, detail=detail),
            description=description,
        )
