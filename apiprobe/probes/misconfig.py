"""Security misconfiguration probes: headers, error leakage, mass assignment and SSRF."""

import json
from typing import Any, Dict, List, Optional, Tuple

from apiprobe.config import (
    AuthConfig,
    Endpoint,
    Finding,
    FindingType,
    ProbeResponse,
    TargetConfig,
)
from apiprobe.core import RegexMatcher, StatusMatcher, WordMatcher, evaluate_matchers
from apiprobe.core.matchers import ROOT_SIGNATURES, SUCCESS_STATUSES
from apiprobe.probes.base import Probe, ProbeSession, send_payload
from apiprobe.utils import logger

SECURITY_HEADERS = ("X-Content-Type-Options", "X-Frame-Options", "Content-Security-Policy")
HSTS_HEADER = "Strict-Transport-Security"

INVALID_INPUTS: Tuple[Dict[str, Any], ...] = (
    {"id": "invalid"},
    {"email": "invalid-email"},
    {"number": "not-a-number"},
)

VERBOSE_ERROR_MATCHERS = (
    WordMatcher([
        "stack trace",
        "stacktrace",
        "traceback (most recent call last)",
        "exception",
        "error in",
        "sqlstate",
    ]),
    RegexMatcher([
        r'File "[^"]+", line \d+',
        r"\bat [\w$.<>]+ \([^)]*:\d+(?::\d+)?\)",
        r"\bat (?:java|org|com|sun)\.[\w$.]+\(",
        r"\.(?:php|rb|py|js|java|cs|go) on line \d+",
    ]),
)

MASS_ASSIGNMENT_PAYLOADS: Tuple[Dict[str, Any], ...] = (
    {"admin": True, "role": "admin", "isAdmin": True},
    {"_id": "malicious_id", "createdAt": "2020-01-01"},
    {"password": "newpassword", "confirmPassword": "newpassword"},
)
WRITE_METHODS = ("POST", "PUT", "PATCH")

SSRF_PARAMETER_HINTS = ("url", "uri", "redirect", "callback", "webhook", "link")
SSRF_TARGETS = (
    "http://127.0.0.1:22",
    "http://localhost:3306",
    "http://169.254.169.254/latest/meta-data/",
    "http://metadata.google.internal/computeMetadata/v1/",
)
SSRF_MATCHERS = (
    RegexMatcher(ROOT_SIGNATURES),
    WordMatcher([
        "ami-id",
        "instance-id",
        "local-ipv4",
        "security-credentials",
        "project-id",
        "serviceaccounts",
        "openssh",
        "mysql_native_password",
    ]),
)


class SecurityHeadersProbe(Probe):
    name = "security_headers"
    description = "Missing browser hardening headers"

    async def run(
        self,
        target: TargetConfig,
        endpoint: Optional[Endpoint],
        auth: Optional[AuthConfig],
        session: ProbeSession,
    ) -> List[Finding]:
        if endpoint is None:
            return []

        url = target.url_for(endpoint)
        response = await session.client.execute(url, endpoint.method, auth=auth, timeout=session.options.timeout)
        if response.transport_error:
            return []

        expected = list(SECURITY_HEADERS)
        if url.lower().startswith("https://"):
            expected.append(HSTS_HEADER)
        missing = [h for h in expected if not response.header(h)]
        if not missing:
            return []

        return [session.factory.from_response(
            FindingType.SECURITY_MISCONFIG,
            endpoint,
            response,
            indicator=", ".join(missing),
            description=f"Missing security headers: {', '.join(missing)}",
        )]


class VerboseErrorProbe(Probe):
    name = "verbose_errors"
    description = "Stack traces and internal details in error responses"

    async def run(
        self,
        target: TargetConfig,
        endpoint: Optional[Endpoint],
        auth: Optional[AuthConfig],
        session: ProbeSession,
    ) -> List[Finding]:
        if endpoint is None:
            return []

        url = target.url_for(endpoint)
        for payload in INVALID_INPUTS:
            response = await send_payload(session, url, endpoint, payload, auth, session.options.timeout)
            if response.status_code is None or response.status_code < 400:
                continue
            result = evaluate_matchers(VERBOSE_ERROR_MATCHERS, response)
            if result.matched:
                # First leak only
                return [session.factory.from_response(
                    FindingType.VERBOSE_ERROR, endpoint, response, payload=payload, indicator=result.indicator,
                )]
        return []


def _reflects(document: Any, key: str, value: Any) -> bool:
    """True when ``key`` appears anywhere in the JSON document with ``value``."""
    if isinstance(document, dict):
        if key in document and document[key] == value:
            return True
        return any(_reflects(v, key, value) for v in document.values())
    if isinstance(document, list):
        return any(_reflects(item, key, value) for item in document)
    return False


class MassAssignmentProbe(Probe):
    """Submits privileged properties and checks whether they are bound."""

    name = "mass_assignment"
    description = "Privileged properties accepted on write endpoints"

    async def run(
        self,
        target: TargetConfig,
        endpoint: Optional[Endpoint],
        auth: Optional[AuthConfig],
        session: ProbeSession,
    ) -> List[Finding]:
        if endpoint is None or endpoint.method not in WRITE_METHODS:
            return []

        url = target.url_for(endpoint)
        findings = []
        malformed_reported = False

        for payload in MASS_ASSIGNMENT_PAYLOADS:
            response = await session.client.execute(
                url, endpoint.method, body=dict(payload), auth=auth, timeout=session.options.timeout,
            )
            if not evaluate_matchers([StatusMatcher(SUCCESS_STATUSES)], response).matched:
                continue

            document, parsed = _parse_json(response)
            if not parsed:
                if response.body.strip() and "json" in response.content_type and not malformed_reported:
                    malformed_reported = True
                    findings.append(session.factory.from_response(
                        FindingType.MALFORMED_RESPONSE, endpoint, response, payload=payload,
                    ))
                continue

            reflected = [k for k, v in payload.items() if _reflects(document, k, v)]
            if reflected:
                logger.debug(f"  [+] {endpoint.label} bound {', '.join(reflected)}")
                findings.append(session.factory.from_response(
                    FindingType.MASS_ASSIGNMENT,
                    endpoint,
                    response,
                    payload=payload,
                    indicator=", ".join(reflected),
                ))

        return findings


def _parse_json(response: ProbeResponse) -> Tuple[Any, bool]:
    if not response.body.strip():
        return None, False
    try:
        return json.loads(response.body), True
    except ValueError:
        return None, False


class SsrfProbe(Probe):
    """Points URL-like parameters at internal services and cloud metadata."""

    name = "ssrf"
    description = "Server-side request forgery through URL parameters"

    async def run(
        self,
        target: TargetConfig,
        endpoint: Optional[Endpoint],
        auth: Optional[AuthConfig],
        session: ProbeSession,
    ) -> List[Finding]:
        if endpoint is None:
            return []

        candidates = [
            p for p in endpoint.parameters
            if any(hint in p.name.lower() for hint in SSRF_PARAMETER_HINTS)
        ]
        if not candidates:
            return []

        url = target.url_for(endpoint)
        findings = []
        for param in candidates:
            for internal in SSRF_TARGETS:
                response = await session.client.execute(
                    url, endpoint.method, params={param.name: internal}, auth=auth,
                    timeout=session.options.timeout,
                )
                if not response.ok:
                    continue
                result = evaluate_matchers(SSRF_MATCHERS, response)
                if result.matched:
                    findings.append(session.factory.from_response(
                        FindingType.SSRF,
                        endpoint,
                        response,
                        payload=internal,
                        indicator=result.indicator,
                        description=f"Parameter '{param.name}' may be vulnerable to Server Side Request Forgery",
                    ))
                    break
        return findings
