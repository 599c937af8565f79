"""Authentication and authorization probes."""

from typing import Any, Dict, List, Optional, Tuple

from apiprobe.auth import jwt
from apiprobe.config import (
    ApiKeyLocation,
    AuthConfig,
    AuthType,
    Endpoint,
    Finding,
    FindingType,
    TargetConfig,
)
from apiprobe.probes.base import SCOPE_TARGET, Probe, ProbeSession, send_payload
from apiprobe.utils import logger

ESCALATION_PAYLOADS: Tuple[Dict[str, Any], ...] = (
    {"role": "admin", "isAdmin": True, "permissions": ["read", "write", "delete"]},
    {"userId": "admin", "level": 999, "access": "full"},
    {"_role": "administrator", "admin": True},
)

MIN_API_KEY_LENGTH = 16
PREDICTABLE_KEY_PATTERNS = ("api", "key", "token", "secret", "password")

REJECTED_STATUSES = (401, 403)


class MissingAuthProbe(Probe):
    """Replays a protected endpoint without any credentials."""

    name = "missing_auth"
    description = "Protected endpoints reachable without credentials"

    async def run(
        self,
        target: TargetConfig,
        endpoint: Optional[Endpoint],
        auth: Optional[AuthConfig],
        session: ProbeSession,
    ) -> List[Finding]:
        if endpoint is None or not endpoint.requires_auth:
            return []

        response = await session.client.execute(
            target.url_for(endpoint), endpoint.method, timeout=session.options.timeout,
        )
        if not response.ok:
            return []

        logger.debug(f"  [+] {endpoint.label} answered {response.status_code} without credentials")
        return [session.factory.from_response(
            FindingType.BROKEN_AUTH, endpoint, response, indicator=f"status {response.status_code}",
        )]


class PrivilegeEscalationProbe(Probe):
    """Sends elevated role claims with the caller's credentials.

    A neutral request establishes what the caller normally gets back; an
    elevated payload only counts when it changes a successful response.
    """

    name = "privilege_escalation"
    description = "Elevated role payloads accepted with ordinary credentials"

    def __init__(self, payloads: Tuple[Dict[str, Any], ...] = ESCALATION_PAYLOADS):
        self.payloads = payloads

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
        timeout = session.options.timeout
        baseline = await send_payload(session, url, endpoint, {}, auth, timeout)
        if baseline.transport_error:
            return []

        findings = []
        for payload in self.payloads:
            response = await send_payload(session, url, endpoint, payload, auth, timeout)
            if not response.ok or not response.body.strip():
                continue
            if response.body == baseline.body:
                continue
            findings.append(session.factory.from_response(
                FindingType.PRIVILEGE_ESCALATION,
                endpoint,
                response,
                payload=payload,
                indicator="response differs from neutral request",
            ))
        return findings


class ApiKeyLintProbe(Probe):
    """Static checks on a caller-supplied API key. Sends nothing."""

    name = "api_key"
    scope = SCOPE_TARGET
    description = "API key delivery, length and predictability"

    async def run(
        self,
        target: TargetConfig,
        endpoint: Optional[Endpoint],
        auth: Optional[AuthConfig],
        session: ProbeSession,
    ) -> List[Finding]:
        if auth is None or auth.type != AuthType.API_KEY or not auth.api_key:
            return []
        return lint_api_key(auth, session)


def lint_api_key(auth: AuthConfig, session: ProbeSession) -> List[Finding]:
    factory = session.factory
    key = auth.api_key or ""
    findings = []

    if auth.api_key_location == ApiKeyLocation.QUERY:
        findings.append(factory.from_config(
            FindingType.API_KEY_INSECURE, "api_key_location",
            location=auth.api_key_location.value, name=auth.api_key_name,
        ))

    if len(key) < MIN_API_KEY_LENGTH:
        findings.append(factory.from_config(
            FindingType.API_KEY_WEAK, "api_key", length=len(key),
        ))

    lowered = key.lower()
    matched = [p for p in PREDICTABLE_KEY_PATTERNS if p in lowered]
    if matched:
        findings.append(factory.from_config(
            FindingType.API_KEY_PREDICTABLE, "api_key", patterns=matched,
        ))

    return findings


class JwtBypassProbe(Probe):
    """Replays a protected endpoint with the caller's JWT re-encoded as ``alg=none``."""

    name = "jwt_bypass"
    description = "Unsigned JWTs accepted by protected endpoints"

    async def run(
        self,
        target: TargetConfig,
        endpoint: Optional[Endpoint],
        auth: Optional[AuthConfig],
        session: ProbeSession,
    ) -> List[Finding]:
        if endpoint is None or not endpoint.requires_auth:
            return []
        token = auth.bearer_token if auth else None
        if not jwt.looks_like_jwt(token):
            return []

        try:
            forged = jwt.forge_none_algorithm(token)
        except jwt.TokenDecodeError as e:
            logger.debug(f"Cannot forge token for {endpoint.label}: {e}")
            return []

        url = target.url_for(endpoint)
        timeout = session.options.timeout
        baseline = await session.client.execute(url, endpoint.method, timeout=timeout)
        if baseline.status_code not in REJECTED_STATUSES:
            return []

        response = await session.client.execute(
            url,
            endpoint.method,
            headers={"Authorization": f"{auth.token_type or 'Bearer'} {forged}"},
            timeout=timeout,
        )
        if not response.ok:
            return []

        return [session.factory.from_response(
            FindingType.JWT_SIGNATURE_BYPASS,
            endpoint,
            response,
            payload=forged,
            indicator=f"status {baseline.status_code} without token, {response.status_code} with alg=none",
        )]
