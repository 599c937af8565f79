"""CORS preflight testing."""

from typing import List, Optional, Sequence

from apiprobe.config import (
    AuthConfig,
    CorsEvidence,
    CorsResult,
    Endpoint,
    Finding,
    FindingType,
    ProbeResponse,
    SeverityLevel,
    TargetConfig,
)
from apiprobe.probes.base import SCOPE_TARGET, Probe, ProbeSession
from apiprobe.utils import logger, sanitize_url

DEFAULT_ORIGINS = (
    "https://evil.com",
    "null",
    "http://localhost:3000",
    "https://attacker.example.com",
)

LOCAL_ORIGIN_MARKERS = ("localhost", "127.0.0.1")


def _is_trusted_origin(origin: str) -> bool:
    return origin == "null" or any(marker in origin for marker in LOCAL_ORIGIN_MARKERS)


class CorsChecker:
    """Sends an OPTIONS preflight per origin and inspects the CORS headers."""

    def __init__(self, session: ProbeSession):
        self.session = session

    def _evidence(self, origin: str, response: ProbeResponse) -> CorsEvidence:
        return CorsEvidence(
            origin=origin,
            allow_origin=response.header("access-control-allow-origin"),
            allow_credentials=response.header("access-control-allow-credentials"),
            allow_methods=response.header("access-control-allow-methods"),
            request=response.request,
            response=response.truncated(self.session.factory.evidence_body_limit),
        )

    async def check(self, url: str, origins: Optional[Sequence[str]] = None) -> CorsResult:
        origins = list(origins) if origins else list(DEFAULT_ORIGINS)
        factory = self.session.factory
        findings: List[Finding] = []
        wildcard_reported = False

        logger.debug(f"Testing CORS on {sanitize_url(url)} with {len(origins)} origins")

        for origin in origins:
            response = await self.session.client.execute(
                url,
                "OPTIONS",
                headers={"Origin": origin, "Access-Control-Request-Method": "GET"},
                timeout=self.session.options.timeout,
            )
            if response.transport_error:
                continue

            allow_origin = response.header("access-control-allow-origin")
            allow_credentials = (response.header("access-control-allow-credentials") or "").strip().lower()

            if allow_origin == "*" and allow_credentials == "true" and not wildcard_reported:
                wildcard_reported = True
                findings.append(factory.create(
                    FindingType.CORS_MISCONFIGURATION,
                    evidence=self._evidence(origin, response),
                ))

            if allow_origin == origin and not _is_trusted_origin(origin):
                findings.append(factory.create(
                    FindingType.CORS_MISCONFIGURATION,
                    evidence=self._evidence(origin, response),
                    description=f"CORS allows arbitrary origin: {origin}",
                    severity=SeverityLevel.MEDIUM,
                ))

        return CorsResult(
            findings=findings,
            tested_origins=origins,
            summary={"total_tests": len(origins), "vulnerabilities": len(findings)},
        )


class CorsProbe(Probe):
    name = "cors"
    scope = SCOPE_TARGET
    description = "Wildcard and reflected origins in CORS preflight responses"

    async def run(
        self,
        target: TargetConfig,
        endpoint: Optional[Endpoint],
        auth: Optional[AuthConfig],
        session: ProbeSession,
    ) -> List[Finding]:
        result = await CorsChecker(session).check(target.base_url, session.options.cors_origins)
        return result.findings
