"""Offline JWT analysis."""

import time
from typing import List, Optional

from apiprobe.auth import jwt
from apiprobe.config import (
    AuthConfig,
    Endpoint,
    Finding,
    FindingType,
    TargetConfig,
    TokenAnalysis,
    TokenEvidence,
)
from apiprobe.findings import FindingFactory
from apiprobe.probes.base import SCOPE_TARGET, Probe, ProbeSession
from apiprobe.utils import logger

SENSITIVE_CLAIMS = ("password", "secret", "key", "token", "ssn", "credit_card")


class TokenAnalyzer:
    """Runs the heuristic token attacks. No network access."""

    def __init__(self, factory: Optional[FindingFactory] = None, weak_secrets=jwt.WEAK_SECRETS):
        self.factory = factory or FindingFactory()
        self.weak_secrets = tuple(weak_secrets)

    def analyze(self, token: str, secret: Optional[str] = None) -> TokenAnalysis:
        try:
            decoded = jwt.decode(token)
        except jwt.TokenDecodeError as e:
            logger.debug(f"Token could not be decoded: {e}")
            finding = self.factory.create(
                FindingType.JWT_INVALID,
                evidence=TokenEvidence(detail=str(e)),
                description=f"Invalid JWT format: {e}",
            )
            return TokenAnalysis(token=token, findings=[finding])

        analysis = TokenAnalysis(
            token=token,
            header=decoded.header,
            claims=decoded.claims,
            algorithm=decoded.algorithm,
            decoded=True,
        )
        findings = analysis.findings

        if (decoded.algorithm or "").lower() == "none":
            findings.append(self.factory.create(
                FindingType.JWT_NONE_ALGORITHM,
                evidence=TokenEvidence(algorithm=decoded.algorithm),
            ))

        if decoded.is_hmac:
            weak = jwt.find_weak_secret(decoded, self.weak_secrets)
            if weak is not None:
                analysis.discovered_secret = weak
                findings.append(self.factory.create(
                    FindingType.JWT_WEAK_SECRET,
                    evidence=TokenEvidence(algorithm=decoded.algorithm, secret=weak),
                    description=f"JWT can be verified with weak secret: {weak!r}",
                ))

        exp = decoded.claims.get("exp")
        if isinstance(exp, (int, float)) and not isinstance(exp, bool) and exp < time.time():
            findings.append(self.factory.create(
                FindingType.JWT_EXPIRED,
                evidence=TokenEvidence(algorithm=decoded.algorithm, claim="exp", detail=str(exp)),
            ))

        lowered = {str(k).lower(): v for k, v in decoded.claims.items()}
        for claim in SENSITIVE_CLAIMS:
            if lowered.get(claim):
                findings.append(self.factory.create(
                    FindingType.JWT_SENSITIVE_DATA_EXPOSURE,
                    evidence=TokenEvidence(algorithm=decoded.algorithm, claim=claim),
                    description=f"Sensitive data found in JWT payload: {claim}",
                ))

        if secret is not None:
            analysis.signature_valid = jwt.verify(token, secret)

        return analysis


class TokenProbe(Probe):
    """Analyses the caller's bearer token when it is a JWT."""

    name = "token"
    scope = SCOPE_TARGET
    description = "JWT none algorithm, weak secret, expiry and sensitive claims"

    async def run(
        self,
        target: TargetConfig,
        endpoint: Optional[Endpoint],
        auth: Optional[AuthConfig],
        session: ProbeSession,
    ) -> List[Finding]:
        token = auth.bearer_token if auth else None
        if not jwt.looks_like_jwt(token):
            return []
        return TokenAnalyzer(session.factory).analyze(token).findings
