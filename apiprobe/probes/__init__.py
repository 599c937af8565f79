"""Vulnerability probes and the registry the scanner selects them from."""

from typing import Dict, Iterable, List, Optional, Type

from apiprobe.errors import UnknownProbeError
from apiprobe.probes.authorization import (
    ApiKeyLintProbe,
    JwtBypassProbe,
    MissingAuthProbe,
    PrivilegeEscalationProbe,
)
from apiprobe.probes.base import SCOPE_ENDPOINT, SCOPE_TARGET, Probe, ProbeSession
from apiprobe.probes.cors import CorsChecker, CorsProbe
from apiprobe.probes.fuzzing import BolaProbe, FuzzingEngine, FuzzingProbe
from apiprobe.probes.misconfig import (
    MassAssignmentProbe,
    SecurityHeadersProbe,
    SsrfProbe,
    VerboseErrorProbe,
)
from apiprobe.probes.rate_limit import RateLimitChecker, RateLimitProbe
from apiprobe.probes.token import TokenAnalyzer, TokenProbe

# Registration order is execution order
PROBES: Dict[str, Type[Probe]] = {
    probe.name: probe
    for probe in (
        MissingAuthProbe,
        PrivilegeEscalationProbe,
        BolaProbe,
        ApiKeyLintProbe,
        TokenProbe,
        JwtBypassProbe,
        FuzzingProbe,
        CorsProbe,
        SecurityHeadersProbe,
        VerboseErrorProbe,
        MassAssignmentProbe,
        SsrfProbe,
        RateLimitProbe,
    )
}

DEFAULT_PROBES = (
    "missing_auth",
    "privilege_escalation",
    "bola",
    "api_key",
    "token",
    "jwt_bypass",
    "fuzzing",
    "cors",
)


def get_probe(name: str) -> Probe:
    key = name.strip().lower()
    if key not in PROBES:
        raise UnknownProbeError(name, PROBES)
    return PROBES[key]()


def resolve_probes(names: Optional[Iterable[str]] = None) -> List[Probe]:
    """Instantiate the selected probes in registry order, failing on unknown names."""
    selected = list(DEFAULT_PROBES if names is None else names)
    wanted = {get_probe(name).name for name in selected}
    return [PROBES[name]() for name in PROBES if name in wanted]


__all__ = [
    "DEFAULT_PROBES",
    "PROBES",
    "SCOPE_ENDPOINT",
    "SCOPE_TARGET",
    "ApiKeyLintProbe",
    "BolaProbe",
    "CorsChecker",
    "CorsProbe",
    "FuzzingEngine",
    "FuzzingProbe",
    "JwtBypassProbe",
    "MassAssignmentProbe",
    "MissingAuthProbe",
    "PrivilegeEscalationProbe",
    "Probe",
    "ProbeSession",
    "RateLimitChecker",
    "RateLimitProbe",
    "SecurityHeadersProbe",
    "SsrfProbe",
    "TokenAnalyzer",
    "TokenProbe",
    "VerboseErrorProbe",
    "get_probe",
    "resolve_probes",
]
