"""Probe interface shared by every vulnerability check."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional

from apiprobe.config import (
    AuthConfig,
    Endpoint,
    Finding,
    ProbeResponse,
    ScanOptions,
    TargetConfig,
)
from apiprobe.findings import FindingFactory
from apiprobe.http import HttpProbeClient

SCOPE_ENDPOINT = "endpoint"
SCOPE_TARGET = "target"


@dataclass
class ProbeSession:
    """Per-scan collaborators handed to every probe."""

    client: HttpProbeClient
    options: ScanOptions = field(default_factory=ScanOptions)
    factory: Optional[FindingFactory] = None

    def __post_init__(self):
        if self.factory is None:
            self.factory = FindingFactory(self.options.evidence_body_limit)


class Probe(ABC):
    """A single named vulnerability check.

    Endpoint-scoped probes run once per endpoint; target-scoped probes run
    once per scan and receive ``endpoint=None``.
    Exclusive probes run after all other traffic, one endpoint at a time.
    """

    name: ClassVar[str] = ""
    scope: ClassVar[str] = SCOPE_ENDPOINT
    exclusive: ClassVar[bool] = False
    description: ClassVar[str] = ""

    @abstractmethod
    async def run(
        self,
        target: TargetConfig,
        endpoint: Optional[Endpoint],
        auth: Optional[AuthConfig],
        session: ProbeSession,
    ) -> List[Finding]:
        """Probe the target and return findings. Must not mutate its inputs."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


def as_query(payload: Dict[str, Any]) -> Dict[str, str]:
    """Flatten a JSON-style payload into query parameters."""
    params = {}
    for key, value in payload.items():
        if isinstance(value, bool):
            params[key] = "true" if value else "false"
        elif value is None:
            params[key] = "null"
        elif isinstance(value, (list, tuple)):
            params[key] = ",".join(str(v) for v in value)
        else:
            params[key] = str(value)
    return params


async def send_payload(
    session: ProbeSession,
    url: str,
    endpoint: Endpoint,
    payload: Dict[str, Any],
    auth: Optional[AuthConfig],
    timeout: Optional[float] = None,
) -> ProbeResponse:
    """Deliver a payload in the query string for GET/DELETE, as a JSON body otherwise."""
    if endpoint.is_read_only:
        return await session.client.execute(
            url, endpoint.method, auth=auth, params=as_query(payload), timeout=timeout,
        )
    return await session.client.execute(
        url, endpoint.method, body=dict(payload), auth=auth, timeout=timeout,
    )
