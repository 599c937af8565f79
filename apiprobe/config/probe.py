"""Per-request probe records and finding evidence variants."""

from datetime import datetime, timezone
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProbeRequest(BaseModel):
    """A single outbound request as it was issued."""

    url: str
    method: str
    headers: Dict[str, str] = Field(default_factory=dict)
    params: Dict[str, str] = Field(default_factory=dict)
    body: Optional[Any] = None
    issued_at: datetime = Field(default_factory=utcnow)


class ProbeResponse(BaseModel):
    """Observed outcome of a ProbeRequest.

    ``status_code`` is None when the request never produced an HTTP response.
    """

    request: ProbeRequest
    status_code: Optional[int] = None
    headers: Dict[str, str] = Field(default_factory=dict)
    body: str = ""
    elapsed_ms: float = 0.0
    transport_error: bool = False
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status_code is not None and 200 <= self.status_code < 300

    @property
    def blocked(self) -> bool:
        return self.status_code in (429, 403)

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None

    @property
    def content_type(self) -> str:
        return (self.header("content-type") or "").lower()

    def truncated(self, limit: int = 500) -> "ProbeResponse":
        """Copy with the body cut to ``limit`` characters, for evidence."""
        if len(self.body) <= limit:
            return self
        return self.model_copy(update={"body": self.body[:limit]})


class HttpEvidence(BaseModel):
    """Request/response pair that triggered a finding."""

    kind: Literal["http"] = "http"
    request: ProbeRequest
    response: ProbeResponse
    payload: Optional[Any] = None
    indicator: Optional[str] = None


class TokenEvidence(BaseModel):
    """Static token analysis result."""

    kind: Literal["token"] = "token"
    algorithm: Optional[str] = None
    claim: Optional[str] = None
    secret: Optional[str] = None
    detail: Optional[str] = None


class ConfigEvidence(BaseModel):
    """Caller-supplied configuration that was linted without a live probe."""

    kind: Literal["config"] = "config"
    setting: str
    detail: Dict[str, Any] = Field(default_factory=dict)


class CorsEvidence(BaseModel):
    kind: Literal["cors"] = "cors"
    origin: str
    allow_origin: Optional[str] = None
    allow_credentials: Optional[str] = None
    allow_methods: Optional[str] = None
    request: ProbeRequest
    response: ProbeResponse


class RateLimitEvidence(BaseModel):
    kind: Literal["rate_limit"] = "rate_limit"
    total_requests: int
    successful_requests: int
    blocked_requests: int
    error_requests: int
    average_response_time: float
    request: Optional[ProbeRequest] = None
    response: Optional[ProbeResponse] = None


Evidence = Annotated[
    Union[HttpEvidence, TokenEvidence, ConfigEvidence, CorsEvidence, RateLimitEvidence],
    Field(discriminator="kind"),
]
