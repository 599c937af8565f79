"""Public entry points.

Each function accepts plain dicts or the pydantic models and validates
everything before the first request is sent.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional, Sequence, Union

import httpx
from pydantic import ValidationError

from apiprobe.auth import Authenticator
from apiprobe.config import (
    AuthConfig,
    CorsResult,
    Endpoint,
    EndpointFuzzResult,
    Finding,
    Payload,
    PayloadCategory,
    PayloadResult,
    RateLimitResult,
    ScanOptions,
    ScanResult,
    TargetConfig,
    TokenAnalysis,
)
from apiprobe.errors import ConfigurationError
from apiprobe.http import DEFAULT_TIMEOUT, HttpProbeClient
from apiprobe.payloads import parse_categories
from apiprobe.probes import CorsChecker, FuzzingEngine, ProbeSession, RateLimitChecker, TokenAnalyzer
from apiprobe.scanner import REGISTRY, ScanOrchestrator
from apiprobe.scanner.events import EventCallback
from apiprobe.scheduler import RequestGovernor
from apiprobe.utils import validate_url

TargetLike = Union[str, Dict[str, Any], TargetConfig]
EndpointLike = Union[str, Dict[str, Any], Endpoint]
AuthLike = Union[None, Dict[str, Any], AuthConfig]


def _coerce(model, value, what: str):
    if isinstance(value, model):
        return value
    try:
        return model.model_validate(value)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid {what}: {e}") from e


def parse_endpoint(value: EndpointLike) -> Endpoint:
    """Accept an Endpoint, a dict, or a ``"METHOD /path"`` string."""
    if isinstance(value, str):
        parts = value.split(None, 1)
        if len(parts) == 1:
            value = {"method": "GET", "path": parts[0]}
        else:
            value = {"method": parts[0], "path": parts[1].strip()}
    return _coerce(Endpoint, value, "endpoint")


def _target(value: TargetLike) -> TargetConfig:
    if isinstance(value, str):
        value = {"base_url": value}
    target = _coerce(TargetConfig, value, "target")
    _check_url(target.base_url)
    return target


def _auth(value: AuthLike) -> Optional[AuthConfig]:
    if value is None:
        return None
    auth = _coerce(AuthConfig, value, "authentication")
    Authenticator().authenticate(auth)
    return auth


def _check_url(url: str) -> None:
    is_valid, error = validate_url(url)
    if not is_valid:
        raise ConfigurationError(f"Invalid target URL: {error}")


@asynccontextmanager
async def _session(
    timeout: float,
    transport: Optional[httpx.AsyncBaseTransport],
    options: Optional[ScanOptions] = None,
) -> AsyncIterator[ProbeSession]:
    options = options or ScanOptions(timeout=timeout)
    async with HttpProbeClient(
        timeout=timeout,
        governor=RequestGovernor(options.parallel, options.request_delay),
        transport=transport,
        retries=options.retries,
        user_agent=options.user_agent,
        body_limit=options.body_sample_limit,
    ) as client:
        yield ProbeSession(client=client, options=options)


async def start_scan(
    target: TargetLike,
    endpoints: Sequence[EndpointLike],
    auth: AuthLike = None,
    probes: Optional[Sequence[str]] = None,
    options: Union[None, Dict[str, Any], ScanOptions] = None,
    scan_id: Optional[str] = None,
    on_event: Optional[EventCallback] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ScanResult:
    """Run a full scan. Configuration problems raise before any request."""
    orchestrator = ScanOrchestrator(
        _target(target),
        [parse_endpoint(e) for e in endpoints],
        auth=_auth(auth),
        options=_coerce(ScanOptions, options or {}, "options"),
        probes=probes,
        scan_id=scan_id,
        on_event=on_event,
        transport=transport,
    )
    return await orchestrator.run()


def cancel_scan(scan_id: str) -> bool:
    """Signal a running scan to stop. Returns False when no such scan is running."""
    return REGISTRY.cancel(scan_id)


def analyze_token(token: str, secret: Optional[str] = None) -> TokenAnalysis:
    return TokenAnalyzer().analyze(token, secret)


async def check_cors(
    target_url: str,
    origins: Optional[Sequence[str]] = None,
    timeout: float = DEFAULT_TIMEOUT,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> CorsResult:
    _check_url(target_url)
    async with _session(timeout, transport) as session:
        return await CorsChecker(session).check(target_url, origins)


async def check_rate_limit(
    url: str,
    method: str = "GET",
    request_count: int = 20,
    payload: Optional[Dict[str, Any]] = None,
    delay: float = 0.1,
    auth: AuthLike = None,
    timeout: float = DEFAULT_TIMEOUT,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> RateLimitResult:
    _check_url(url)
    if request_count < 1:
        raise ConfigurationError("request_count must be at least 1")
    auth = _auth(auth)
    async with _session(timeout, transport) as session:
        result, _ = await RateLimitChecker(session).check(url, method, request_count, payload, delay, auth)
        return result


async def fuzz_endpoint(
    target_url: TargetLike,
    endpoint: EndpointLike,
    auth: AuthLike = None,
    categories: Optional[Iterable[Union[str, PayloadCategory]]] = None,
    max_payloads_per_category: int = 50,
    timeout: float = DEFAULT_TIMEOUT,
    custom_payloads: Sequence[Payload] = (),
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> List[Finding]:
    target, endpoint, auth = _target(target_url), parse_endpoint(endpoint), _auth(auth)
    if categories is not None:
        categories = parse_categories(categories)
    async with _session(timeout, transport) as session:
        return await FuzzingEngine(session).fuzz_endpoint(
            target, endpoint, auth, categories, max_payloads_per_category, timeout, custom_payloads,
        )


async def try_payload(
    target_url: TargetLike,
    endpoint: EndpointLike,
    payload: str,
    category: Optional[Union[str, PayloadCategory]] = None,
    parameter: str = "test",
    auth: AuthLike = None,
    timeout: float = DEFAULT_TIMEOUT,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> PayloadResult:
    """Send a single payload, optionally into a named parameter, and evaluate it."""
    target, endpoint, auth = _target(target_url), parse_endpoint(endpoint), _auth(auth)
    async with _session(timeout, transport) as session:
        return await FuzzingEngine(session).test_payload(
            target, endpoint, payload, category, parameter, auth, timeout,
        )


async def batch_fuzz(
    target_url: TargetLike,
    endpoints: Sequence[EndpointLike],
    auth: AuthLike = None,
    categories: Optional[Iterable[Union[str, PayloadCategory]]] = None,
    max_payloads_per_category: int = 20,
    timeout: float = DEFAULT_TIMEOUT,
    parallel: int = 5,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> List[EndpointFuzzResult]:
    target, auth = _target(target_url), _auth(auth)
    parsed = [parse_endpoint(e) for e in endpoints]
    if not parsed:
        raise ConfigurationError("At least one endpoint is required")
    if categories is not None:
        categories = parse_categories(categories)
    options = ScanOptions(timeout=timeout, fuzz_timeout=timeout, parallel=parallel)
    async with _session(timeout, transport, options) as session:
        return await FuzzingEngine(session).batch_fuzz(
            target, parsed, auth, categories, max_payloads_per_category,
        )


async def check_parameter_tampering(
    target_url: TargetLike,
    endpoint: EndpointLike,
    auth: AuthLike = None,
    timeout: float = 5.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> List[Finding]:
    target, endpoint, auth = _target(target_url), parse_endpoint(endpoint), _auth(auth)
    async with _session(timeout, transport) as session:
        return await FuzzingEngine(session).check_parameter_tampering(target, endpoint, auth, timeout)
