"""Rate limiting detection by bounded sequential bursts."""

import asyncio
from typing import Any, Dict, List, Optional, Tuple

from apiprobe.config import (
    AuthConfig,
    Endpoint,
    Finding,
    FindingType,
    ProbeResponse,
    RateLimitEvidence,
    RateLimitResult,
    TargetConfig,
)
from apiprobe.probes.base import Probe, ProbeSession, as_query
from apiprobe.utils import logger, sanitize_url


class RateLimitChecker:
    """Sends ``request_count`` requests one after another with fixed spacing.

    429 and 403 count as blocked, transport failures as errors and 2xx as
    successes. Ordering is strict; the burst never runs concurrently.
    """

    def __init__(self, session: ProbeSession):
        self.session = session

    async def check(
        self,
        url: str,
        method: str = "GET",
        request_count: int = 20,
        payload: Optional[Dict[str, Any]] = None,
        delay: float = 0.1,
        auth: Optional[AuthConfig] = None,
    ) -> Tuple[RateLimitResult, Optional[ProbeResponse]]:
        method = method.upper()
        body, params = None, None
        if payload:
            if method in ("GET", "DELETE"):
                params = as_query(payload)
            else:
                body = dict(payload)

        logger.debug(f"Rate limit burst: {request_count} x {method} {sanitize_url(url)}")

        successful = blocked = errors = 0
        total_elapsed = 0.0
        last: Optional[ProbeResponse] = None

        for i in range(request_count):
            if i and delay > 0:
                await asyncio.sleep(delay)
            response = await self.session.client.execute(
                url, method, body=body, params=params, auth=auth, timeout=self.session.options.timeout,
            )
            last = response
            total_elapsed += response.elapsed_ms
            if response.transport_error:
                errors += 1
            elif response.blocked:
                blocked += 1
            elif response.ok:
                successful += 1

        result = RateLimitResult(
            total_requests=request_count,
            successful_requests=successful,
            blocked_requests=blocked,
            error_requests=errors,
            rate_limit_detected=blocked > 0,
            average_response_time=total_elapsed / request_count if request_count else 0.0,
        )
        return result, last


class RateLimitProbe(Probe):
    name = "rate_limit"
    exclusive = True
    description = "Bursts of requests that are never throttled"

    async def run(
        self,
        target: TargetConfig,
        endpoint: Optional[Endpoint],
        auth: Optional[AuthConfig],
        session: ProbeSession,
    ) -> List[Finding]:
        if endpoint is None:
            return []

        options = session.options
        result, last = await RateLimitChecker(session).check(
            target.url_for(endpoint),
            endpoint.method,
            request_count=options.rate_limit_requests,
            delay=options.rate_limit_delay,
            auth=auth,
        )
        if result.rate_limit_detected or result.successful_requests == 0:
            return []

        evidence = RateLimitEvidence(
            total_requests=result.total_requests,
            successful_requests=result.successful_requests,
            blocked_requests=result.blocked_requests,
            error_requests=result.error_requests,
            average_response_time=result.average_response_time,
            request=last.request if last else None,
            response=last.truncated(session.factory.evidence_body_limit) if last else None,
        )
        return [session.factory.create(FindingType.NO_RATE_LIMITING, endpoint, evidence=evidence)]
