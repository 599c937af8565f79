"""Payload fuzzing and object-identifier tampering."""

import asyncio
from typing import Iterable, List, Optional, Sequence, Union
from uuid import uuid4

from apiprobe.config import (
    AuthConfig,
    Endpoint,
    EndpointFuzzResult,
    Finding,
    FindingType,
    ParameterLocation,
    Payload,
    PayloadCategory,
    PayloadResult,
    ProbeResponse,
    TargetConfig,
)
from apiprobe.core import NO_MATCH, MatchResult, evaluate_oracle
from apiprobe.findings import CATEGORY_FINDINGS
from apiprobe.payloads import get_payloads, parse_categories, parse_category
from apiprobe.probes.base import Probe, ProbeSession, send_payload
from apiprobe.utils import logger

DEFAULT_CATEGORIES = (PayloadCategory.INJECTION, PayloadCategory.XSS)
DEFAULT_PARAMETER = "test"
BATCH_MAX_PAYLOADS = 20

TAMPER_VALUES = ("0", "-1", "999999999", "../admin", "null", "undefined")
DENIAL_MARKERS = ("not found", "unauthorized")

CategoryNames = Iterable[Union[str, PayloadCategory]]


class FuzzingEngine:
    """Injects corpus payloads and judges responses with the category oracles."""

    def __init__(self, session: ProbeSession):
        self.session = session

    @property
    def client(self):
        return self.session.client

    async def _deliver(
        self,
        target: TargetConfig,
        endpoint: Endpoint,
        parameter: str,
        value: str,
        auth: Optional[AuthConfig],
        timeout: Optional[float],
    ) -> ProbeResponse:
        """Place a value into the named parameter.

        Path parameters are substituted into the URL and declared header
        parameters become request headers; anything else goes to the query
        string for GET/DELETE and to the JSON body otherwise.
        """
        if parameter in {p.name for p in endpoint.path_parameters()}:
            url = target.url_for(endpoint, {parameter: value})
            return await self.client.execute(url, endpoint.method, auth=auth, timeout=timeout)

        url = target.url_for(endpoint)
        declared = next((p for p in endpoint.parameters if p.name == parameter), None)
        if declared is not None and declared.location == ParameterLocation.HEADER:
            return await self.client.execute(
                url, endpoint.method, headers={parameter: value}, auth=auth, timeout=timeout,
            )
        return await send_payload(self.session, url, endpoint, {parameter: value}, auth, timeout)

    async def fuzz_endpoint(
        self,
        target: TargetConfig,
        endpoint: Endpoint,
        auth: Optional[AuthConfig] = None,
        categories: Optional[CategoryNames] = None,
        max_payloads_per_category: int = 50,
        timeout: Optional[float] = None,
        custom_payloads: Sequence[Payload] = (),
    ) -> List[Finding]:
        """One finding per (category, payload) whose response trips the oracle."""
        selected = parse_categories(categories if categories is not None else DEFAULT_CATEGORIES)
        timeout = timeout if timeout is not None else self.session.options.fuzz_timeout
        findings = []

        for category in selected:
            payloads = get_payloads(category, custom_payloads)[:max(0, max_payloads_per_category)]
            logger.debug(f"  Fuzzing {endpoint.label} with {len(payloads)} {category.value} payloads")

            for payload in payloads:
                response = await self._deliver(
                    target, endpoint, DEFAULT_PARAMETER, payload.value, auth, timeout,
                )
                if response.transport_error:
                    continue
                result = evaluate_oracle(category, response, payload.value)
                if result.matched:
                    findings.append(self._finding(category, endpoint, response, payload.value, result))

        return findings

    def _finding(
        self,
        category: PayloadCategory,
        endpoint: Endpoint,
        response: ProbeResponse,
        payload: str,
        result: MatchResult,
    ) -> Finding:
        return self.session.factory.from_response(
            CATEGORY_FINDINGS[category],
            endpoint,
            response,
            payload=payload,
            indicator=result.indicator,
            description=f"Potential {category.value} vulnerability detected",
        )

    async def test_payload(
        self,
        target: TargetConfig,
        endpoint: Endpoint,
        payload: str,
        category: Optional[Union[str, PayloadCategory]] = None,
        parameter: str = DEFAULT_PARAMETER,
        auth: Optional[AuthConfig] = None,
        timeout: Optional[float] = None,
    ) -> PayloadResult:
        """Send one payload and evaluate it.

        Without a category every oracle is tried and the first match wins.
        """
        candidates = [parse_category(category)] if category is not None else list(PayloadCategory)
        timeout = timeout if timeout is not None else self.session.options.fuzz_timeout

        response = await self._deliver(target, endpoint, parameter, payload, auth, timeout)

        matched_category, result = None, NO_MATCH
        for candidate in candidates:
            result = evaluate_oracle(candidate, response, payload)
            if result.matched:
                matched_category = candidate
                break

        return PayloadResult(
            payload=payload,
            parameter=parameter,
            category=matched_category or (candidates[0] if category is not None else None),
            vulnerable=result.matched,
            indicator=result.indicator,
            response=response.truncated(self.session.factory.evidence_body_limit),
            finding=(
                self._finding(matched_category, endpoint, response, payload, result)
                if matched_category is not None else None
            ),
        )

    async def batch_fuzz(
        self,
        target: TargetConfig,
        endpoints: Sequence[Endpoint],
        auth: Optional[AuthConfig] = None,
        categories: Optional[CategoryNames] = None,
        max_payloads_per_category: int = BATCH_MAX_PAYLOADS,
    ) -> List[EndpointFuzzResult]:
        """Fuzz several endpoints; results keep the order of ``endpoints``."""
        selected = parse_categories(categories if categories is not None else DEFAULT_CATEGORIES)
        results = await asyncio.gather(*[
            self.fuzz_endpoint(target, endpoint, auth, selected, max_payloads_per_category)
            for endpoint in endpoints
        ])
        return [
            EndpointFuzzResult(endpoint=endpoint.label, findings=findings)
            for endpoint, findings in zip(endpoints, results)
        ]

    async def check_parameter_tampering(
        self,
        target: TargetConfig,
        endpoint: Endpoint,
        auth: Optional[AuthConfig] = None,
        timeout: Optional[float] = None,
    ) -> List[Finding]:
        """Swap path identifiers for unexpected values and look for object access.

        A tampered response only counts when it differs from what the server
        returns for an identifier that cannot exist.
        """
        timeout = timeout if timeout is not None else self.session.options.tampering_timeout
        findings = []

        for param in endpoint.path_parameters():
            baseline = await self.client.execute(
                target.url_for(endpoint, {param.name: uuid4().hex}),
                endpoint.method, auth=auth, timeout=timeout,
            )

            for value in TAMPER_VALUES:
                response = await self.client.execute(
                    target.url_for(endpoint, {param.name: value}),
                    endpoint.method, auth=auth, timeout=timeout,
                )
                if not response.ok or not _grants_access(response):
                    continue
                if not baseline.transport_error and response.body == baseline.body:
                    continue

                findings.append(self.session.factory.from_response(
                    FindingType.BOLA,
                    endpoint,
                    response,
                    payload=value,
                    indicator=f"{param.name}={value}",
                    description=f"Parameter '{param.name}' may be vulnerable to ID manipulation",
                ))

        return findings


def _grants_access(response: ProbeResponse) -> bool:
    body = response.body.strip().lower()
    if not body:
        return False
    return not any(marker in body for marker in DENIAL_MARKERS)


class FuzzingProbe(Probe):
    name = "fuzzing"
    description = "Injection payloads judged by per-category response oracles"

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
        return await FuzzingEngine(session).fuzz_endpoint(
            target,
            endpoint,
            auth,
            categories=options.categories,
            max_payloads_per_category=options.max_payloads_per_category,
            timeout=options.fuzz_timeout,
            custom_payloads=options.custom_payloads,
        )


class BolaProbe(Probe):
    name = "bola"
    description = "Path identifier tampering"

    async def run(
        self,
        target: TargetConfig,
        endpoint: Optional[Endpoint],
        auth: Optional[AuthConfig],
        session: ProbeSession,
    ) -> List[Finding]:
        if endpoint is None:
            return []
        return await FuzzingEngine(session).check_parameter_tampering(
            target, endpoint, auth, timeout=session.options.tampering_timeout,
        )
