import asyncio
import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence
from uuid import uuid4

import httpx

from apiprobe.auth import Authenticator
from apiprobe.config import AuthConfig, Endpoint, Finding, ScanOptions, ScanResult, TargetConfig
from apiprobe.errors import ConfigurationError, ScanCancelled
from apiprobe.http import HttpProbeClient
from apiprobe.payloads import parse_categories
from apiprobe.probes import SCOPE_TARGET, Probe, ProbeSession, resolve_probes
from apiprobe.scanner.events import (
    FINDING,
    PROBE_FINISHED,
    PROBE_STARTED,
    SCAN_FINISHED,
    EventCallback,
    EventEmitter,
)
from apiprobe.scheduler import CancellationRegistry, RequestGovernor
from apiprobe.utils import logger, sanitize_url, validate_url

# Scans started in this process, for cancel_scan()
REGISTRY = CancellationRegistry()


@dataclass
class _Slot:
    """Output of one unit of work, merged in a fixed order after the scan."""

    findings: List[Finding] = field(default_factory=list)
    tests: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


class ScanOrchestrator:
    """Runs the selected probes against a target and aggregates a ScanResult.

    Target-scoped probes run once; endpoint-scoped probes run per endpoint,
    with endpoints processed concurrently under the request governor.
    Exclusive probes (rate limit bursts) run last, one endpoint at a time,
    so no other scan traffic interleaves with them.
    Findings are merged target first, then by endpoint order and probe order.
    """

    def __init__(
        self,
        target: TargetConfig,
        endpoints: Sequence[Endpoint],
        auth: Optional[AuthConfig] = None,
        options: Optional[ScanOptions] = None,
        probes: Optional[Sequence[str]] = None,
        scan_id: Optional[str] = None,
        on_event: Optional[EventCallback] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        registry: CancellationRegistry = REGISTRY,
    ):
        self.target = target
        self.endpoints = list(endpoints)
        self.auth = auth if auth is not None else target.authentication
        self.options = options or ScanOptions()
        self.probe_names = probes if probes is not None else self.options.probes
        self.scan_id = scan_id or uuid4().hex
        self.events = EventEmitter(self.scan_id, on_event)
        self.registry = registry
        self._transport = transport
        self.probes: List[Probe] = []

    def validate(self) -> None:
        """Check every input. Raises ConfigurationError; sends nothing."""
        is_valid, error = validate_url(self.target.base_url)
        if not is_valid:
            raise ConfigurationError(f"Invalid target URL: {error}")
        if not self.endpoints:
            raise ConfigurationError("At least one endpoint is required")

        Authenticator().authenticate(self.auth)
        parse_categories(self.options.categories)
        self.probes = resolve_probes(self.probe_names)

    async def run(self) -> ScanResult:
        self.validate()

        start_time = time.time()
        result = ScanResult(scan_id=self.scan_id, target=self.target.base_url)
        token = self.registry.register(self.scan_id)

        target_probes = [p for p in self.probes if p.scope == SCOPE_TARGET]
        endpoint_probes = [p for p in self.probes if p.scope != SCOPE_TARGET and not p.exclusive]
        exclusive_probes = [p for p in self.probes if p.scope != SCOPE_TARGET and p.exclusive]

        logger.info(
            f"Scanning {sanitize_url(self.target.base_url)} with {len(self.probes)} probes "
            f"on {len(self.endpoints)} endpoints"
        )

        client = HttpProbeClient(
            timeout=self.options.timeout,
            governor=RequestGovernor(self.options.parallel, self.options.request_delay),
            cancellation=token,
            transport=self._transport,
            retries=self.options.retries,
            user_agent=self.options.user_agent,
            body_limit=self.options.body_sample_limit,
        )
        session = ProbeSession(client=client, options=self.options)

        slots = [_Slot() for _ in range(len(self.endpoints) + 1)]
        try:
            async with client:
                outcomes = await asyncio.gather(
                    self._run_probes(target_probes, None, session, slots[0]),
                    *[
                        self._run_probes(endpoint_probes, endpoint, session, slot)
                        for endpoint, slot in zip(self.endpoints, slots[1:])
                    ],
                    return_exceptions=True,
                )
                for outcome in outcomes:
                    if isinstance(outcome, ScanCancelled):
                        result.cancelled = True
                    elif isinstance(outcome, BaseException):
                        raise outcome

                if exclusive_probes and not result.cancelled:
                    try:
                        for i, (endpoint, slot) in enumerate(zip(self.endpoints, slots[1:])):
                            if i and self.options.rate_limit_delay > 0:
                                await asyncio.sleep(self.options.rate_limit_delay)
                            await self._run_probes(exclusive_probes, endpoint, session, slot)
                    except ScanCancelled:
                        result.cancelled = True
        finally:
            self.registry.release(self.scan_id)

        if result.cancelled:
            logger.warning(f"Scan {self.scan_id} cancelled")
            result.add_error("Scan cancelled")

        for slot in slots:
            result.findings.extend(slot.findings)
            result.tests_executed.extend(slot.tests)
            result.errors.extend(slot.errors)

        result.refresh_summary()
        result.duration_seconds = time.time() - start_time

        logger.info(
            f"Scan {self.scan_id} finished: {len(result.findings)} findings "
            f"in {result.duration_seconds:.1f}s"
        )
        await self.events.emit(
            SCAN_FINISHED,
            findings=len(result.findings),
            summary=dict(result.summary),
            cancelled=result.cancelled,
        )
        return result

    async def _run_probes(
        self,
        probes: Sequence[Probe],
        endpoint: Optional[Endpoint],
        session: ProbeSession,
        slot: _Slot,
    ) -> None:
        label = endpoint.label if endpoint else None
        for probe in probes:
            test_name = f"{probe.name} {label}" if label else probe.name
            await self.events.emit(PROBE_STARTED, probe=probe.name, endpoint=label)

            try:
                findings = await probe.run(self.target, endpoint, self.auth, session)
            except ScanCancelled:
                raise
            except Exception as e:
                logger.debug(f"Probe {test_name} failed: {e}")
                slot.errors.append(f"Probe {test_name} failed: {e}")
                await self.events.emit(PROBE_FINISHED, probe=probe.name, endpoint=label, error=str(e))
                continue

            slot.tests.append(test_name)
            slot.findings.extend(findings)
            for finding in findings:
                logger.debug(f"  [+] Finding: {finding.type.value} ({finding.severity.value}) {label or ''}")
                await self.events.emit(
                    FINDING,
                    probe=probe.name,
                    endpoint=label,
                    finding_id=finding.id,
                    type=finding.type.value,
                    severity=finding.severity.value,
                )
            await self.events.emit(PROBE_FINISHED, probe=probe.name, endpoint=label, findings=len(findings))


async def run_scan(
    target: TargetConfig,
    endpoints: Sequence[Endpoint],
    auth: Optional[AuthConfig] = None,
    options: Optional[ScanOptions] = None,
    probes: Optional[Sequence[str]] = None,
    scan_id: Optional[str] = None,
    on_event: Optional[EventCallback] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ScanResult:
    orchestrator = ScanOrchestrator(
        target,
        endpoints,
        auth=auth,
        options=options,
        probes=probes,
        scan_id=scan_id,
        on_event=on_event,
        transport=transport,
    )
    return await orchestrator.run()
