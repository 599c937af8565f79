import time

import httpx
import pytest

from apiprobe import (
    ConfigurationError,
    FindingType,
    SeverityLevel,
    UnknownCategoryError,
    UnknownProbeError,
    cancel_scan,
    start_scan,
)
from apiprobe.api import parse_endpoint
from apiprobe.probes import DEFAULT_PROBES, PROBES, MissingAuthProbe, resolve_probes
from apiprobe.scanner import REGISTRY

USERS = {"method": "GET", "path": "/users/:id", "requires_auth": True}


async def test_open_endpoint_yields_one_finding(make_transport, ok_handler):
    transport = make_transport(ok_handler)
    result = await start_scan("http://api.test", [USERS], transport=transport)

    assert not result.cancelled
    assert result.errors == []
    assert len(result.findings) == 1
    finding = result.findings[0]
    assert finding.type == FindingType.BROKEN_AUTH
    assert finding.severity == SeverityLevel.CRITICAL
    assert finding.endpoint == "GET /users/:id"
    assert result.summary["critical"] == 1
    assert "missing_auth GET /users/:id" in result.tests_executed
    assert "cors" in result.tests_executed


async def test_repeated_scans_agree(make_transport, ok_handler):
    first = await start_scan("http://api.test", [USERS], transport=make_transport(ok_handler))
    second = await start_scan("http://api.test", [USERS], transport=make_transport(ok_handler))

    assert [f.signature for f in first.findings] == [f.signature for f in second.findings]
    assert first.scan_id != second.scan_id


async def test_findings_follow_endpoint_order(make_transport, ok_handler):
    endpoints = [
        {"method": "GET", "path": "/b", "requires_auth": True},
        "GET /public",
        {"method": "GET", "path": "/a", "requires_auth": True},
    ]
    result = await start_scan(
        "http://api.test", endpoints, probes=["missing_auth"], transport=make_transport(ok_handler),
    )
    assert [f.endpoint for f in result.findings] == ["GET /b", "GET /a"]


async def test_inputs_are_not_mutated(make_transport, ok_handler):
    endpoints = [dict(USERS)]
    options = {"categories": ["xss"], "max_payloads_per_category": 1}
    await start_scan("http://api.test", endpoints, options=options, transport=make_transport(ok_handler))

    assert endpoints == [USERS]
    assert options == {"categories": ["xss"], "max_payloads_per_category": 1}


async def test_unknown_probe_fails_before_network(make_transport, ok_handler):
    transport = make_transport(ok_handler)
    with pytest.raises(UnknownProbeError):
        await start_scan("http://api.test", [USERS], probes=["missing_auth", "nope"], transport=transport)
    assert transport.requests == []


async def test_unknown_category_fails_before_network(make_transport, ok_handler):
    transport = make_transport(ok_handler)
    with pytest.raises(UnknownCategoryError):
        await start_scan("http://api.test", [USERS], options={"categories": ["sqli"]}, transport=transport)
    assert transport.requests == []


@pytest.mark.parametrize("target,endpoints,auth", [
    ("not a url", [USERS], None),
    ("ftp://api.test", [USERS], None),
    ("http://api.test", [], None),
    ("http://api.test", [{"method": "GET"}], None),
    ("http://api.test", [USERS], {"type": "bearer"}),
    ("http://api.test", [USERS], {"type": "kerberos"}),
])
async def test_configuration_errors_send_nothing(make_transport, ok_handler, target, endpoints, auth):
    transport = make_transport(ok_handler)
    with pytest.raises(ConfigurationError):
        await start_scan(target, endpoints, auth=auth, transport=transport)
    assert transport.requests == []


async def test_cancel_from_event_callback(make_transport, ok_handler):
    transport = make_transport(ok_handler)

    def on_event(event):
        if event.type == "probe_started":
            cancel_scan(event.scan_id)

    result = await start_scan(
        "http://api.test", [USERS], scan_id="cancel-me", on_event=on_event, transport=transport,
    )

    assert result.cancelled
    assert "Scan cancelled" in result.errors
    assert transport.requests == []
    assert "cancel-me" not in REGISTRY


async def test_cancel_while_requests_are_in_flight(make_transport):
    def handler(request):
        cancel_scan("stop-early")
        return httpx.Response(200, json={"id": 1})

    transport = make_transport(handler)
    result = await start_scan("http://api.test", [USERS], scan_id="stop-early", transport=transport)

    assert result.cancelled
    assert result.findings == []
    assert len(transport.requests) <= 2


def test_cancel_unknown_scan():
    assert cancel_scan("no-such-scan") is False


async def test_events_are_emitted(make_transport, ok_handler):
    events = []

    async def on_event(event):
        events.append(event)

    result = await start_scan(
        "http://api.test", [USERS], probes=["missing_auth"], on_event=on_event,
        transport=make_transport(ok_handler),
    )

    types = [e.type for e in events]
    assert types == ["probe_started", "finding", "probe_finished", "scan_finished"]
    assert all(e.scan_id == result.scan_id for e in events)
    assert events[1].data["type"] == "BROKEN_AUTH"
    assert events[-1].data["findings"] == 1


async def test_failing_callback_does_not_stop_scan(make_transport, ok_handler):
    def on_event(event):
        raise RuntimeError("subscriber broke")

    result = await start_scan(
        "http://api.test", [USERS], probes=["missing_auth"], on_event=on_event,
        transport=make_transport(ok_handler),
    )
    assert len(result.findings) == 1


async def test_probe_failure_is_recorded(make_transport, ok_handler, monkeypatch):
    async def explode(self, target, endpoint, auth, session):
        raise RuntimeError("boom")

    monkeypatch.setattr(MissingAuthProbe, "run", explode)
    result = await start_scan(
        "http://api.test", [USERS], probes=["missing_auth", "bola"], transport=make_transport(ok_handler),
    )

    assert result.errors == ["Probe missing_auth GET /users/:id failed: boom"]
    assert result.tests_executed == ["bola GET /users/:id"]
    assert not result.cancelled


async def test_unreachable_target_completes(make_transport):
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    result = await start_scan("http://api.test", [USERS], transport=make_transport(handler))

    assert result.findings == []
    assert result.errors == []
    assert not result.cancelled


def test_probe_registry():
    assert [p.name for p in resolve_probes()] == list(DEFAULT_PROBES)
    assert [p.name for p in resolve_probes(["cors", "missing_auth"])] == ["missing_auth", "cors"]
    assert set(DEFAULT_PROBES) < set(PROBES)
    with pytest.raises(UnknownProbeError):
        resolve_probes(["nope"])


def test_parse_endpoint_shorthand():
    endpoint = parse_endpoint("post /users/{id}")
    assert endpoint.method == "POST"
    assert endpoint.path == "/users/{id}"
    assert parse_endpoint("/health").label == "GET /health"


async def test_rate_limit_bursts_run_one_endpoint_at_a_time(make_transport, ok_handler):
    sent = []

    def handler(request):
        sent.append((request.url.path, time.monotonic()))
        return ok_handler(request)

    result = await start_scan(
        "http://api.test",
        ["GET /e0", "GET /e1", "GET /e2"],
        probes=["rate_limit", "missing_auth"],
        options={"rate_limit_requests": 4, "rate_limit_delay": 0.02},
        transport=make_transport(handler),
    )

    bursts = sent[-12:]
    assert [path for path, _ in bursts] == ["/e0"] * 4 + ["/e1"] * 4 + ["/e2"] * 4
    gaps = [later - earlier for (_, earlier), (_, later) in zip(bursts, bursts[1:])]
    assert min(gaps) >= 0.015
    assert [f.type for f in result.findings] == [FindingType.NO_RATE_LIMITING] * 3
    assert result.tests_executed[-1] == "rate_limit GET /e2"
