import json

import httpx
import pytest

from apiprobe import check_rate_limit
from apiprobe.config import Endpoint, FindingType, TargetConfig
from apiprobe.errors import ConfigurationError
from apiprobe.probes import RateLimitChecker, RateLimitProbe


def every_third_blocked():
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) % 3 == 0:
            return httpx.Response(429, headers={"Retry-After": "1"})
        return httpx.Response(200, json={"ok": True})

    return handler


async def test_blocked_requests_are_counted(make_transport):
    result = await check_rate_limit(
        "http://api.test/login", request_count=20, delay=0, transport=make_transport(every_third_blocked()),
    )

    assert result.total_requests == 20
    assert result.blocked_requests == 6
    assert result.successful_requests == 14
    assert result.error_requests == 0
    assert result.rate_limit_detected


async def test_never_throttled(make_transport, ok_handler):
    transport = make_transport(ok_handler)
    result = await check_rate_limit("http://api.test/login", request_count=20, delay=0, transport=transport)

    assert not result.rate_limit_detected
    assert result.successful_requests == 20
    assert len(transport.requests) == 20
    assert result.average_response_time >= 0


async def test_forbidden_counts_as_blocked(make_session):
    session, _ = make_session(lambda request: httpx.Response(403))
    result, last = await RateLimitChecker(session).check("http://api.test/", request_count=3, delay=0)

    assert result.blocked_requests == 3
    assert result.rate_limit_detected
    assert last.status_code == 403


async def test_transport_errors_are_counted(make_session):
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    session, _ = make_session(handler)
    result, _ = await RateLimitChecker(session).check("http://api.test/", request_count=4, delay=0)

    assert result.error_requests == 4
    assert result.successful_requests == 0
    assert not result.rate_limit_detected


async def test_payload_placement(make_session, ok_handler):
    session, transport = make_session(ok_handler)
    checker = RateLimitChecker(session)

    await checker.check("http://api.test/login", "post", request_count=1, payload={"user": "a"}, delay=0)
    await checker.check("http://api.test/search", "get", request_count=1, payload={"q": "a"}, delay=0)

    post, get = transport.requests
    assert post.method == "POST"
    assert json.loads(post.content) == {"user": "a"}
    assert get.url.params["q"] == "a"


async def test_zero_requests_rejected(make_transport, ok_handler):
    transport = make_transport(ok_handler)
    with pytest.raises(ConfigurationError):
        await check_rate_limit("http://api.test/", request_count=0, transport=transport)
    assert transport.requests == []


async def test_probe_reports_missing_rate_limit(make_session, ok_handler):
    session, transport = make_session(ok_handler, rate_limit_requests=5, rate_limit_delay=0)
    endpoint = Endpoint(method="POST", path="/login")
    findings = await RateLimitProbe().run(TargetConfig(base_url="http://api.test"), endpoint, None, session)

    assert len(findings) == 1
    finding = findings[0]
    assert finding.type == FindingType.NO_RATE_LIMITING
    assert finding.evidence.kind == "rate_limit"
    assert finding.evidence.successful_requests == 5
    assert len(transport.requests) == 5


async def test_probe_silent_when_throttled(make_session):
    session, _ = make_session(every_third_blocked(), rate_limit_requests=6, rate_limit_delay=0)
    endpoint = Endpoint(method="POST", path="/login")
    assert await RateLimitProbe().run(TargetConfig(base_url="http://api.test"), endpoint, None, session) == []
