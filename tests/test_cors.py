import httpx

from apiprobe import check_cors
from apiprobe.config import FindingType, SeverityLevel, TargetConfig
from apiprobe.probes import CorsChecker, CorsProbe
from apiprobe.probes.cors import DEFAULT_ORIGINS


def wildcard_handler(request):
    return httpx.Response(200, headers={
        "Access-Control-Allow-Origin": "*",
        "Access-Control-Allow-Credentials": "true",
    })


def reflecting_handler(request):
    return httpx.Response(204, headers={
        "Access-Control-Allow-Origin": request.headers["Origin"],
        "Access-Control-Allow-Methods": "GET, POST",
    })


async def test_wildcard_with_credentials_reported_once(make_session):
    session, transport = make_session(wildcard_handler)
    result = await CorsChecker(session).check("http://api.test")

    assert len(result.findings) == 1
    finding = result.findings[0]
    assert finding.type == FindingType.CORS_MISCONFIGURATION
    assert finding.severity == SeverityLevel.HIGH
    assert finding.evidence.allow_origin == "*"
    assert len(transport.requests) == len(DEFAULT_ORIGINS)


async def test_preflight_shape(make_session, ok_handler):
    session, transport = make_session(ok_handler)
    await CorsChecker(session).check("http://api.test", ["https://evil.com"])

    request = transport.requests[0]
    assert request.method == "OPTIONS"
    assert request.headers["Origin"] == "https://evil.com"
    assert request.headers["Access-Control-Request-Method"] == "GET"


async def test_reflected_origins_are_medium(make_session):
    session, _ = make_session(reflecting_handler)
    result = await CorsChecker(session).check("http://api.test")

    origins = [f.evidence.origin for f in result.findings]
    assert origins == ["https://evil.com", "https://attacker.example.com"]
    assert all(f.severity == SeverityLevel.MEDIUM for f in result.findings)
    assert result.findings[0].description == "CORS allows arbitrary origin: https://evil.com"
    assert result.summary == {"total_tests": 4, "vulnerabilities": 2}
    assert result.tested_origins == list(DEFAULT_ORIGINS)


async def test_no_cors_headers(make_session, ok_handler):
    session, _ = make_session(ok_handler)
    result = await CorsChecker(session).check("http://api.test", ["https://evil.com"])

    assert result.findings == []
    assert result.summary == {"total_tests": 1, "vulnerabilities": 0}


async def test_unreachable_target_has_no_findings(make_session):
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    session, _ = make_session(handler)
    result = await CorsChecker(session).check("http://api.test")
    assert result.findings == []


async def test_probe_uses_configured_origins(make_session):
    session, transport = make_session(reflecting_handler, cors_origins=["https://partner.example.org"])
    findings = await CorsProbe().run(TargetConfig(base_url="http://api.test"), None, None, session)

    assert len(findings) == 1
    assert len(transport.requests) == 1
    assert findings[0].endpoint is None


async def test_check_cors_entry_point(make_transport):
    result = await check_cors("http://api.test", transport=make_transport(wildcard_handler))
    assert len(result.findings) == 1
