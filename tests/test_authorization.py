import json

import httpx

from apiprobe.auth import jwt
from apiprobe.config import (
    ApiKeyLocation,
    AuthConfig,
    AuthType,
    Endpoint,
    FindingType,
    SeverityLevel,
    TargetConfig,
)
from apiprobe.probes import (
    ApiKeyLintProbe,
    JwtBypassProbe,
    MissingAuthProbe,
    PrivilegeEscalationProbe,
)

TARGET = TargetConfig(base_url="http://api.test")
PROTECTED = Endpoint(method="GET", path="/users/:id", requires_auth=True)


async def test_missing_auth_reports_open_endpoint(make_session, ok_handler):
    session, transport = make_session(ok_handler)
    findings = await MissingAuthProbe().run(TARGET, PROTECTED, None, session)

    assert len(findings) == 1
    finding = findings[0]
    assert finding.type == FindingType.BROKEN_AUTH
    assert finding.severity == SeverityLevel.CRITICAL
    assert finding.endpoint == "GET /users/:id"
    assert finding.evidence.response.status_code == 200

    sent = transport.requests[0]
    assert sent.url.path == "/users/1"
    assert "Authorization" not in sent.headers


async def test_missing_auth_ignores_rejection(make_session):
    session, _ = make_session(lambda request: httpx.Response(401))
    assert await MissingAuthProbe().run(TARGET, PROTECTED, None, session) == []


async def test_missing_auth_skips_public_endpoints(make_session, ok_handler):
    session, transport = make_session(ok_handler)
    public = Endpoint(method="GET", path="/health")

    assert await MissingAuthProbe().run(TARGET, public, None, session) == []
    assert transport.requests == []


def _role_handler(request):
    role = request.url.params.get("role")
    if role:
        return httpx.Response(200, json={"user": "alice", "role": role, "secrets": ["k1"]})
    return httpx.Response(200, json={"user": "alice", "role": "user"})


async def test_privilege_escalation_needs_a_changed_response(make_session):
    session, transport = make_session(_role_handler)
    endpoint = Endpoint(method="GET", path="/profile")
    findings = await PrivilegeEscalationProbe().run(TARGET, endpoint, None, session)

    assert len(findings) == 1
    assert findings[0].type == FindingType.PRIVILEGE_ESCALATION
    assert findings[0].evidence.payload["role"] == "admin"
    # neutral request plus one per payload
    assert len(transport.requests) == 4


async def test_privilege_escalation_identical_responses(make_session, ok_handler):
    session, _ = make_session(ok_handler)
    endpoint = Endpoint(method="POST", path="/profile")
    assert await PrivilegeEscalationProbe().run(TARGET, endpoint, None, session) == []


async def test_privilege_escalation_sends_json_for_writes(make_session):
    session, transport = make_session(lambda request: httpx.Response(403))
    endpoint = Endpoint(method="PUT", path="/profile")
    await PrivilegeEscalationProbe().run(TARGET, endpoint, None, session)

    bodies = [json.loads(r.content) if r.content else None for r in transport.requests]
    assert bodies[0] == {}
    assert bodies[1]["isAdmin"] is True


async def test_privilege_escalation_uses_caller_credentials(make_session, ok_handler):
    session, transport = make_session(ok_handler)
    auth = AuthConfig(type=AuthType.BEARER, token="user-token")
    endpoint = Endpoint(method="GET", path="/profile")
    await PrivilegeEscalationProbe().run(TARGET, endpoint, auth, session)

    assert all(r.headers["Authorization"] == "Bearer user-token" for r in transport.requests)


async def test_api_key_lint_flags_everything(make_session, ok_handler):
    session, transport = make_session(ok_handler)
    auth = AuthConfig(
        type=AuthType.API_KEY, api_key="apikey1", api_key_location=ApiKeyLocation.QUERY,
    )
    findings = await ApiKeyLintProbe().run(TARGET, None, auth, session)

    assert [f.type for f in findings] == [
        FindingType.API_KEY_INSECURE,
        FindingType.API_KEY_WEAK,
        FindingType.API_KEY_PREDICTABLE,
    ]
    assert findings[2].severity == SeverityLevel.HIGH
    assert findings[2].evidence.detail["patterns"] == ["api", "key"]
    assert transport.requests == []


async def test_api_key_lint_accepts_strong_header_key(make_session, ok_handler):
    session, _ = make_session(ok_handler)
    auth = AuthConfig(type=AuthType.API_KEY, api_key="f3a9c1d27b8e4a6f9d0c")
    assert await ApiKeyLintProbe().run(TARGET, None, auth, session) == []


async def test_api_key_lint_ignores_other_auth(make_session, ok_handler):
    session, _ = make_session(ok_handler)
    auth = AuthConfig(type=AuthType.BEARER, token="abc")
    assert await ApiKeyLintProbe().run(TARGET, None, auth, session) == []


def _none_accepting_handler(request):
    header = request.headers.get("Authorization", "")
    if not header:
        return httpx.Response(401, json={"error": "unauthorized"})
    token = header.split(" ", 1)[1]
    if jwt.decode(token).header.get("alg") == "none":
        return httpx.Response(200, json={"id": 1})
    return httpx.Response(401)


async def test_jwt_bypass_detected(make_session):
    session, transport = make_session(_none_accepting_handler)
    auth = AuthConfig(type=AuthType.BEARER, token=jwt.sign({"sub": "1"}, "q8#Lw!2rT9zV0mXe"))
    findings = await JwtBypassProbe().run(TARGET, PROTECTED, auth, session)

    assert len(findings) == 1
    assert findings[0].type == FindingType.JWT_SIGNATURE_BYPASS
    assert findings[0].severity == SeverityLevel.CRITICAL
    assert len(transport.requests) == 2


async def test_jwt_bypass_requires_rejected_baseline(make_session, ok_handler):
    session, transport = make_session(ok_handler)
    auth = AuthConfig(type=AuthType.BEARER, token=jwt.sign({"sub": "1"}, "q8#Lw!2rT9zV0mXe"))

    assert await JwtBypassProbe().run(TARGET, PROTECTED, auth, session) == []
    assert len(transport.requests) == 1


async def test_jwt_bypass_without_jwt_sends_nothing(make_session, ok_handler):
    session, transport = make_session(ok_handler)
    auth = AuthConfig(type=AuthType.BEARER, token="opaque")

    assert await JwtBypassProbe().run(TARGET, PROTECTED, auth, session) == []
    assert transport.requests == []
