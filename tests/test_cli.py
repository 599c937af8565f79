import json

from typer.testing import CliRunner

from apiprobe.auth import jwt
from apiprobe.cli import app
from apiprobe.config import ScanResult

runner = CliRunner()

NONE_TOKEN = jwt.forge_none_algorithm(jwt.sign({"sub": "1"}, "q8#Lw!2rT9zV0mXe"))


def test_payloads_lists_categories():
    result = runner.invoke(app, ["payloads"])
    assert result.exit_code == 0
    assert "injection" in result.output
    assert "format-string" in result.output


def test_payloads_of_one_category():
    result = runner.invoke(app, ["payloads", "-c", "xss"])
    assert result.exit_code == 0
    assert "<script>alert('xss')</script>" in result.output


def test_unknown_payload_category():
    result = runner.invoke(app, ["payloads", "-c", "ldap"])
    assert result.exit_code == 2
    assert "Configuration error" in result.output


def test_probes_command():
    result = runner.invoke(app, ["probes"])
    assert result.exit_code == 0
    assert "missing_auth" in result.output


def test_token_with_none_algorithm(tmp_path):
    output = tmp_path / "token.json"
    result = runner.invoke(app, ["token", NONE_TOKEN, "-o", str(output)])

    assert result.exit_code == 1
    data = json.loads(output.read_text())
    assert [f["type"] for f in data["findings"]] == ["JWT_NONE_ALGORITHM"]


def test_clean_token_exits_zero():
    token = jwt.sign({"sub": "1"}, "q8#Lw!2rT9zV0mXe")
    result = runner.invoke(app, ["token", token, "--secret", "q8#Lw!2rT9zV0mXe"])

    assert result.exit_code == 0
    assert "valid" in result.output


def test_scan_rejects_invalid_url():
    result = runner.invoke(app, ["scan", "not-a-url", "-e", "GET /users"])
    assert result.exit_code == 2
    assert "Configuration error" in result.output


def test_scan_requires_endpoints():
    result = runner.invoke(app, ["scan", "http://api.test"])
    assert result.exit_code == 2


def test_scan_rejects_unknown_probe():
    result = runner.invoke(app, ["scan", "http://api.test", "-e", "GET /x", "-p", "nope"])
    assert result.exit_code == 2
    assert "Unknown probe" in result.output


def test_scan_file_with_bad_target(tmp_path):
    config = tmp_path / "scan.yaml"
    config.write_text(
        "target:\n"
        "  base_url: ftp://api.test\n"
        "endpoints:\n"
        "  - method: GET\n"
        "    path: /users/:id\n"
        "    requires_auth: true\n"
    )
    result = runner.invoke(app, ["scan", str(config)])
    assert result.exit_code == 2


def test_empty_scan_file(tmp_path):
    config = tmp_path / "scan.yml"
    config.write_text("")
    result = runner.invoke(app, ["scan", str(config)])
    assert result.exit_code == 2


def test_fuzz_rejects_malformed_payload_file_option():
    result = runner.invoke(app, ["fuzz", "http://api.test", "-e", "GET /x", "--payload-file", "extra.txt"])
    assert result.exit_code == 2
    assert "CATEGORY=PATH" in result.output


def test_fuzz_rejects_unknown_payload_file_category(tmp_path):
    path = tmp_path / "extra.txt"
    path.write_text("<b>x</b>\n")
    result = runner.invoke(app, ["fuzz", "http://api.test", "-e", "GET /x", "--payload-file", f"ldap={path}"])
    assert result.exit_code == 2


def test_scan_file_with_list_document(tmp_path):
    config = tmp_path / "scan.yaml"
    config.write_text("- http://api.test\n- GET /users\n")
    result = runner.invoke(app, ["scan", str(config)])
    assert result.exit_code == 2
    assert "Configuration error" in result.output


def test_scan_rejects_missing_openapi_file(tmp_path):
    result = runner.invoke(app, ["scan", "http://api.test", "--openapi", str(tmp_path / "missing.yaml")])
    assert result.exit_code == 2
    assert "OpenAPI document not found" in result.output


def test_scan_imports_openapi_endpoints(tmp_path, monkeypatch):
    document = tmp_path / "api.json"
    document.write_text(json.dumps({
        "openapi": "3.0.0",
        "info": {"title": "Test", "version": "1"},
        "paths": {"/users/{id}": {"get": {"security": [{"bearer": []}]}}},
    }))
    seen = {}

    async def fake_start_scan(target, endpoints, **kwargs):
        seen["endpoints"] = [e.label for e in endpoints]
        seen["requires_auth"] = [e.requires_auth for e in endpoints]
        return ScanResult(scan_id="s", target=target.base_url)

    monkeypatch.setattr("apiprobe.cli.start_scan", fake_start_scan)
    result = runner.invoke(app, ["scan", "http://api.test", "-e", "GET /health", "--openapi", str(document)])

    assert result.exit_code == 0
    assert seen == {"endpoints": ["GET /health", "GET /users/{id}"], "requires_auth": [False, True]}
