import pytest
from pydantic import ValidationError

from apiprobe.config import (
    AuthType,
    Endpoint,
    Parameter,
    ParameterLocation,
    ScanConfig,
    ScanOptions,
    TargetConfig,
    join_url,
)


def test_endpoint_normalization():
    endpoint = Endpoint(method=" post ", path="users")
    assert endpoint.method == "POST"
    assert endpoint.path == "/users"
    assert endpoint.label == "POST /users"
    assert not endpoint.is_read_only


def test_empty_path_rejected():
    with pytest.raises(ValidationError):
        Endpoint(path="  ")


def test_placeholders_resolved():
    endpoint = Endpoint(
        path="/orgs/{org}/users/:id/:idx",
        parameters=[Parameter(name="org", location=ParameterLocation.PATH, example="acme")],
    )

    assert [p.name for p in endpoint.path_parameters()] == ["org", "id", "idx"]
    assert endpoint.resolve_path() == "/orgs/acme/users/1/1"
    assert endpoint.resolve_path({"id": "42"}) == "/orgs/acme/users/42/1"
    assert endpoint.path == "/orgs/{org}/users/:id/:idx"


def test_target_url_for():
    target = TargetConfig(base_url="http://api.test/v1/")
    assert target.url_for(Endpoint(path="/users/:id")) == "http://api.test/v1/users/1"
    assert join_url("http://api.test", "") == "http://api.test"


def test_options_bounds():
    with pytest.raises(ValidationError):
        ScanOptions(parallel=0)
    with pytest.raises(ValidationError):
        ScanOptions(timeout=0)
    assert ScanOptions().categories == ["injection", "xss"]


def test_scan_config_from_yaml(tmp_path):
    path = tmp_path / "scan.yaml"
    path.write_text(
        "target:\n"
        "  base_url: http://api.test\n"
        "  authentication:\n"
        "    type: bearer\n"
        "    token: abc\n"
        "endpoints:\n"
        "  - method: get\n"
        "    path: /users/{id}\n"
        "    requires_auth: true\n"
        "options:\n"
        "  categories: [xss]\n"
        "  parallel: 2\n"
    )

    config = ScanConfig.from_yaml(path)
    assert config.target.authentication.type == AuthType.BEARER
    assert config.endpoints[0].label == "GET /users/{id}"
    assert config.endpoints[0].requires_auth
    assert config.options.parallel == 2


def test_empty_yaml_rejected(tmp_path):
    path = tmp_path / "scan.yaml"
    path.write_text("")
    with pytest.raises(ValueError):
        ScanConfig.from_yaml(path)


@pytest.mark.parametrize("content", ["- target\n- endpoints\n", "just a string\n"])
def test_non_mapping_yaml_rejected(tmp_path, content):
    path = tmp_path / "scan.yaml"
    path.write_text(content)
    with pytest.raises(ValueError, match="mapping"):
        ScanConfig.from_yaml(path)
