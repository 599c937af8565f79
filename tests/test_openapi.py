import json

import pytest

from apiprobe.config import ParameterLocation, ScanConfig, load_openapi, parse_openapi
from apiprobe.errors import ConfigurationError

SHOP = """\
openapi: 3.0.3
info:
  title: Shop
  version: "2.1"
servers:
  - url: https://shop.test/v1
security:
  - bearerAuth: []
components:
  securitySchemes:
    bearerAuth: {type: http, scheme: bearer}
  parameters:
    OrderId:
      name: id
      in: path
      required: true
      schema: {type: integer, example: 42}
paths:
  /orders/{id}:
    parameters:
      - "$ref": "#/components/parameters/OrderId"
    get:
      parameters:
        - {name: expand, in: query, example: items}
    delete: {}
  /health:
    get:
      security: []
  /orders:
    post:
      requestBody:
        content:
          application/json:
            schema:
              type: object
              required: [sku]
              properties:
                sku: {type: string, example: A-1}
                qty: {type: integer}
            example: {qty: 3}
"""

LEGACY = {
    "swagger": "2.0",
    "info": {"title": "Legacy", "version": "1"},
    "host": "legacy.test",
    "basePath": "/api",
    "schemes": ["http"],
    "securityDefinitions": {"key": {"type": "apiKey", "name": "X-Key", "in": "header"}},
    "paths": {
        "/users/{userId}": {
            "get": {
                "security": [{"key": []}],
                "parameters": [
                    {"name": "userId", "in": "path", "type": "string", "x-example": "u1"},
                    {"name": "X-Trace", "in": "header", "type": "string"},
                ],
            },
        },
    },
}


def _write(tmp_path, name, text):
    path = tmp_path / name
    path.write_text(text)
    return path


def test_openapi3_operations_become_endpoints(tmp_path):
    document = load_openapi(_write(tmp_path, "shop.yaml", SHOP))

    assert document.title == "Shop"
    assert document.version == "2.1"
    assert document.base_url == "https://shop.test/v1"
    assert "bearerAuth" in document.security_schemes
    assert [e.label for e in document.endpoints] == [
        "GET /orders/{id}",
        "DELETE /orders/{id}",
        "GET /health",
        "POST /orders",
    ]


def test_parameters_and_examples(tmp_path):
    get_order, delete_order, _, create_order = load_openapi(_write(tmp_path, "shop.yaml", SHOP)).endpoints

    assert [(p.name, p.location) for p in get_order.parameters] == [
        ("id", ParameterLocation.PATH),
        ("expand", ParameterLocation.QUERY),
    ]
    assert get_order.resolve_path() == "/orders/42"
    assert [p.name for p in delete_order.parameters] == ["id"]

    body = {p.name: p for p in create_order.parameters}
    assert body["sku"].location == ParameterLocation.BODY
    assert body["sku"].example == "A-1"
    assert body["sku"].required
    assert body["qty"].example == "3"
    assert not body["qty"].required


def test_security_requirements(tmp_path):
    endpoints = load_openapi(_write(tmp_path, "shop.yaml", SHOP)).endpoints
    assert [e.requires_auth for e in endpoints] == [True, True, False, True]


def test_swagger2_json(tmp_path):
    document = load_openapi(_write(tmp_path, "legacy.json", json.dumps(LEGACY)))

    assert document.base_url == "http://legacy.test/api"
    assert "key" in document.security_schemes
    (endpoint,) = document.endpoints
    assert endpoint.requires_auth
    assert endpoint.resolve_path() == "/users/u1"
    assert endpoint.parameters[1].location == ParameterLocation.HEADER


@pytest.mark.parametrize("document", [
    ["not", "a", "mapping"],
    {"info": {}, "paths": {}},
    {"openapi": "3.0.0", "info": {}},
])
def test_invalid_documents(document):
    with pytest.raises(ConfigurationError):
        parse_openapi(document)


def test_missing_and_unparsable_files(tmp_path):
    with pytest.raises(ConfigurationError):
        load_openapi(tmp_path / "missing.yaml")
    with pytest.raises(ConfigurationError):
        load_openapi(_write(tmp_path, "broken.yaml", "openapi: [unclosed"))


def test_scan_file_imports_openapi(tmp_path):
    _write(tmp_path, "shop.yaml", SHOP)
    config_path = _write(
        tmp_path,
        "scan.yaml",
        "target:\n"
        "  base_url: https://shop.test/v1\n"
        "openapi: shop.yaml\n"
        "endpoints:\n"
        "  - method: GET\n"
        "    path: /status\n",
    )

    config = ScanConfig.from_yaml(config_path)
    assert [e.label for e in config.endpoints] == [
        "GET /status",
        "GET /orders/{id}",
        "DELETE /orders/{id}",
        "GET /health",
        "POST /orders",
    ]
