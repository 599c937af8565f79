"""Endpoint import from OpenAPI 3.x and Swagger 2.0 documents.

Documents are read with PyYAML, which also accepts JSON. Local ``$ref``
pointers (``#/components/...``, ``#/definitions/...``, ``#/parameters/...``)
are followed; remote references are left unresolved and ignored.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field

from apiprobe.config.common import ParameterLocation
from apiprobe.config.target import Endpoint, Parameter
from apiprobe.errors import ConfigurationError

HTTP_METHODS = ("get", "post", "put", "patch", "delete", "head", "options")

# Swagger 2.0 ``in`` values map onto the request body
_LOCATIONS = {
    "path": ParameterLocation.PATH,
    "query": ParameterLocation.QUERY,
    "header": ParameterLocation.HEADER,
    "body": ParameterLocation.BODY,
    "formData": ParameterLocation.BODY,
}

_MAX_REF_DEPTH = 16


class ApiDocument(BaseModel):
    """Endpoints and metadata extracted from an API description."""

    title: str = "API"
    version: str = "1.0"
    description: str = ""
    base_url: Optional[str] = None
    security_schemes: Dict[str, Any] = Field(default_factory=dict)
    endpoints: List[Endpoint] = Field(default_factory=list)


def _resolve(document: Dict[str, Any], node: Any) -> Any:
    """Follow local ``$ref`` pointers until a concrete node is reached."""
    for _ in range(_MAX_REF_DEPTH):
        if not isinstance(node, dict) or "$ref" not in node:
            return node
        ref = node["$ref"]
        if not isinstance(ref, str) or not ref.startswith("#/"):
            return {}
        target: Any = document
        for part in ref[2:].split("/"):
            part = part.replace("~1", "/").replace("~0", "~")
            if not isinstance(target, dict) or part not in target:
                return {}
            target = target[part]
        node = target
    return {}


def _example(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _parameter(document: Dict[str, Any], raw: Any) -> Optional[Parameter]:
    raw = _resolve(document, raw)
    if not isinstance(raw, dict) or not raw.get("name"):
        return None
    location = _LOCATIONS.get(raw.get("in"))
    if location is None:
        return None

    schema = _resolve(document, raw.get("schema")) or {}
    example = raw.get("example")
    if example is None:
        example = schema.get("example") if isinstance(schema, dict) else None
    if example is None:
        example = raw.get("x-example")

    return Parameter(
        name=str(raw["name"]),
        location=location,
        example=_example(example),
        required=bool(raw.get("required", location == ParameterLocation.PATH)),
    )


def _body_parameters(document: Dict[str, Any], request_body: Any) -> List[Parameter]:
    """Top-level JSON properties of an OpenAPI 3 request body."""
    request_body = _resolve(document, request_body)
    if not isinstance(request_body, dict):
        return []
    media = (request_body.get("content") or {}).get("application/json") or {}
    schema = _resolve(document, media.get("schema")) or {}
    properties = schema.get("properties") if isinstance(schema, dict) else None
    if not isinstance(properties, dict):
        return []

    body_example = media.get("example")
    if not isinstance(body_example, dict):
        body_example = {}
    required = set(schema.get("required") or [])

    params = []
    for name, prop in properties.items():
        prop = _resolve(document, prop)
        example = body_example.get(name)
        if example is None and isinstance(prop, dict):
            example = prop.get("example")
        params.append(Parameter(
            name=str(name),
            location=ParameterLocation.BODY,
            example=_example(example),
            required=name in required,
        ))
    return params


def _requires_auth(document: Dict[str, Any], operation: Dict[str, Any]) -> bool:
    # An operation-level ``security: []`` overrides the global requirement
    security = operation["security"] if "security" in operation else document.get("security")
    return any(bool(requirement) for requirement in security or [])


def _base_url(document: Dict[str, Any]) -> Optional[str]:
    servers = document.get("servers")
    if isinstance(servers, list) and servers and isinstance(servers[0], dict):
        url = servers[0].get("url")
        return str(url) if url else None

    host = document.get("host")
    if not host:
        return None
    schemes = document.get("schemes") or ["https"]
    scheme = "https" if "https" in schemes else schemes[0]
    return f"{scheme}://{host}{document.get('basePath', '')}".rstrip("/")


def parse_openapi(document: Any) -> ApiDocument:
    """Build an ApiDocument from a parsed OpenAPI or Swagger mapping.

    Raises ConfigurationError when the document is not a mapping, declares
    neither ``openapi`` nor ``swagger``, or has no ``paths``.
    """
    if not isinstance(document, dict):
        raise ConfigurationError("OpenAPI document must be a mapping")
    if "openapi" not in document and "swagger" not in document:
        raise ConfigurationError("Document is neither OpenAPI 3.x nor Swagger 2.0")
    paths = document.get("paths")
    if not isinstance(paths, dict):
        raise ConfigurationError("OpenAPI document must contain paths")

    info = document.get("info") or {}
    components = document.get("components") or {}
    endpoints = []

    for path, path_item in paths.items():
        path_item = _resolve(document, path_item)
        if not isinstance(path_item, dict):
            continue
        shared = path_item.get("parameters") or []

        for method in HTTP_METHODS:
            operation = path_item.get(method)
            if not isinstance(operation, dict):
                continue

            # Operation parameters override path-level ones with the same name and location
            merged: Dict[tuple, Parameter] = {}
            for raw in list(shared) + list(operation.get("parameters") or []):
                param = _parameter(document, raw)
                if param is not None:
                    merged[(param.name, param.location)] = param
            parameters = list(merged.values())
            parameters.extend(
                p for p in _body_parameters(document, operation.get("requestBody"))
                if (p.name, p.location) not in merged
            )

            endpoints.append(Endpoint(
                method=method,
                path=str(path),
                parameters=parameters,
                requires_auth=_requires_auth(document, operation),
            ))

    return ApiDocument(
        title=str(info.get("title") or "API"),
        version=str(info.get("version") or "1.0"),
        description=str(info.get("description") or ""),
        base_url=_base_url(document),
        security_schemes=components.get("securitySchemes") or document.get("securityDefinitions") or {},
        endpoints=endpoints,
    )


def load_openapi(path: Union[str, Path]) -> ApiDocument:
    """Load an OpenAPI/Swagger document from a JSON or YAML file."""
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"OpenAPI document not found: {path}")
    with open(path) as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse OpenAPI document {path}: {e}") from e
    return parse_openapi(data)
