"""Target, endpoint and authentication configuration models."""

import re
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from apiprobe.config.common import ApiKeyLocation, AuthType, ParameterLocation


class AuthConfig(BaseModel):
    """Authentication configuration.

    One model covers every variant; ``type`` selects which fields apply:

    - bearer: ``token``
    - basic: ``username`` / ``password``
    - apiKey: ``api_key``, ``api_key_location``, ``api_key_name``
    - oauth: ``token`` (access token) and ``token_type``
    """

    type: AuthType = AuthType.NONE
    token: Optional[str] = None
    token_type: str = "Bearer"
    username: Optional[str] = None
    password: Optional[str] = None
    api_key: Optional[str] = None
    api_key_location: ApiKeyLocation = ApiKeyLocation.HEADER
    api_key_name: str = "X-API-Key"
    headers: Dict[str, str] = Field(default_factory=dict)

    model_config = {"frozen": True}

    @property
    def bearer_token(self) -> Optional[str]:
        """Token carried in an Authorization header, if any."""
        if self.type in (AuthType.BEARER, AuthType.OAUTH):
            return self.token or None
        return None


class Parameter(BaseModel):
    """A declared endpoint parameter."""

    name: str
    location: ParameterLocation = ParameterLocation.QUERY
    example: Optional[str] = None
    required: bool = False

    model_config = {"frozen": True}


# Matches both ``:id`` and ``{id}`` placeholders
_PLACEHOLDER = r"(?::{name}(?![\w])|\{{{name}\}})"
_ANY_PLACEHOLDER = re.compile(r":([A-Za-z_]\w*)|\{([A-Za-z_]\w*)\}")


class Endpoint(BaseModel):
    """An API operation under test.

    ``path`` keeps its placeholders; findings always reference the
    unsubstituted form through ``label``.
    """

    method: str = "GET"
    path: str
    parameters: List[Parameter] = Field(default_factory=list)
    requires_auth: bool = False

    model_config = {"frozen": True}

    @field_validator("method")
    @classmethod
    def _upper_method(cls, value: str) -> str:
        value = value.strip().upper()
        if not value:
            raise ValueError("method must not be empty")
        return value

    @field_validator("path")
    @classmethod
    def _check_path(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("path must not be empty")
        if not value.startswith("/"):
            value = "/" + value
        return value

    @property
    def label(self) -> str:
        return f"{self.method} {self.path}"

    @property
    def is_read_only(self) -> bool:
        """Payloads go in the query string for these methods."""
        return self.method in ("GET", "DELETE")

    def path_parameters(self) -> List[Parameter]:
        """Declared path parameters plus any undeclared placeholders."""
        declared = [p for p in self.parameters if p.location == ParameterLocation.PATH]
        names = {p.name for p in declared}
        for match in _ANY_PLACEHOLDER.finditer(self.path):
            name = match.group(1) or match.group(2)
            if name not in names:
                declared.append(Parameter(name=name, location=ParameterLocation.PATH))
                names.add(name)
        return declared

    def resolve_path(self, overrides: Optional[Dict[str, str]] = None) -> str:
        """Substitute path placeholders.

        Overrides win; otherwise the parameter example is used, falling back to ``1``.
        """
        overrides = overrides or {}
        path = self.path
        for param in self.path_parameters():
            value = overrides.get(param.name, param.example if param.example is not None else "1")
            pattern = _PLACEHOLDER.format(name=re.escape(param.name))
            path = re.sub(pattern, lambda _m, v=str(value): v, path)
        return path


class TargetConfig(BaseModel):
    """Target application configuration."""

    base_url: str
    name: str = "target"
    authentication: AuthConfig = Field(default_factory=AuthConfig)

    model_config = {"frozen": True}

    def url_for(self, endpoint: Endpoint, overrides: Optional[Dict[str, str]] = None) -> str:
        return join_url(self.base_url, endpoint.resolve_path(overrides))


def join_url(base_url: str, path: str) -> str:
    if not path:
        return base_url
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"
