"""Credential injection for outbound probe requests."""

import base64
from dataclasses import dataclass, field
from typing import Dict, Optional

from apiprobe.config import ApiKeyLocation, AuthConfig, AuthType
from apiprobe.errors import ConfigurationError


@dataclass
class AuthContext:
    """Headers and query parameters that carry the caller's credentials."""

    headers: Dict[str, str] = field(default_factory=dict)
    params: Dict[str, str] = field(default_factory=dict)
    cookies: Dict[str, str] = field(default_factory=dict)


class Authenticator:
    """Builds an AuthContext from an AuthConfig variant.

    Credentials are supplied by the caller; nothing is fetched from the target.
    """

    def authenticate(self, config: Optional[AuthConfig]) -> AuthContext:
        """Resolve credentials, raising ConfigurationError on missing fields."""
        if config is None:
            return AuthContext()

        auth_type = config.type or AuthType.NONE

        if auth_type == AuthType.NONE:
            context = AuthContext()
        elif auth_type == AuthType.BASIC:
            context = self._auth_basic(config)
        elif auth_type == AuthType.BEARER:
            context = self._auth_bearer(config)
        elif auth_type == AuthType.API_KEY:
            context = self._auth_api_key(config)
        elif auth_type == AuthType.OAUTH:
            context = self._auth_oauth(config)
        else:
            raise ConfigurationError(f"Unknown auth type: {auth_type}")

        return self._apply_extra_headers(context, config.headers)

    def _auth_basic(self, config: AuthConfig) -> AuthContext:
        """HTTP Basic Authentication."""
        if not config.username:
            raise ConfigurationError("Username required for Basic auth")

        credentials = base64.b64encode(
            f"{config.username}:{config.password or ''}".encode()
        ).decode()
        return AuthContext(headers={"Authorization": f"Basic {credentials}"})

    def _auth_bearer(self, config: AuthConfig) -> AuthContext:
        """Bearer token authentication."""
        if not config.token:
            raise ConfigurationError("Token required for Bearer auth")
        return AuthContext(headers={"Authorization": f"Bearer {config.token}"})

    def _auth_api_key(self, config: AuthConfig) -> AuthContext:
        if not config.api_key:
            raise ConfigurationError("api_key required for apiKey auth")
        if config.api_key_location == ApiKeyLocation.QUERY:
            return AuthContext(params={config.api_key_name: config.api_key})
        return AuthContext(headers={config.api_key_name: config.api_key})

    def _auth_oauth(self, config: AuthConfig) -> AuthContext:
        """OAuth access token obtained by the caller."""
        if not config.token:
            raise ConfigurationError("Access token required for OAuth auth")
        token_type = config.token_type or "Bearer"
        return AuthContext(headers={"Authorization": f"{token_type} {config.token}"})

    def _apply_extra_headers(self, context: AuthContext, extra: Dict[str, str]) -> AuthContext:
        if not extra:
            return context

        headers = dict(context.headers)
        headers.update(extra)

        cookies = dict(context.cookies)
        if "Cookie" in headers:
            cookie_str = headers.pop("Cookie")
            for pair in cookie_str.split(";"):
                pair = pair.strip()
                if "=" in pair:
                    k, v = pair.split("=", 1)
                    cookies[k.strip()] = v.strip()

        return AuthContext(headers=headers, params=dict(context.params), cookies=cookies)
