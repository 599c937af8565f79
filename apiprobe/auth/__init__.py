"""Credential handling and token helpers."""

from apiprobe.auth.authenticator import AuthContext, Authenticator

__all__ = [
    "AuthContext",
    "Authenticator",
]
