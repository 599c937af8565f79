"""JWT helpers for token analysis.

Decodes tokens without checking signatures, verifies HMAC signatures against
candidate secrets and forges ``alg=none`` copies for signature bypass tests.
"""

import base64
import hashlib
import hmac
import json
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

# Tried in order; the first secret that verifies is reported.
WEAK_SECRETS = (
    "secret",
    "password",
    "123456",
    "admin",
    "root",
    "password123",
    "admin123",
    "key",
    "jwt",
    "token",
    "secretkey",
    "secret_key",
    "jwt-secret",
    "jsonwebtoken",
    "your-256-bit-secret",
    "changeme",
    "",
)

HMAC_ALGORITHMS = {
    "HS256": hashlib.sha256,
    "HS384": hashlib.sha384,
    "HS512": hashlib.sha512,
}


class TokenDecodeError(ValueError):
    """Raised when a token is not a decodable JWT."""


@dataclass(frozen=True)
class DecodedToken:
    header: Dict[str, Any]
    claims: Dict[str, Any]
    signing_input: str
    signature: str

    @property
    def algorithm(self) -> Optional[str]:
        alg = self.header.get("alg")
        return str(alg) if alg is not None else None

    @property
    def is_hmac(self) -> bool:
        return (self.algorithm or "").upper() in HMAC_ALGORITHMS


def _add_padding(b64: str) -> str:
    """Add padding to base64 string if needed."""
    padding = 4 - len(b64) % 4
    if padding != 4:
        return b64 + "=" * padding
    return b64


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode().rstrip("=")


def _encode_segment(data: Dict[str, Any]) -> str:
    return _b64encode(json.dumps(data, separators=(",", ":")).encode())


def _decode_segment(segment: str, name: str) -> Dict[str, Any]:
    try:
        raw = base64.urlsafe_b64decode(_add_padding(segment))
        value = json.loads(raw)
    except (ValueError, UnicodeDecodeError) as e:
        raise TokenDecodeError(f"Failed to decode JWT {name}: {e}") from e
    if not isinstance(value, dict):
        raise TokenDecodeError(f"JWT {name} is not a JSON object")
    return value


def looks_like_jwt(token: Optional[str]) -> bool:
    return bool(token) and token.count(".") == 2


def decode(token: str) -> DecodedToken:
    """Decode JWT header and claims without verifying the signature."""
    if not token:
        raise TokenDecodeError("Empty token")

    parts = token.strip().split(".")
    if len(parts) != 3:
        raise TokenDecodeError(f"Invalid JWT token: expected 3 parts, got {len(parts)}")

    header_b64, claims_b64, signature = parts
    return DecodedToken(
        header=_decode_segment(header_b64, "header"),
        claims=_decode_segment(claims_b64, "claims"),
        signing_input=f"{header_b64}.{claims_b64}",
        signature=signature,
    )


def _hmac_signature(signing_input: str, secret: str, algorithm: str) -> str:
    hash_func = HMAC_ALGORITHMS[algorithm.upper()]
    digest = hmac.new(secret.encode(), signing_input.encode(), hash_func).digest()
    return _b64encode(digest)


def sign(claims: Dict[str, Any], secret: str, algorithm: str = "HS256",
         header: Optional[Dict[str, Any]] = None) -> str:
    """Build an HMAC-signed token."""
    if algorithm.upper() not in HMAC_ALGORITHMS:
        raise ValueError(f"Unsupported signing algorithm: {algorithm}")
    full_header = {"alg": algorithm, "typ": "JWT"}
    full_header.update(header or {})
    signing_input = f"{_encode_segment(full_header)}.{_encode_segment(claims)}"
    return f"{signing_input}.{_hmac_signature(signing_input, secret, algorithm)}"


def verify(token: str, secret: str) -> bool:
    """Check an HMAC signature. Non-HMAC and undecodable tokens never verify."""
    try:
        decoded = decode(token)
    except TokenDecodeError:
        return False
    return _verify_decoded(decoded, secret)


def _verify_decoded(decoded: DecodedToken, secret: str) -> bool:
    if not decoded.is_hmac:
        return False
    expected = _hmac_signature(decoded.signing_input, secret, decoded.algorithm)
    return hmac.compare_digest(expected.encode(), decoded.signature.encode("utf-8", "surrogateescape"))


def find_weak_secret(decoded: DecodedToken, candidates: Iterable[str] = WEAK_SECRETS) -> Optional[str]:
    """Return the first candidate secret that verifies the token."""
    if not decoded.is_hmac:
        return None
    for secret in candidates:
        if _verify_decoded(decoded, secret):
            return secret
    return None


def forge_none_algorithm(token: str) -> str:
    """Re-encode the token with ``alg=none`` and an empty signature."""
    decoded = decode(token)
    header = dict(decoded.header)
    header["alg"] = "none"
    return f"{_encode_segment(header)}.{decoded.signing_input.split('.')[1]}."
