"""Configuration and result models for apiprobe.

This package re-exports all commonly used classes for convenient importing.
"""

# Common enumerations
from apiprobe.config.common import (
    ApiKeyLocation,
    AuthType,
    FindingCategory,
    FindingType,
    OWASPApiCategory,
    ParameterLocation,
    PayloadCategory,
    SeverityLevel,
)

# Target configuration
from apiprobe.config.target import (
    AuthConfig,
    Endpoint,
    Parameter,
    TargetConfig,
    join_url,
)

# OpenAPI import
from apiprobe.config.openapi import ApiDocument, load_openapi, parse_openapi

# Probe records and evidence
from apiprobe.config.probe import (
    ConfigEvidence,
    CorsEvidence,
    Evidence,
    HttpEvidence,
    ProbeRequest,
    ProbeResponse,
    RateLimitEvidence,
    TokenEvidence,
)

# Scan options and results
from apiprobe.config.scan import (
    CorsResult,
    EndpointFuzzResult,
    Finding,
    Payload,
    PayloadResult,
    RateLimitResult,
    ScanConfig,
    ScanOptions,
    ScanResult,
    TokenAnalysis,
    severity_counts,
)

__all__ = [
    # Enums
    "ApiKeyLocation",
    "AuthType",
    "FindingCategory",
    "FindingType",
    "OWASPApiCategory",
    "ParameterLocation",
    "PayloadCategory",
    "SeverityLevel",
    # Target
    "AuthConfig",
    "Endpoint",
    "Parameter",
    "TargetConfig",
    "join_url",
    # OpenAPI
    "ApiDocument",
    "load_openapi",
    "parse_openapi",
    # Probe records
    "ConfigEvidence",
    "CorsEvidence",
    "Evidence",
    "HttpEvidence",
    "ProbeRequest",
    "ProbeResponse",
    "RateLimitEvidence",
    "TokenEvidence",
    # Scan
    "CorsResult",
    "EndpointFuzzResult",
    "Finding",
    "Payload",
    "PayloadResult",
    "RateLimitResult",
    "ScanConfig",
    "ScanOptions",
    "ScanResult",
    "TokenAnalysis",
    "severity_counts",
]
