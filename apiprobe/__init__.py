"""apiprobe - Black-box API vulnerability scanner.

Independent probes exercise a target HTTP API and report normalized,
severity-ranked findings:
- Missing authentication, privilege escalation and object-level authorization
- JWT and API key weaknesses
- Injection fuzzing with per-category response oracles
- CORS misconfiguration and missing rate limiting
"""

__version__ = "0.1.0"

# Core models
from apiprobe.config import (
    AuthConfig,
    AuthType,
    CorsResult,
    Endpoint,
    Finding,
    FindingType,
    Payload,
    PayloadCategory,
    RateLimitResult,
    ScanConfig,
    ScanOptions,
    ScanResult,
    SeverityLevel,
    TargetConfig,
    TokenAnalysis,
    load_openapi,
)

from apiprobe.errors import (
    ConfigurationError,
    ScanCancelled,
    ScannerError,
    UnknownCategoryError,
    UnknownProbeError,
)

# Entry points
from apiprobe.api import (
    analyze_token,
    batch_fuzz,
    cancel_scan,
    check_cors,
    check_parameter_tampering,
    check_rate_limit,
    fuzz_endpoint,
    start_scan,
    try_payload,
)

from apiprobe.scanner import ScanEvent, ScanOrchestrator, run_scan

__all__ = [
    # Version
    "__version__",
    # Config
    "AuthConfig",
    "AuthType",
    "CorsResult",
    "Endpoint",
    "Finding",
    "FindingType",
    "Payload",
    "PayloadCategory",
    "RateLimitResult",
    "ScanConfig",
    "ScanOptions",
    "ScanResult",
    "SeverityLevel",
    "TargetConfig",
    "TokenAnalysis",
    "load_openapi",
    # Errors
    "ConfigurationError",
    "ScanCancelled",
    "ScannerError",
    "UnknownCategoryError",
    "UnknownProbeError",
    # Entry points
    "analyze_token",
    "batch_fuzz",
    "cancel_scan",
    "check_cors",
    "check_parameter_tampering",
    "check_rate_limit",
    "fuzz_endpoint",
    "start_scan",
    "try_payload",
    # Engine
    "ScanEvent",
    "ScanOrchestrator",
    "run_scan",
]
