"""HTTP transport for probes."""

from apiprobe.http.client import DEFAULT_TIMEOUT, HttpProbeClient

__all__ = [
    "DEFAULT_TIMEOUT",
    "HttpProbeClient",
]
