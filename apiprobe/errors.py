"""Exceptions raised to callers of the scanner."""


class ScannerError(Exception):
    """Base class for apiprobe errors."""


class ConfigurationError(ScannerError, ValueError):
    """Invalid or incomplete caller input, raised before any network activity."""


class UnknownProbeError(ConfigurationError):
    """A probe name that is not registered."""

    def __init__(self, name: str, available=()):
        self.name = name
        message = f"Unknown probe: {name}"
        if available:
            message += f" (available: {', '.join(sorted(available))})"
        super().__init__(message)


class UnknownCategoryError(ConfigurationError):
    """A fuzzing payload category that does not exist."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown payload category: {name}")


class ScanCancelled(ScannerError):
    """Raised inside a scan once its cancellation signal is set."""

    def __init__(self, scan_id: str):
        self.scan_id = scan_id
        super().__init__(f"Scan {scan_id} cancelled")
