"""Logging and URL helpers shared by the scanner."""

import logging
from urllib.parse import urlparse


# Configure logging
def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the scanner.

    Args:
        verbose: Enable debug logging
    """
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )

    # Suppress noisy httpx logging
    logging.getLogger("httpx").setLevel(logging.WARNING)

    logger.setLevel(level)


logger = logging.getLogger("apiprobe")


def validate_url(url: str) -> tuple[bool, str]:
    """Validate URL format.

    Returns:
        (is_valid, error_message)
    """
    if not url:
        return False, "URL is required"
    try:
        parsed = urlparse(url)
    except ValueError as e:
        return False, f"Invalid URL: {e}"
    if not all([parsed.scheme, parsed.netloc]):
        return False, "URL must include scheme (http/https) and host"
    if parsed.scheme not in ("http", "https"):
        return False, "Only http and https schemes are supported"
    return True, ""


def sanitize_url(url: str) -> str:
    """Sanitize URL for logging (remove credentials)."""
    try:
        parsed = urlparse(url)
        if parsed.password:
            netloc = f"{parsed.username}:****@{parsed.hostname}"
            if parsed.port:
                netloc = f"{netloc}:{parsed.port}"
            return parsed._replace(netloc=netloc).geturl()
        return url
    except ValueError:
        return url
