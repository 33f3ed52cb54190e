"""Input sanitization for logs and host endpoints."""

import re
from typing import Union
from urllib.parse import urlparse

DOCKER_URL_SCHEMES = ("unix", "npipe", "tcp", "http", "https", "ssh")

_CONTROL_CHARS = re.compile(r"[\n\r\t\x00-\x1f\x7f-\x9f]")


def sanitize_log_message(msg: Union[str, bytes, int, float, None]) -> str:
    """Strip newlines and control characters from user-controlled log text.

    Examples:
        >>> sanitize_log_message("proxy\\ninjected")
        'proxyinjected'
    """
    if msg is None:
        return ""
    if isinstance(msg, bytes):
        msg = msg.decode("utf-8", errors="replace")
    return _CONTROL_CHARS.sub("", str(msg))


def validate_docker_url(url: str) -> str:
    """Validate and normalize a Docker endpoint URL.

    Accepts unix/npipe sockets and tcp/http/https/ssh endpoints. Trailing
    slashes are removed.

    Raises:
        ValueError: If the URL is empty, has an unsupported scheme, or a
            network scheme without a host
    """
    candidate = (url or "").strip().rstrip("/")
    if not candidate:
        raise ValueError("Host URL cannot be empty")

    parsed = urlparse(candidate)
    if parsed.scheme not in DOCKER_URL_SCHEMES:
        raise ValueError(
            f"Unsupported host URL scheme '{parsed.scheme}'. "
            f"Allowed schemes: {', '.join(DOCKER_URL_SCHEMES)}"
        )
    if parsed.scheme not in ("unix", "npipe") and not parsed.hostname:
        raise ValueError("Host URL must include a hostname")
    return candidate
