"""URL validation for the cross-origin proxy.

The proxy talks to agents on the operator's own network, so private
addresses are expected. Instead of blocking internal ranges, targets are
restricted to an allow-list built from registered host URLs and the
``PROXY_ALLOWED_ORIGINS`` setting.

An allow-list entry matches on hostname. When the entry carries an
explicit port the target port must match too. ``*`` allows any target.
"""

from typing import Iterable, NamedTuple, Optional
from urllib.parse import ParseResult, urlparse

from dockmetrics.exceptions import ProxyTargetRejected

PROXY_SCHEMES = ("http", "https")


class AllowedOrigin(NamedTuple):
    hostname: str
    port: Optional[int] = None


def _normalize_hostname(hostname: str) -> str:
    """Lowercase a hostname and convert IDN labels to punycode."""
    try:
        return hostname.encode("idna").decode("ascii").lower()
    except UnicodeError:
        raise ValueError(f"Invalid hostname: {hostname}")


def parse_allowed_origin(entry: str) -> Optional[AllowedOrigin]:
    """Parse an allow-list entry such as ``agent.lan``, ``http://10.0.0.5:5000``
    or ``tcp://docker-host:2375``.

    Returns None for entries without a hostname (unix sockets, blanks).
    """
    entry = entry.strip()
    if not entry:
        return None
    if "://" not in entry:
        entry = f"http://{entry}"

    parsed = urlparse(entry)
    if not parsed.hostname:
        return None
    try:
        port = parsed.port
        hostname = _normalize_hostname(parsed.hostname)
    except ValueError:
        return None
    # A Docker endpoint allows its whole host: agents listen on other ports
    if parsed.scheme in ("tcp", "ssh"):
        port = None
    return AllowedOrigin(hostname=hostname, port=port)


def build_allow_list(entries: Iterable[str]) -> list[AllowedOrigin]:
    origins = []
    for entry in entries:
        origin = parse_allowed_origin(entry)
        if origin is not None:
            origins.append(origin)
    return origins


def validate_proxy_target(
    url: str,
    allowed: Iterable[AllowedOrigin],
    allow_any: bool = False,
) -> ParseResult:
    """Validate a proxy target URL.

    Args:
        url: Absolute target URL
        allowed: Origins the proxy may reach
        allow_any: Skip the allow-list check (``*`` configured)

    Returns:
        Parsed URL if validation passes

    Raises:
        ProxyTargetRejected: 400 for malformed URLs and non-http(s) schemes,
            403 for targets outside the allow-list
    """
    if not url:
        raise ProxyTargetRejected("URL parameter is required", status_code=400)

    parsed = urlparse(url)
    if parsed.scheme not in PROXY_SCHEMES:
        raise ProxyTargetRejected(
            f"URL scheme '{parsed.scheme}' not allowed. "
            f"Allowed schemes: {', '.join(PROXY_SCHEMES)}",
            status_code=400,
        )
    if not parsed.hostname:
        raise ProxyTargetRejected("URL must include a hostname", status_code=400)

    try:
        hostname = _normalize_hostname(parsed.hostname)
        port = parsed.port or (443 if parsed.scheme == "https" else 80)
    except ValueError as e:
        raise ProxyTargetRejected(str(e), status_code=400)

    if allow_any:
        return parsed

    for origin in allowed:
        if origin.hostname == hostname and (origin.port is None or origin.port == port):
            return parsed

    raise ProxyTargetRejected(f"Target host '{hostname}' is not allowed", status_code=403)
