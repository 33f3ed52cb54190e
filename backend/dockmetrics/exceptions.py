"""Custom exceptions for dockmetrics."""

from typing import Optional


class RuntimeUnavailable(Exception):
    """Raised when a host's Docker runtime cannot be reached.

    Fatal to the current poll of that host only. The collection loop
    records it against the host and moves on.
    """

    def __init__(self, host_id: str, detail: str):
        self.host_id = host_id
        self.detail = detail
        super().__init__(f"Docker runtime on host '{host_id}' is unavailable: {detail}")


class ContainerNotFound(Exception):
    """Raised when a container disappeared or never existed on a host."""

    def __init__(self, container_id: str, host_id: Optional[str] = None):
        self.container_id = container_id
        self.host_id = host_id
        super().__init__(f"Container '{container_id}' not found")


class HostNotFound(Exception):
    """Raised when a host id is not present in the registry."""

    def __init__(self, host_id: str):
        self.host_id = host_id
        super().__init__(f"Host '{host_id}' not found")


class InvalidControlAction(ValueError):
    """Raised for a control action outside start/stop/restart/pause/unpause."""

    def __init__(self, action: str):
        self.action = action
        super().__init__(f"Unsupported container action '{action}'")


class ProxyTargetRejected(Exception):
    """Raised when a proxy target URL fails validation.

    ``status_code`` is 400 for malformed URLs and disallowed schemes, 403 for
    origins outside the allow-list.
    """

    def __init__(self, message: str, status_code: int = 400):
        self.status_code = status_code
        super().__init__(message)


class ProxyUpstreamUnreachable(Exception):
    """Raised when the proxy cannot connect to the upstream target."""

    def __init__(self, url: str, detail: str):
        self.url = url
        self.detail = detail
        super().__init__(f"Failed to connect to {url}: {detail}")
