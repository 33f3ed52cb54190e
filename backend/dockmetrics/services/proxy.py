"""Cross-origin proxy for dashboard requests to per-host agents."""

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, List, Mapping, Optional, Tuple

import httpx

from dockmetrics.exceptions import ProxyUpstreamUnreachable
from dockmetrics.services import metrics
from dockmetrics.utils.security import sanitize_log_message
from dockmetrics.utils.url_validation import AllowedOrigin, validate_proxy_target

logger = logging.getLogger(__name__)

HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailers",
        "transfer-encoding",
        "upgrade",
    }
)

# Recomputed by the HTTP client and server on each side
_RECOMPUTED_HEADERS = frozenset({"host", "content-length"})


def filter_headers(headers: Iterable[Tuple[str, str]]) -> List[Tuple[str, str]]:
    """Drop hop-by-hop headers, including any named in ``Connection``."""
    items = list(headers)
    extra = set()
    for name, value in items:
        if name.lower() == "connection":
            extra.update(token.strip().lower() for token in value.split(",") if token.strip())

    return [
        (name, value)
        for name, value in items
        if name.lower() not in HOP_BY_HOP_HEADERS
        and name.lower() not in _RECOMPUTED_HEADERS
        and name.lower() not in extra
    ]


@dataclass(frozen=True)
class ProxyResponse:
    status_code: int
    headers: List[Tuple[str, str]]
    content: bytes


class ProxyService:
    """Forwards requests to allow-listed http(s) targets with httpx.

    ``allowed_origins`` is called per request so hosts added to the
    registry become reachable without a restart.
    """

    def __init__(
        self,
        allowed_origins: Callable[[], List[AllowedOrigin]],
        allow_any: bool = False,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.allowed_origins = allowed_origins
        self.allow_any = allow_any
        self.timeout = timeout
        self._transport = transport

    async def forward(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str] | Iterable[Tuple[str, str]],
        body: bytes = b"",
    ) -> ProxyResponse:
        """Relay one request and return the upstream response verbatim.

        Raises:
            ProxyTargetRejected: If the URL is not an allowed http(s) target
            ProxyUpstreamUnreachable: If the upstream cannot be reached
        """
        validate_proxy_target(url, self.allowed_origins(), allow_any=self.allow_any)

        pairs = headers.items() if isinstance(headers, Mapping) else headers
        outbound = filter_headers(pairs)
        if method.upper() == "POST" and not any(k.lower() == "content-type" for k, _ in outbound):
            outbound.append(("Content-Type", "application/json"))

        async with httpx.AsyncClient(
            timeout=self.timeout, transport=self._transport, follow_redirects=False
        ) as client:
            request = client.build_request(method.upper(), url, headers=outbound, content=body)
            try:
                response = await client.send(request, stream=True)
            except httpx.TransportError as e:
                logger.error(
                    f"Proxy request to {sanitize_log_message(url)} failed: {type(e).__name__}: {e}"
                )
                metrics.proxy_requests_total.labels(method=method.upper(), outcome="unreachable").inc()
                raise ProxyUpstreamUnreachable(url, str(e) or type(e).__name__) from e

            try:
                # Raw bytes keep any Content-Encoding intact
                content = b"".join([chunk async for chunk in response.aiter_raw()])
            except httpx.TransportError as e:
                metrics.proxy_requests_total.labels(method=method.upper(), outcome="unreachable").inc()
                raise ProxyUpstreamUnreachable(url, str(e) or type(e).__name__) from e
            finally:
                await response.aclose()

        metrics.proxy_requests_total.labels(method=method.upper(), outcome="relayed").inc()
        return ProxyResponse(
            status_code=response.status_code,
            headers=filter_headers(response.headers.multi_items()),
            content=content,
        )
