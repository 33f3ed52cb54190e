"""Cross-origin proxy endpoint for the browser dashboard."""

from fastapi import APIRouter, Depends, Query, Request, Response

from dockmetrics.dependencies import get_proxy
from dockmetrics.services.proxy import ProxyService

router = APIRouter()


@router.api_route("/proxy", methods=["GET", "POST"], tags=["proxy"])
async def proxy_request(
    request: Request,
    url: str = Query("", description="Absolute http(s) target URL"),
    proxy: ProxyService = Depends(get_proxy),
) -> Response:
    """Forward the request to ``url`` and relay the upstream response."""
    body = await request.body()
    upstream = await proxy.forward(request.method, url, request.headers.items(), body)
    response = Response(content=upstream.content, status_code=upstream.status_code)
    for name, value in upstream.headers:
        response.headers.append(name, value)
    return response
