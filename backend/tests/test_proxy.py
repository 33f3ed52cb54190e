"""Tests for the cross-origin proxy (dockmetrics/services/proxy.py, /proxy endpoint).

Tests:
- Scheme and allow-list rejection without any upstream call
- Hop-by-hop header stripping in both directions
- Body and method forwarding, default Content-Type for POST
- Structured 502 payload on connect failure
"""

import httpx
import pytest

from dockmetrics.exceptions import ProxyTargetRejected, ProxyUpstreamUnreachable
from dockmetrics.services.proxy import ProxyService, filter_headers
from dockmetrics.utils.url_validation import AllowedOrigin

AGENT_URL = "http://agent.lan:5000/api/metrics/containers?hostId=local"


@pytest.fixture
def proxy(upstream):
    return ProxyService(
        allowed_origins=lambda: [AllowedOrigin("agent.lan", 5000)],
        transport=httpx.MockTransport(upstream),
    )


class TestFilterHeaders:
    """Test suite for filter_headers()."""

    def test_strips_hop_by_hop_headers(self):
        headers = [
            ("Connection", "keep-alive"),
            ("Keep-Alive", "timeout=5"),
            ("Proxy-Authenticate", "Basic"),
            ("Proxy-Authorization", "Basic abc"),
            ("TE", "trailers"),
            ("Trailers", "Expires"),
            ("Transfer-Encoding", "chunked"),
            ("Upgrade", "websocket"),
            ("Host", "dashboard.lan"),
            ("Content-Length", "12"),
            ("Accept", "application/json"),
            ("X-Request-Id", "42"),
        ]

        assert filter_headers(headers) == [("Accept", "application/json"), ("X-Request-Id", "42")]

    def test_strips_headers_named_in_connection(self):
        headers = [("Connection", "close, X-Private"), ("X-Private", "1"), ("X-Public", "2")]

        assert filter_headers(headers) == [("X-Public", "2")]


class TestProxyService:
    """Test suite for ProxyService.forward()."""

    async def test_non_http_scheme_makes_no_upstream_call(self, proxy, upstream):
        with pytest.raises(ProxyTargetRejected) as exc_info:
            await proxy.forward("GET", "ftp://agent.lan:5000/file", {})

        assert exc_info.value.status_code == 400
        assert upstream.requests == []

    async def test_unlisted_origin_rejected(self, proxy, upstream):
        with pytest.raises(ProxyTargetRejected) as exc_info:
            await proxy.forward("GET", "http://elsewhere.lan/", {})

        assert exc_info.value.status_code == 403
        assert upstream.requests == []

    async def test_forwards_get_and_relays_response(self, proxy, upstream):
        upstream.handler = lambda request: httpx.Response(
            201,
            content=b'[{"containerId": "c1"}]',
            headers={"Content-Type": "application/json", "Keep-Alive": "timeout=5", "X-Agent": "1.0"},
        )

        response = await proxy.forward(
            "GET",
            AGENT_URL,
            {"Accept": "application/json", "Connection": "keep-alive", "Proxy-Authorization": "x"},
        )

        (sent,) = upstream.requests
        assert sent.method == "GET"
        assert str(sent.url) == AGENT_URL
        assert sent.headers["accept"] == "application/json"
        assert "proxy-authorization" not in sent.headers

        assert response.status_code == 201
        assert response.content == b'[{"containerId": "c1"}]'
        names = {name.lower() for name, _ in response.headers}
        assert "x-agent" in names
        assert "keep-alive" not in names
        assert "content-length" not in names

    async def test_post_forwards_body_with_default_content_type(self, proxy, upstream):
        await proxy.forward("POST", "http://agent.lan:5000/api/containers/c1/restart", {}, b"{}")

        (sent,) = upstream.requests
        assert sent.method == "POST"
        assert sent.content == b"{}"
        assert sent.headers["content-type"] == "application/json"

    async def test_post_keeps_explicit_content_type(self, proxy, upstream):
        await proxy.forward(
            "POST", "http://agent.lan:5000/x", {"Content-Type": "text/plain"}, b"hello"
        )

        assert upstream.requests[0].headers["content-type"] == "text/plain"

    async def test_connect_failure_raises_unreachable(self, proxy, upstream):
        def refuse(request):
            raise httpx.ConnectError("Connection refused", request=request)

        upstream.handler = refuse

        with pytest.raises(ProxyUpstreamUnreachable) as exc_info:
            await proxy.forward("GET", AGENT_URL, {})

        assert "Connection refused" in exc_info.value.detail

    async def test_allow_list_is_read_per_request(self, upstream):
        origins = []
        proxy = ProxyService(
            allowed_origins=lambda: list(origins), transport=httpx.MockTransport(upstream)
        )

        with pytest.raises(ProxyTargetRejected):
            await proxy.forward("GET", "http://new-agent.lan/", {})

        origins.append(AllowedOrigin("new-agent.lan"))
        response = await proxy.forward("GET", "http://new-agent.lan/", {})

        assert response.status_code == 200


class TestProxyEndpoint:
    """Test suite for GET|POST /proxy."""

    async def test_rejects_non_http_scheme(self, client, upstream):
        response = await client.get("/proxy", params={"url": "file:///etc/passwd"})

        assert response.status_code == 400
        assert "not allowed" in response.json()["error"]
        assert upstream.requests == []

    async def test_missing_url(self, client, upstream):
        response = await client.get("/proxy")

        assert response.status_code == 400
        assert upstream.requests == []

    async def test_unlisted_target_forbidden(self, client, upstream):
        response = await client.get("/proxy", params={"url": "http://10.1.1.1:8080/"})

        assert response.status_code == 403
        assert upstream.requests == []

    async def test_relays_upstream_response(self, client, upstream):
        upstream.handler = lambda request: httpx.Response(
            200, json={"hostname": "agent"}, headers={"X-Agent": "1.0"}
        )

        response = await client.get("/proxy", params={"url": "http://agent.lan:5000/api/info"})

        assert response.status_code == 200
        assert response.json() == {"hostname": "agent"}
        assert response.headers["x-agent"] == "1.0"

    async def test_relays_upstream_error_status(self, client, upstream):
        upstream.handler = lambda request: httpx.Response(404, json={"detail": "nope"})

        response = await client.get("/proxy", params={"url": "http://agent.lan:5000/missing"})

        assert response.status_code == 404
        assert response.json() == {"detail": "nope"}

    async def test_post_body_forwarded(self, client, upstream):
        response = await client.post(
            "/proxy",
            params={"url": "http://agent.lan:5000/api/containers/c1/stop"},
            content=b'{"timeout": 5}',
        )

        assert response.status_code == 200
        (sent,) = upstream.requests
        assert sent.method == "POST"
        assert sent.content == b'{"timeout": 5}'

    async def test_connect_failure_returns_structured_502(self, client, upstream):
        def refuse(request):
            raise httpx.ConnectError("Connection refused", request=request)

        upstream.handler = refuse

        response = await client.get("/proxy", params={"url": "http://agent.lan:5000/api/info"})

        assert response.status_code == 502
        body = response.json()
        assert body["error"] == "Failed to connect to agent"
        assert "Connection refused" in body["details"]
