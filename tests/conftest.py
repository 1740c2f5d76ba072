"""Shared test configuration for webtask-workflows tests.

Provides:
- A local HTTP server standing in for sibling webtasks (pytest-httpserver),
  with an echo webtask built on werkzeug request/response objects
- A recording httpx mock transport for fine-grained downstream behaviour
- Inbound request factories addressing either of them
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

import httpx
import pytest
from pytest_httpserver import HTTPServer
from werkzeug.wrappers import Request, Response

from webtask_workflows.config import WorkflowConfig
from webtask_workflows.engine import BufferedResponse, InboundRequest, UrlFormat

MOCK_HOST = "tasks.example.test"

Handler = Callable[[httpx.Request], Awaitable[httpx.Response]]


@dataclass
class RecordedCall:
    """One request seen by the mock transport."""

    method: str
    url: httpx.URL
    headers: httpx.Headers
    body: bytes

    @property
    def node(self) -> str:
        return self.url.path.rsplit("/", 1)[-1]

    def json(self) -> Any:
        return json.loads(self.body)


@dataclass
class TaskTransport:
    """Routes calls to per-node async handlers and records every request.

    Unrouted nodes answer 200 with an empty JSON object.
    """

    routes: dict[str, Handler] = field(default_factory=dict)
    calls: list[RecordedCall] = field(default_factory=list)

    def route(self, node: str, handler: Handler) -> None:
        self.routes[node] = handler

    def respond(
        self,
        node: str,
        status_code: int = 200,
        json_body: Any = None,
        headers: dict[str, str] | None = None,
        delay: float = 0.0,
    ) -> None:
        """Register a canned response for `node`, optionally delayed."""

        async def handler(_request: httpx.Request) -> httpx.Response:
            if delay:
                await asyncio.sleep(delay)
            return httpx.Response(
                status_code, json=json_body if json_body is not None else {}, headers=headers
            )

        self.route(node, handler)

    def fail(self, node: str, error: type[httpx.TransportError] = httpx.ConnectError) -> None:
        """Make `node` fail at the transport level."""

        async def handler(request: httpx.Request) -> httpx.Response:
            raise error("connection refused", request=request)

        self.route(node, handler)

    def calls_to(self, node: str) -> list[RecordedCall]:
        return [call for call in self.calls if call.node == node]

    async def _handle(self, request: httpx.Request) -> httpx.Response:
        body = await request.aread()
        call = RecordedCall(request.method, request.url, request.headers, body)
        self.calls.append(call)

        handler = self.routes.get(call.node)
        if handler is None:
            return httpx.Response(200, json={})
        return await handler(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handle)


@pytest.fixture
def tasks() -> TaskTransport:
    """Recording mock transport standing in for sibling webtasks."""
    return TaskTransport()


@pytest.fixture
def config() -> WorkflowConfig:
    """Debug-verbosity configuration with the default timeout."""
    return WorkflowConfig(debug_level=3)


@pytest.fixture
def make_request() -> Callable[..., InboundRequest]:
    """Factory for inbound requests addressed through the shared domain of MOCK_HOST."""

    def factory(**overrides: Any) -> InboundRequest:
        values: dict[str, Any] = {
            "method": "POST",
            "headers": {
                "host": MOCK_HOST,
                "content-type": "application/json",
                "x-forwarded-proto": "https",
            },
            "query": {},
            "body": b'{"input": true}',
            "url_format": UrlFormat.SHARED_DOMAIN,
            "container": "tenant",
        }
        values.update(overrides)
        return InboundRequest(**values)

    return factory


@pytest.fixture
def server_request(httpserver: HTTPServer) -> Callable[..., InboundRequest]:
    """Factory for inbound requests addressed to the local HTTP server (wildcard domain)."""

    def factory(**overrides: Any) -> InboundRequest:
        values: dict[str, Any] = {
            "method": "POST",
            "headers": {
                "host": f"{httpserver.host}:{httpserver.port}",
                "x-forwarded-proto": "http",
                "content-type": "application/json",
            },
            "body": b'{"input": true}',
            "url_format": UrlFormat.WILDCARD_DOMAIN,
        }
        values.update(overrides)
        return InboundRequest(**values)

    return factory


@pytest.fixture
def echo_server(httpserver: HTTPServer) -> HTTPServer:
    """Local HTTP server with an `/echo` webtask that reflects what it received."""

    def echo_handler(request: Request) -> Response:
        """Echo method, query, headers and JSON body back to the caller."""
        data = {
            "method": request.method,
            "args": dict(request.args),
            "headers": {k.lower(): v for k, v in request.headers},
            "json": request.get_json(silent=True),
        }
        return Response(json.dumps(data), content_type="application/json")

    httpserver.expect_request("/echo").respond_with_handler(echo_handler)
    return httpserver


@pytest.fixture
def response() -> BufferedResponse:
    return BufferedResponse()
