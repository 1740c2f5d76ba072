"""Node invocation: one downstream HTTP call per workflow node.

Responsibilities:
- Derive the sibling-task base URL from the inbound addressing mode
- Strip hop-by-hop and internal headers before forwarding
- Merge inbound and node query parameters (node keys win)
- Bound every call by the workflow timeout
- Classify the result as a response outcome or a typed failure

The HTTP client is built once per workflow invocation and shared read-only by
every node call of that invocation.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Mapping
from urllib.parse import quote
from dataclasses import dataclass
from types import TracebackType
from typing import Any

import httpx

from .debuglog import DebugLog
from .exceptions import (
    DownstreamHTTPError,
    NodeInvocationError,
    TransportError,
    UnexpectedStatusError,
    UrlFormatError,
)
from .request import Body, InboundRequest, QueryValue, UrlFormat, collect_headers
from .schema import WorkflowNode

INTERNAL_PARAMS_HEADER = "x-wt-params"

STRIPPED_HEADERS = frozenset(
    {
        "accept-version",
        "connection",
        "content-length",
        "host",
        "transfer-encoding",
        "x-forwarded-for",
        "x-forwarded-port",
        "x-forwarded-proto",
        INTERNAL_PARAMS_HEADER,
    }
)

DEFAULT_HEADERS = {"Connection": "keep-alive"}

_URL_TEMPLATES = {
    UrlFormat.SHARED_DOMAIN: "{proto}://{host}/api/run/{container}/",
    UrlFormat.CUSTOM_DOMAIN: "{proto}://{host}/{container}/",
    UrlFormat.WILDCARD_DOMAIN: "{proto}://{host}/",
}


def normalize_headers(headers: Mapping[str, str] | httpx.Headers) -> dict[str, str]:
    """Copy headers without the ones that must not be forwarded downstream."""
    return {
        key.lower(): value
        for key, value in headers.items()
        if key.lower() not in STRIPPED_HEADERS
    }


def build_base_url(request: InboundRequest) -> str:
    """
    Build the base URL sibling webtasks are reached at.

    Raises:
        UrlFormatError: Addressing mode has no URL template
    """
    try:
        template = _URL_TEMPLATES[UrlFormat(request.url_format)]
    except (TypeError, ValueError) as e:
        raise UrlFormatError(request.url_format) from e

    proto = request.headers.get("x-forwarded-proto") or "https"
    return template.format(
        proto=proto,
        host=request.headers.get("host", ""),
        container=request.container,
    )


def node_path(name: str) -> str:
    """Encode a node name as exactly one relative path segment."""
    segment = quote(name, safe="")
    # Dot segments would otherwise be resolved against the container prefix
    if segment in (".", ".."):
        segment = segment.replace(".", "%2E")
    return segment


def merge_query(
    inbound: Mapping[str, QueryValue], node_query: Mapping[str, str] | None
) -> dict[str, QueryValue]:
    """Merge node query parameters over the inbound ones."""
    merged: dict[str, QueryValue] = dict(inbound)
    merged.update(node_query or {})
    return merged


@dataclass
class InvocationOutcome:
    """
    Classified result of one node call.

    `response` is set whenever the downstream answered (whatever the status);
    `error` is set whenever the call is not a plain 200.
    """

    node: str
    index: int
    response: httpx.Response | None = None
    error: NodeInvocationError | None = None
    duration_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None

    def summary(self) -> dict[str, Any]:
        """Per-node entry of the fan-out aggregate, reflecting the observed status."""
        if self.response is not None:
            return {
                "statusCode": self.response.status_code,
                "statusMessage": self.response.reason_phrase,
                "headers": collect_headers(self.response.headers.multi_items()),
            }

        assert self.error is not None
        return {
            "statusCode": self.error.status_code,
            "statusMessage": self.error.message,
            "headers": {},
        }


class NodeInvoker:
    """
    Performs downstream node calls for one workflow invocation.

    Use as an async context manager so the shared client is closed when the
    invocation finishes:

        async with NodeInvoker(request, timeout_ms=10000, log=log) as invoker:
            outcome = await invoker.invoke(node, 0, headers, payload)
    """

    def __init__(
        self,
        request: InboundRequest,
        timeout_ms: int,
        log: DebugLog,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.request = request
        self.timeout_ms = timeout_ms
        self.log = log
        self.base_url = build_base_url(request)
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=DEFAULT_HEADERS,
            timeout=httpx.Timeout(timeout_ms / 1000),
            transport=transport,
        )

    async def __aenter__(self) -> NodeInvoker:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def invoke(
        self,
        node: WorkflowNode,
        index: int,
        headers: Mapping[str, str],
        payload: Body | None,
    ) -> InvocationOutcome:
        """
        Call one node and classify the result.

        The returned response (if any) is open in streaming mode; the caller
        owns it and must consume or close it.

        Args:
            node: Node to invoke
            index: Position of the node in the workflow
            headers: Already-normalized headers to forward
            payload: Request body (bytes or async byte stream)

        Returns:
            InvocationOutcome (never raises for network or status failures)
        """
        method = node.method or self.request.method
        params = merge_query(self.request.query, node.query)
        log = self.log.bind(node=node.name, index=index)

        http_request = self._client.build_request(
            method,
            node_path(node.name),
            params=params,
            headers=dict(headers),
            content=payload or None,
        )
        log.debug(f"Invoking node '{node.name}': {method} {http_request.url}")

        started = time.monotonic()
        outcome = InvocationOutcome(node=node.name, index=index)
        try:
            outcome.response = await asyncio.wait_for(
                self._client.send(http_request, stream=True),
                timeout=self.timeout_ms / 1000,
            )
        except (TimeoutError, httpx.TimeoutException):
            outcome.error = TransportError(
                f"Request to '{node.name}' timed out after {self.timeout_ms}ms",
                node=node.name,
                status_code=504,
            )
        except httpx.HTTPError as e:
            outcome.error = TransportError(
                f"Client request error for '{node.name}': {e}", node=node.name
            )
        outcome.duration_ms = (time.monotonic() - started) * 1000

        if outcome.response is not None:
            status = outcome.response.status_code
            if status >= 400:
                outcome.error = DownstreamHTTPError(node.name, status)
            elif status != 200:
                outcome.error = UnexpectedStatusError(node.name, status)

        extra = {
            "status_code": outcome.response.status_code if outcome.response else None,
            "duration_ms": round(outcome.duration_ms, 1),
        }
        if outcome.ok:
            log.debug(f"Node '{node.name}' responded 200", extra=extra)
        else:
            log.warning(f"Node '{node.name}' failed: {outcome.error}", extra=extra)

        return outcome


__all__ = [
    "STRIPPED_HEADERS",
    "INTERNAL_PARAMS_HEADER",
    "InvocationOutcome",
    "NodeInvoker",
    "build_base_url",
    "merge_query",
    "node_path",
    "normalize_headers",
]
