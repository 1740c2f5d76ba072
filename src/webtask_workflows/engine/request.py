"""Inbound request and response writer contracts.

The hosting platform hands every compiled workflow an InboundRequest and a
ResponseWriter. The request carries the addressing metadata needed to reach
sibling webtasks (`url_format` + `container`); the writer receives exactly one
response per invocation.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterable, Iterable, Mapping
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Protocol, runtime_checkable

QueryValue = str | list[str]
Body = bytes | AsyncIterable[bytes]
# Header pairs in wire order; repeated names (e.g. set-cookie) stay separate
HeaderItems = Mapping[str, str] | Iterable[tuple[str, str]]


def header_pairs(headers: HeaderItems) -> list[tuple[str, str]]:
    items = headers.items() if isinstance(headers, Mapping) else headers
    return [(str(key), str(value)) for key, value in items]


def collect_headers(headers: HeaderItems) -> dict[str, str | list[str]]:
    """Fold header pairs into a dict; a repeated name maps to the list of its values."""
    collected: dict[str, str | list[str]] = {}
    for key, value in header_pairs(headers):
        current = collected.get(key)
        if current is None:
            collected[key] = value
        elif isinstance(current, list):
            current.append(value)
        else:
            collected[key] = [current, value]
    return collected


class UrlFormat(IntEnum):
    """How the inbound request addressed this webtask."""

    SHARED_DOMAIN = 1  # {proto}://{host}/api/run/{container}/
    CUSTOM_DOMAIN = 2  # {proto}://{host}/{container}/
    WILDCARD_DOMAIN = 3  # {proto}://{host}/


@dataclass
class InboundRequest:
    """
    Request that triggered a workflow invocation.

    Header names are lower-cased on construction. `body` is either the full
    payload or an async byte stream; `read()` buffers a stream once and caches it.

    Attributes:
        method: HTTP method of the inbound request
        headers: Inbound headers (including forwarding metadata such as host)
        query: Parsed query parameters
        body: Payload bytes or async byte stream
        url_format: Addressing mode flag (see UrlFormat)
        container: Webtask container the workflow runs in
    """

    method: str = "GET"
    headers: dict[str, str] = field(default_factory=dict)
    query: dict[str, QueryValue] = field(default_factory=dict)
    body: Body = b""
    url_format: int | None = None
    container: str = ""

    def __post_init__(self) -> None:
        self.method = self.method.upper()
        self.headers = {key.lower(): value for key, value in self.headers.items()}

    @property
    def is_buffered(self) -> bool:
        return isinstance(self.body, bytes | bytearray)

    async def read(self) -> bytes:
        """Return the full body, draining and caching a streamed body."""
        if isinstance(self.body, bytes | bytearray):
            return bytes(self.body)

        chunks = [chunk async for chunk in self.body]
        self.body = b"".join(chunks)
        return self.body


@runtime_checkable
class ResponseWriter(Protocol):
    """Destination for the single response written per invocation."""

    @property
    def headers_sent(self) -> bool: ...

    async def write_head(self, status_code: int, headers: HeaderItems) -> None: ...

    async def write(self, chunk: bytes) -> None: ...

    async def end(self, body: bytes | None = None) -> None: ...


class BufferedResponse:
    """In-memory ResponseWriter (used by the MCP tools and tests)."""

    def __init__(self) -> None:
        self.status_code: int | None = None
        self.headers: dict[str, str | list[str]] = {}
        self.header_items: list[tuple[str, str]] = []
        self.finished = False
        self._chunks: list[bytes] = []

    @property
    def headers_sent(self) -> bool:
        return self.status_code is not None

    async def write_head(self, status_code: int, headers: HeaderItems) -> None:
        if self.headers_sent:
            raise RuntimeError("Response headers already sent")
        self.status_code = status_code
        self.header_items = header_pairs(headers)
        self.headers = collect_headers(self.header_items)

    async def write(self, chunk: bytes) -> None:
        if self.finished:
            raise RuntimeError("Response already ended")
        self._chunks.append(chunk)

    async def end(self, body: bytes | None = None) -> None:
        if body:
            await self.write(body)
        self.finished = True

    @property
    def body(self) -> bytes:
        return b"".join(self._chunks)

    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        return json.loads(self.body)


__all__ = [
    "Body",
    "HeaderItems",
    "QueryValue",
    "collect_headers",
    "header_pairs",
    "UrlFormat",
    "InboundRequest",
    "ResponseWriter",
    "BufferedResponse",
]
