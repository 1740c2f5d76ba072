"""Sequence executor: invoke nodes in order, chaining each response into the next call.

- Node 0 receives the inbound body and normalized inbound headers
- Node i+1 receives the raw body of node i's response, with node i's
  response headers normalized the same way
- The first failure aborts the chain and is written as the response;
  earlier steps are not compensated
- On success the last response is passed through: status and headers
  verbatim, body streamed chunk by chunk
"""

from __future__ import annotations

from contextlib import AsyncExitStack
from typing import ClassVar

import httpx

from .debuglog import DebugLog
from .executor_base import WorkflowExecutor
from .invoker import NodeInvoker, normalize_headers
from .request import Body, InboundRequest, ResponseWriter
from .responses import respond_with_error
from .schema import WorkflowDefinition, WorkflowType


def response_body(response: httpx.Response) -> Body:
    """Raw body stream of `response`, or its bytes when the transport preloaded them."""
    if response.is_stream_consumed:
        return response.content
    return response.aiter_raw()


class SequenceExecutor(WorkflowExecutor):
    """Ordered invocation (async fold over the nodes) with short-circuit on failure."""

    type_name: ClassVar[WorkflowType] = WorkflowType.SEQUENCE

    async def execute(
        self,
        definition: WorkflowDefinition,
        request: InboundRequest,
        response: ResponseWriter,
        invoker: NodeInvoker,
        log: DebugLog,
    ) -> None:
        total = len(definition.nodes)

        async with AsyncExitStack() as open_responses:
            payload: Body = request.body
            headers = normalize_headers(request.headers)
            last: httpx.Response | None = None

            for index, node in enumerate(definition.nodes):
                outcome = await invoker.invoke(node, index, headers, payload)
                if outcome.response is not None:
                    open_responses.push_async_callback(outcome.response.aclose)

                if outcome.error is not None:
                    log.warning(
                        f"Sequence aborted at step {index + 1}/{total} ('{node.name}'), "
                        f"skipping {total - index - 1} remaining steps",
                        extra={"status_code": outcome.error.status_code},
                    )
                    await respond_with_error(outcome.error, response, log)
                    return

                last = outcome.response
                assert last is not None
                payload = response_body(last)
                headers = normalize_headers(last.headers)

            assert last is not None
            log.info(
                f"Sequence of {total} steps succeeded, streaming final response",
                extra={"status_code": last.status_code},
            )
            await response.write_head(last.status_code, last.headers.multi_items())
            body = response_body(last)
            if isinstance(body, bytes):
                await response.end(body)
                return
            async for chunk in body:
                await response.write(chunk)
            await response.end()


__all__ = ["SequenceExecutor"]
