"""Fan-out executor: invoke every node concurrently and aggregate the outcomes.

All nodes receive the same inbound payload and headers. The executor waits
for every outcome (a failing node never cancels its siblings), then writes a
JSON array with one summary per node in definition order:

    [{"statusCode": 200, "statusMessage": "OK", "headers": {...}}, ...]

The aggregate status is 200 only when every node answered 200, else 502.
"""

from __future__ import annotations

import asyncio
from typing import ClassVar

from .debuglog import DebugLog
from .executor_base import WorkflowExecutor
from .invoker import InvocationOutcome, NodeInvoker, normalize_headers
from .request import InboundRequest, ResponseWriter
from .responses import write_json
from .schema import WorkflowDefinition, WorkflowNode, WorkflowType

AGGREGATE_FAILURE_STATUS = 502


class FanoutExecutor(WorkflowExecutor):
    """Concurrent invocation with a join-all barrier before aggregation."""

    type_name: ClassVar[WorkflowType] = WorkflowType.FANOUT

    async def execute(
        self,
        definition: WorkflowDefinition,
        request: InboundRequest,
        response: ResponseWriter,
        invoker: NodeInvoker,
        log: DebugLog,
    ) -> None:
        # Buffered once: every branch gets identical bytes
        payload = await request.read()
        headers = normalize_headers(request.headers)

        log.debug(f"Dispatching {len(definition.nodes)} nodes concurrently")
        results = await asyncio.gather(
            *(
                self._invoke_and_release(invoker, node, index, headers, payload)
                for index, node in enumerate(definition.nodes)
            ),
            return_exceptions=True,
        )

        # Structural dispatch failures surface only after every branch settled
        for result in results:
            if isinstance(result, BaseException):
                raise result

        outcomes: list[InvocationOutcome] = list(results)  # type: ignore[arg-type]
        status_code = 200 if all(outcome.ok for outcome in outcomes) else AGGREGATE_FAILURE_STATUS
        failed = [outcome.node for outcome in outcomes if not outcome.ok]

        if failed:
            log.info(
                f"Fan-out finished with {status_code}: {len(failed)}/{len(outcomes)} "
                f"nodes failed ({', '.join(failed)})",
                extra={"status_code": status_code},
            )
        else:
            log.info(
                f"Fan-out finished with {status_code}: all {len(outcomes)} nodes succeeded",
                extra={"status_code": status_code},
            )

        await write_json(response, status_code, [outcome.summary() for outcome in outcomes])

    @staticmethod
    async def _invoke_and_release(
        invoker: NodeInvoker,
        node: WorkflowNode,
        index: int,
        headers: dict[str, str],
        payload: bytes,
    ) -> InvocationOutcome:
        outcome = await invoker.invoke(node, index, headers, payload)
        # Only status and headers are aggregated; release the connection
        if outcome.response is not None:
            await outcome.response.aclose()
        return outcome


__all__ = ["FanoutExecutor"]
