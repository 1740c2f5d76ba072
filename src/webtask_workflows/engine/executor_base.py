"""Base executor architecture for compound webtasks.

A workflow executor implements one composition model (fan-out, sequence).
Executors are stateless singletons: the validated definition, the request,
the response writer, and the per-invocation node invoker are all passed in,
so one executor instance serves every compiled workflow of its type.

Key principles:
- Executors never raise for node failures; they write a response
- Unexpected exceptions propagate to the compiled workflow, which turns
  them into an error response
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import ClassVar

from pydantic import BaseModel, PrivateAttr

from .debuglog import DebugLog
from .invoker import NodeInvoker
from .request import InboundRequest, ResponseWriter
from .schema import WorkflowDefinition, WorkflowType


class WorkflowExecutor(ABC):
    """Base class for workflow executors.

    Subclasses must:
    1. Set `type_name` to the WorkflowType they implement
    2. Implement execute()

    Example:
        class FanoutExecutor(WorkflowExecutor):
            type_name = WorkflowType.FANOUT

            async def execute(self, definition, request, response, invoker, log):
                outcomes = await asyncio.gather(...)
                await write_json(response, 200, [o.summary() for o in outcomes])
    """

    type_name: ClassVar[WorkflowType]

    @abstractmethod
    async def execute(
        self,
        definition: WorkflowDefinition,
        request: InboundRequest,
        response: ResponseWriter,
        invoker: NodeInvoker,
        log: DebugLog,
    ) -> None:
        """Run the workflow for one inbound request and write the final response.

        Args:
            definition: Validated workflow definition
            request: Inbound request that triggered the workflow
            response: Writer receiving the final response
            invoker: Node invoker bound to this invocation's HTTP client
            log: Workflow logger

        Raises:
            Exception: Only for structural failures; node failures are
                reported through the written response
        """


class ExecutorRegistry(BaseModel):
    """
    Registry of workflow executors.

    Maps workflow type names to executor instances.
    """

    model_config = {"arbitrary_types_allowed": True}

    _executors: dict[str, WorkflowExecutor] = PrivateAttr(default_factory=dict)

    def register(self, executor: WorkflowExecutor) -> None:
        """Register executor using executor.type_name as key."""
        key = WorkflowType(executor.type_name).value
        if key in self._executors:
            raise ValueError(f"Executor already registered: {key}")
        self._executors[key] = executor

    def get(self, type_name: str | WorkflowType) -> WorkflowExecutor:
        """Get executor by workflow type."""
        key = type_name.value if isinstance(type_name, WorkflowType) else type_name
        if key not in self._executors:
            available = list(self._executors.keys())
            raise ValueError(f"Unknown workflow type: {key}. Available: {available}")
        return self._executors[key]

    def list_types(self) -> list[str]:
        """List registered workflow types."""
        return list(self._executors.keys())

    def has(self, type_name: str | WorkflowType) -> bool:
        """Check if a workflow type is registered."""
        key = type_name.value if isinstance(type_name, WorkflowType) else type_name
        return key in self._executors


def create_default_registry() -> ExecutorRegistry:
    """Create ExecutorRegistry with the built-in fan-out and sequence executors.

    Each call returns a fresh registry, so tests can register extra executors
    without affecting one another.
    """
    from .executors_fanout import FanoutExecutor
    from .executors_sequence import SequenceExecutor

    registry = ExecutorRegistry()
    registry.register(FanoutExecutor())
    registry.register(SequenceExecutor())
    return registry


__all__ = ["WorkflowExecutor", "ExecutorRegistry", "create_default_registry"]
