"""Workflow compiler: the entry point turning a workflow body into a webtask function.

Pipeline (each stage short-circuits on failure with a CompileError):
1. Resolve the body (JSON text, structured object, or code) into a candidate
2. Validate the candidate against the workflow schema
3. Select the executor registered for the workflow type
4. Bind executor + definition into a CompiledWorkflow

Compilation happens once; the CompiledWorkflow is then invoked once per
inbound request against the same immutable definition.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from typing import Any

import httpx

from ..config import WorkflowConfig
from .debuglog import DebugLog, create_debuglog
from .exceptions import CompileError, WorkflowError, WorkflowValidationError
from .executor_base import ExecutorRegistry, WorkflowExecutor, create_default_registry
from .invoker import NodeInvoker
from .request import InboundRequest, ResponseWriter
from .resolver import resolve_script
from .responses import respond_with_error
from .schema import WorkflowDefinition, validate_workflow
from .script_compiler import ScriptCompiler, compile_python_script, resolve_compiler

DEBUG_COMPONENT = "workflow"


class CompiledWorkflow:
    """
    Executable webtask function bound to one validated workflow definition.

    Usage:
        workflow = await compile_workflow(script)
        await workflow(request, response)  # once per inbound request
    """

    def __init__(
        self,
        definition: WorkflowDefinition,
        executor: WorkflowExecutor,
        log: DebugLog,
        timeout_ms: int,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.definition = definition
        self.executor = executor
        self.log = log
        self.timeout_ms = timeout_ms
        self.transport = transport

    @property
    def type(self) -> str:
        return self.definition.type.value

    async def __call__(self, request: InboundRequest, response: ResponseWriter) -> None:
        """Execute the workflow for one request; always ends in a written response."""
        started = time.monotonic()
        try:
            async with NodeInvoker(
                request, self.timeout_ms, self.log, transport=self.transport
            ) as invoker:
                await self.executor.execute(self.definition, request, response, invoker, self.log)
        except Exception as e:
            self.log.error(
                f"Workflow execution failed: {e}", exc_info=not isinstance(e, WorkflowError)
            )
            await respond_with_error(e, response, self.log)
        finally:
            self.log.debug(
                f"Workflow invocation finished in {(time.monotonic() - started) * 1000:.1f}ms"
            )

    def __repr__(self) -> str:
        return f"CompiledWorkflow(type={self.type!r}, nodes={len(self.definition.nodes)})"


async def compile_workflow(
    script: Any,
    compiler: str | ScriptCompiler = compile_python_script,
    meta: Mapping[str, Any] | None = None,
    *,
    config: WorkflowConfig | None = None,
    registry: ExecutorRegistry | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    logger: logging.Logger | None = None,
) -> CompiledWorkflow:
    """
    Compile a workflow body into a CompiledWorkflow.

    Args:
        script: Workflow body (JSON text, code text, or a structured object)
        compiler: Compile capability (callable or `module:attr[()]` spec) used
            when the body is not JSON
        meta: Webtask metadata (`wt-debug`, `wt-debug-level`)
        config: Process configuration (defaults from environment)
        registry: Executor registry (built-in executors by default)
        transport: Optional httpx transport for downstream calls
        logger: Logger wrapped by the workflow DebugLog

    Returns:
        CompiledWorkflow ready to serve requests

    Raises:
        CompileError: First failing stage (ScriptResolutionError or
            WorkflowValidationError for their respective stages)
    """
    config = config or WorkflowConfig.from_env()
    registry = registry or create_default_registry()
    log = create_debuglog(DEBUG_COMPONENT, meta, config.debug_level, logger)
    log.debug(f"Compiling workflow (registered types: {', '.join(registry.list_types())})")

    try:
        capability = resolve_compiler(compiler)
    except (ImportError, AttributeError, TypeError, ValueError) as e:
        raise CompileError(f"Invalid compound webtask: unable to load compiler: {e}") from e

    candidate = await resolve_script(script, capability, log)

    try:
        definition = validate_workflow(candidate)
    except WorkflowValidationError as e:
        log.warning(e.message, extra={"field": e.field})
        raise

    if not registry.has(definition.type):
        raise CompileError(
            f"Invalid compound webtask: no executor registered for type '{definition.type.value}'"
        )
    executor = registry.get(definition.type)

    log = log.bind(workflow_type=definition.type.value)
    timeout_ms = definition.timeout_ms(config.default_timeout_ms)
    log.info(
        f"Compiled {definition.type.value} workflow with {len(definition.nodes)} nodes "
        f"(timeout {timeout_ms}ms)"
    )

    return CompiledWorkflow(definition, executor, log, timeout_ms, transport=transport)


__all__ = ["CompiledWorkflow", "compile_workflow"]
