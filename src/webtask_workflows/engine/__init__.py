"""Compound webtask workflow engine.

Key Components:

- compile_workflow: Entry point (resolve -> validate -> bind executor)
- CompiledWorkflow: Webtask function executing one validated definition
- WorkflowDefinition / WorkflowNode: Pydantic v2 workflow schema
- resolve_script: JSON-first, code-second body resolution
- NodeInvoker: One downstream HTTP call with header/query normalization
- FanoutExecutor: Concurrent invocation with aggregated result
- SequenceExecutor: Ordered invocation with payload chaining
- InboundRequest / ResponseWriter: Host request and response contracts
"""

from .compiler import CompiledWorkflow, compile_workflow
from .debuglog import DebugLog, create_debuglog
from .exceptions import (
    CompileError,
    DownstreamHTTPError,
    NodeInvocationError,
    ScriptResolutionError,
    SerializationError,
    TransportError,
    UnexpectedStatusError,
    UrlFormatError,
    WorkflowError,
    WorkflowValidationError,
)
from .executor_base import ExecutorRegistry, WorkflowExecutor, create_default_registry
from .executors_fanout import FanoutExecutor
from .executors_sequence import SequenceExecutor
from .invoker import InvocationOutcome, NodeInvoker, normalize_headers
from .request import BufferedResponse, InboundRequest, ResponseWriter, UrlFormat
from .resolver import resolve_script
from .responses import respond_with_error
from .schema import WorkflowDefinition, WorkflowNode, WorkflowType, validate_workflow
from .script_compiler import compile_python_script, resolve_compiler

__all__ = [
    # Compiler
    "compile_workflow",
    "CompiledWorkflow",
    # Schema
    "WorkflowDefinition",
    "WorkflowNode",
    "WorkflowType",
    "validate_workflow",
    # Resolution
    "resolve_script",
    "compile_python_script",
    "resolve_compiler",
    # Execution
    "NodeInvoker",
    "InvocationOutcome",
    "normalize_headers",
    "WorkflowExecutor",
    "ExecutorRegistry",
    "create_default_registry",
    "FanoutExecutor",
    "SequenceExecutor",
    # Host contracts
    "InboundRequest",
    "ResponseWriter",
    "BufferedResponse",
    "UrlFormat",
    "respond_with_error",
    # Logging
    "DebugLog",
    "create_debuglog",
    # Errors
    "WorkflowError",
    "CompileError",
    "ScriptResolutionError",
    "WorkflowValidationError",
    "UrlFormatError",
    "NodeInvocationError",
    "TransportError",
    "DownstreamHTTPError",
    "UnexpectedStatusError",
    "SerializationError",
]
