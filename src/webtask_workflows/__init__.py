"""Compound webtask workflows: fan-out and sequence composition of sibling webtasks."""

from .config import WorkflowConfig
from .engine import (
    BufferedResponse,
    CompiledWorkflow,
    CompileError,
    InboundRequest,
    ResponseWriter,
    UrlFormat,
    WorkflowDefinition,
    WorkflowError,
    compile_workflow,
)

__version__ = "0.1.0"

__all__ = [
    "compile_workflow",
    "CompiledWorkflow",
    "WorkflowDefinition",
    "WorkflowConfig",
    "InboundRequest",
    "ResponseWriter",
    "BufferedResponse",
    "UrlFormat",
    "WorkflowError",
    "CompileError",
]
