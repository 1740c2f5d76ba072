"""Shared context types for the MCP server.

This module contains context types used across server and tools modules,
separated to avoid circular imports.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field

from mcp.server.fastmcp import Context
from mcp.server.session import ServerSession

from .config import WorkflowConfig
from .engine import CompiledWorkflow, compile_workflow
from .engine.script_compiler import ScriptCompiler

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Application context containing shared resources for MCP tools.

    Created during server startup and made available to all tools via the
    Context parameter. Compiled workflows are cached by the hash of their
    body so repeated runs skip resolution and validation.
    """

    config: WorkflowConfig
    compiler: ScriptCompiler
    compiled: dict[str, CompiledWorkflow] = field(default_factory=dict)
    max_cached: int = 128

    async def get_or_compile(self, script: str) -> CompiledWorkflow:
        """Return the cached CompiledWorkflow for `script`, compiling it on first use.

        Raises:
            CompileError: Script does not compile (never cached)
        """
        key = hashlib.sha256(script.encode("utf-8")).hexdigest()
        workflow = self.compiled.get(key)
        if workflow is not None:
            return workflow

        workflow = await compile_workflow(script, self.compiler, config=self.config)

        if len(self.compiled) >= self.max_cached:
            # Evict the oldest entry (dicts keep insertion order)
            self.compiled.pop(next(iter(self.compiled)))
        self.compiled[key] = workflow
        logger.debug(f"Cached compiled workflow {key[:12]} ({len(self.compiled)} cached)")
        return workflow


# Type alias for MCP tool context parameter
AppContextType = Context[ServerSession, AppContext]


__all__ = ["AppContext", "AppContextType"]
