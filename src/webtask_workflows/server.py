"""FastMCP server initialization for webtask-workflows.

This module initializes the MCP server and manages shared resources via the
lifespan context. Tool implementations live in the tools module.

Environment Variables:
    WEBTASK_WORKFLOWS_LOG_LEVEL: Process log level (default: INFO)
    WEBTASK_WORKFLOWS_COMPILER: Compile capability spec (`module:attr[()]`)
        used for workflow bodies written as code (default: built-in Python compiler)
    WEBTASK_WORKFLOWS_DEBUG_LEVEL / WEBTASK_WORKFLOWS_TIMEOUT_MS: see config module
"""

import logging
import os
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from mcp.server.fastmcp import FastMCP

from .config import WorkflowConfig
from .context import AppContext, AppContextType
from .engine.script_compiler import ScriptCompiler, compile_python_script, resolve_compiler

logger = logging.getLogger(__name__)

# =============================================================================
# Shared Resources and Lifespan Management
# =============================================================================


def load_compiler() -> ScriptCompiler:
    """Resolve the compile capability named by WEBTASK_WORKFLOWS_COMPILER.

    Returns:
        The configured compiler, or the built-in Python compiler when unset

    Raises:
        RuntimeError: The configured spec cannot be resolved
    """
    spec = os.getenv("WEBTASK_WORKFLOWS_COMPILER", "").strip()
    if not spec:
        return compile_python_script

    try:
        compiler = resolve_compiler(spec)
    except (ImportError, AttributeError, TypeError, ValueError) as e:
        raise RuntimeError(
            f"Cannot load workflow compiler '{spec}': {e}\n"
            "Check WEBTASK_WORKFLOWS_COMPILER (format: package.module[:attr[()]])"
        ) from e

    logger.info(f"Using workflow compiler: {spec}")
    return compiler


@asynccontextmanager
async def app_lifespan(_server: FastMCP) -> AsyncIterator[AppContext]:
    """Build the AppContext shared by all tools.

    Args:
        _server: FastMCP server instance (unused, required by FastMCP signature)

    Yields:
        AppContext with configuration, compile capability, and workflow cache
    """
    logger.info("Initializing MCP server resources...")

    config = WorkflowConfig.from_env()
    logger.info(
        f"Workflow config: debug_level={config.debug_level}, "
        f"default_timeout_ms={config.default_timeout_ms}"
    )

    app_context = AppContext(config=config, compiler=load_compiler())

    try:
        yield app_context
    finally:
        logger.info(
            f"Shutting down MCP server ({len(app_context.compiled)} compiled workflows cached)"
        )
        app_context.compiled.clear()


# Initialize MCP server with lifespan management
mcp = FastMCP("webtask_workflows", lifespan=app_lifespan)


# =============================================================================
# Server Entry Point
# =============================================================================


def main() -> None:
    """Entry point for running the MCP server.

    Called via `python -m webtask_workflows` or the `webtask-workflows`
    console script. Uses stdio transport.
    """
    valid_log_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
    log_level_str = os.getenv("WEBTASK_WORKFLOWS_LOG_LEVEL", "INFO").upper()

    if log_level_str not in valid_log_levels:
        print(
            f"Warning: Invalid WEBTASK_WORKFLOWS_LOG_LEVEL '{log_level_str}'. "
            f"Valid levels: {', '.join(sorted(valid_log_levels))}. "
            "Using INFO.",
            file=sys.stderr,
        )
        log_level_str = "INFO"

    # Configure logging to stderr (stdout carries the MCP protocol)
    logging.basicConfig(
        level=getattr(logging, log_level_str),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    logger.info("Starting MCP server (press Ctrl+C to stop)...")

    try:
        mcp.run()
    except KeyboardInterrupt:
        logger.info("Received interrupt signal, shutting down gracefully...")
    except Exception as e:
        logger.exception(f"Server error: {e}")
        sys.exit(1)

    logger.info("Server shutdown complete")


__all__ = ["mcp", "main", "load_compiler", "AppContext", "AppContextType"]
