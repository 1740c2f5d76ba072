"""Resolve a raw workflow body into a definition-shaped candidate.

Resolution order:
1. Empty body -> ScriptResolutionError
2. Structured object (supplied programmatically) -> passed through unchanged
3. Text -> strict JSON parse
4. JSON parse failure -> compile capability (workflow written as code)
"""

from __future__ import annotations

import inspect
import json
import logging
from typing import Any

from .debuglog import DebugLog
from .exceptions import ScriptResolutionError
from .script_compiler import ScriptCompiler

logger = logging.getLogger(__name__)


async def resolve_script(
    script: Any,
    compiler: ScriptCompiler,
    log: DebugLog | None = None,
) -> Any:
    """
    Turn a raw workflow body into a candidate for validation.

    Args:
        script: Workflow body (JSON text, code text, bytes, or a structured object)
        compiler: Compile capability used when the text is not JSON
        log: Logger for resolution tracing (module logger when omitted)

    Returns:
        Candidate object (not yet validated)

    Raises:
        ScriptResolutionError: Body is empty, not UTF-8, or the code failed to compile
    """
    log = log or DebugLog(logger)

    if isinstance(script, bytes | bytearray):
        try:
            script = bytes(script).decode("utf-8")
        except UnicodeDecodeError as e:
            raise ScriptResolutionError(
                f"Invalid compound webtask: body is not valid UTF-8: {e}"
            ) from e

    if script is None or (isinstance(script, str) and not script.strip()):
        raise ScriptResolutionError("Invalid compound webtask: empty code")

    if not isinstance(script, str):
        log.debug("Workflow supplied as a structured object")
        return script

    try:
        candidate = json.loads(script)
    except ValueError:
        log.debug("Workflow body is not JSON, compiling as code")
    else:
        log.debug("Workflow body parsed as JSON")
        return candidate

    try:
        candidate = compiler(script)
        if inspect.isawaitable(candidate):
            candidate = await candidate
    except Exception as e:
        log.warning(f"Error compiling workflow code: {e}")
        raise ScriptResolutionError(
            f"Invalid compound webtask: error compiling workflow code: {e}"
        ) from e

    return candidate


__all__ = ["resolve_script"]
