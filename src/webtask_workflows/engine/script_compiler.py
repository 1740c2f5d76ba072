"""Compile capabilities used when a workflow body is code rather than JSON.

A compile capability is any callable taking the source text and returning the
workflow definition it produces (directly or as an awaitable). Capabilities can
be passed as callables or addressed by a spec string:

    "package.module"            -> the module object itself
    "package.module:attr"       -> module attribute
    "package.module:factory()"  -> result of calling the module attribute once
"""

from __future__ import annotations

import importlib
import inspect
import logging
import re
import types
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

ScriptCompiler = Callable[[str], Any | Awaitable[Any]]

WORKFLOW_ATTRIBUTE = "workflow"

_COMPILER_SPEC_RX = re.compile(
    r"^(?P<module>[A-Za-z_][\w]*(?:\.[A-Za-z_][\w]*)*)"
    r"(?::(?P<attr>[A-Za-z_][\w]*)(?P<factory>\(\))?)?$"
)


@dataclass(frozen=True)
class CompilerSpec:
    """Parsed compiler spec string."""

    module_name: str
    export_name: str | None = None
    is_factory: bool = False


def parse_compiler_spec(spec: str) -> CompilerSpec:
    """
    Parse a `module[:attr[()]]` compiler spec string.

    Raises:
        ValueError: If the string does not follow the `module[:attr[()]]` grammar
    """
    match = _COMPILER_SPEC_RX.match(spec.strip())
    if not match:
        raise ValueError(f"Failed to parse compiler spec: {spec}")

    return CompilerSpec(
        module_name=match.group("module"),
        export_name=match.group("attr"),
        is_factory=bool(match.group("factory")),
    )


def resolve_compiler(spec: str | ScriptCompiler) -> ScriptCompiler:
    """Resolve a compile capability from a callable or a spec string."""
    if callable(spec):
        return spec

    parsed = parse_compiler_spec(spec)
    module = importlib.import_module(parsed.module_name)
    export = getattr(module, parsed.export_name) if parsed.export_name else module

    compiler = export() if parsed.is_factory else export
    if not callable(compiler):
        raise TypeError(f"Compiler spec '{spec}' does not resolve to a callable")

    logger.debug(f"Resolved compiler spec '{spec}' to {compiler!r}")
    return compiler


async def compile_python_script(source: str) -> Any:
    """
    Default compile capability: run the source as a fresh module.

    The module must define a top-level `workflow` attribute. When it is
    callable (sync or async) it is called with no arguments and its return
    value is the definition, which lets authors compute the workflow.

    Example source:

        NODES = ["resize", "thumbnail"]

        def workflow():
            return {"type": "fanout", "nodes": [{"name": n} for n in NODES]}

    Raises:
        SyntaxError: Source is not valid Python
        AttributeError: Module defines no `workflow`
        Exception: Anything raised while executing the module
    """
    module = types.ModuleType("webtask_workflow_script")
    code = compile(source, "<workflow>", "exec")
    exec(code, module.__dict__)  # noqa: S102 - executing author-supplied workflow code

    if not hasattr(module, WORKFLOW_ATTRIBUTE):
        raise AttributeError(f"workflow code must define a top-level '{WORKFLOW_ATTRIBUTE}'")

    value = getattr(module, WORKFLOW_ATTRIBUTE)
    if callable(value):
        value = value()
    if inspect.isawaitable(value):
        value = await value
    return value


__all__ = [
    "ScriptCompiler",
    "CompilerSpec",
    "parse_compiler_spec",
    "resolve_compiler",
    "compile_python_script",
]
