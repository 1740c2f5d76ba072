"""
Workflow definition schema with Pydantic v2 models.

A workflow definition composes sibling webtasks ("nodes") under one of two
execution models:

- fanout: every node is invoked concurrently and the outcomes are aggregated
- sequence: nodes are invoked in order, each response feeding the next call

Wire format:

    {
        "type": "fanout" | "sequence",
        "nodes": [{"name": "task", "method": "POST", "query": {"k": "v"}}],
        "timeout": 10000
    }

Validated definitions are frozen; a compiled workflow closes over one and
reuses it for every invocation.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..config import DEFAULT_TIMEOUT_MS
from .exceptions import WorkflowValidationError

# Characters that would let a node name escape its path segment
RESERVED_NAME_CHARS = ("/", "\\", "?", "#")


class WorkflowType(str, Enum):
    """Execution model selected by the workflow's `type` tag."""

    FANOUT = "fanout"
    SEQUENCE = "sequence"

    @classmethod
    def values(cls) -> tuple[str, ...]:
        return tuple(member.value for member in cls)


class WorkflowNode(BaseModel):
    """
    One branch (fanout) or step (sequence) of a workflow.

    Attributes:
        name: Sibling webtask to invoke, used as the URL path segment
        method: HTTP method override (inbound method when omitted)
        query: Query parameters merged over the inbound query (node keys win)
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(description="The name of the webtask to be invoked")
    method: str | None = Field(default=None, description="HTTP method override")
    query: dict[str, str] | None = Field(
        default=None, description="Query parameters merged over the inbound query"
    )

    @field_validator("name")
    @classmethod
    def _name_is_one_segment(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("blank name")
        if any(char in value for char in RESERVED_NAME_CHARS) or value in (".", ".."):
            raise ValueError(f"name must be a single URL path segment, got '{value}'")
        return value

    @field_validator("method")
    @classmethod
    def _normalize_method(cls, value: str | None) -> str | None:
        if value is None:
            return None
        if not value.strip():
            raise ValueError("blank method")
        return value.strip().upper()


class WorkflowDefinition(BaseModel):
    """A validated, immutable webtask workflow."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: WorkflowType = Field(description="The type of workflow that this represents")
    nodes: tuple[WorkflowNode, ...] = Field(
        min_length=1, description="The set of nodes that comprise the workflow"
    )
    timeout: int | None = Field(
        default=None, gt=0, description="Per-call timeout in milliseconds"
    )

    def timeout_ms(self, default: int = DEFAULT_TIMEOUT_MS) -> int:
        """Per-call timeout, falling back to `default` when the workflow sets none."""
        return self.timeout if self.timeout is not None else default


def _describe_error(error: dict[str, Any]) -> tuple[str, str]:
    """Map the first Pydantic error to (field path, detail)."""
    loc = tuple(error.get("loc", ()))
    field = ".".join(str(part) for part in loc)
    kind = error.get("type", "")

    if loc[:1] == ("type",):
        return field, (
            "unknown or missing workflow type "
            f"(expected one of: {', '.join(WorkflowType.values())})"
        )
    if loc[:1] == ("nodes",):
        if len(loc) == 1:
            if kind == "missing":
                return field, "missing nodes"
            if kind == "too_short":
                return field, "workflow must contain at least one node"
            return field, "nodes must be a list of node objects"
        if len(loc) >= 3 and loc[2] == "name":
            reason = str(error.get("ctx", {}).get("error", ""))
            if reason and reason != "blank name":
                return field, f"invalid node: {reason}"
            return field, "invalid node: missing/blank name"
    return field, str(error.get("msg", "invalid value"))


def validate_workflow(candidate: Any) -> WorkflowDefinition:
    """
    Validate a resolved workflow candidate.

    Pure function: no I/O, no side effects.

    Args:
        candidate: Definition-shaped object (dict or WorkflowDefinition)

    Returns:
        Frozen WorkflowDefinition

    Raises:
        WorkflowValidationError: naming the first offending field

    Example:
        >>> validate_workflow({"type": "loop", "nodes": []})
        Traceback (most recent call last):
        WorkflowValidationError: Invalid webtask workflow: type: unknown or missing ...
    """
    if isinstance(candidate, WorkflowDefinition):
        return candidate
    if not isinstance(candidate, dict):
        raise WorkflowValidationError(
            f"workflow definition must be an object, got {type(candidate).__name__}"
        )

    try:
        return WorkflowDefinition.model_validate(candidate)
    except ValidationError as e:
        errors = e.errors()
        # `type` errors take precedence over node errors
        errors.sort(key=lambda err: 0 if tuple(err.get("loc", ()))[:1] == ("type",) else 1)
        field, detail = _describe_error(dict(errors[0]))
        raise WorkflowValidationError(detail, field=field or None) from e


__all__ = [
    "DEFAULT_TIMEOUT_MS",
    "WorkflowType",
    "WorkflowNode",
    "WorkflowDefinition",
    "validate_workflow",
]
