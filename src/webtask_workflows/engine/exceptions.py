"""Workflow compilation and execution exceptions.

Every error carries the HTTP status it is reported with, so any failure can be
turned into a response body without further classification.
"""

from __future__ import annotations

from http import HTTPStatus
from typing import Any


def reason_phrase(status_code: int) -> str:
    """Return the standard HTTP reason phrase, or "Unknown" for exotic codes."""
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Unknown"


class WorkflowError(Exception):
    """
    Base class for all workflow errors.

    Attributes:
        status_code: HTTP status the error is reported with
        message: Human-readable error message
    """

    status_code: int = 500

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def to_payload(self) -> dict[str, Any]:
        """Build the JSON error body written to the caller."""
        return {
            "statusCode": self.status_code,
            "error": reason_phrase(self.status_code),
            "message": self.message,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status_code={self.status_code}, message={self.message!r})"


# ============================================================================
# Compile-time errors
# ============================================================================


class CompileError(WorkflowError):
    """Workflow could not be compiled into an executor (never retried)."""


class ScriptResolutionError(CompileError):
    """Workflow body is empty or could not be compiled into a definition."""


class WorkflowValidationError(CompileError):
    """
    Workflow definition does not match the workflow schema.

    Attributes:
        field: Dotted path of the first offending field (e.g. "nodes.0.name")
    """

    def __init__(self, detail: str, field: str | None = None):
        self.field = field
        prefix = f"{field}: " if field else ""
        super().__init__(f"Invalid webtask workflow: {prefix}{detail}")


# ============================================================================
# Execution-time errors
# ============================================================================


class UrlFormatError(WorkflowError):
    """Inbound request carries an addressing mode with no URL template."""

    def __init__(self, url_format: Any):
        self.url_format = url_format
        super().__init__(f"Unexpected url format: {url_format}")


class NodeInvocationError(WorkflowError):
    """
    A single downstream node call did not produce a usable response.

    Attributes:
        node: Name of the node that failed
        response_status: Status actually returned downstream (None on transport failure)
    """

    def __init__(
        self,
        message: str,
        node: str,
        status_code: int | None = None,
        response_status: int | None = None,
    ):
        self.node = node
        self.response_status = response_status
        super().__init__(message, status_code)


class TransportError(NodeInvocationError):
    """Connection, reset, or timeout before a response was received."""

    status_code = 502


class DownstreamHTTPError(NodeInvocationError):
    """Downstream responded with an error status (>= 400); reported at that status."""

    def __init__(self, node: str, status_code: int):
        super().__init__(
            f"Unexpected status code: {status_code}",
            node=node,
            status_code=status_code,
            response_status=status_code,
        )


class UnexpectedStatusError(NodeInvocationError):
    """Downstream responded 2xx/3xx other than 200; reported as an internal failure."""

    def __init__(self, node: str, response_status: int):
        super().__init__(
            f"Unexpected status code: {response_status}",
            node=node,
            status_code=500,
            response_status=response_status,
        )


class SerializationError(WorkflowError):
    """A response payload could not be encoded as JSON."""


__all__ = [
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
    "reason_phrase",
]
