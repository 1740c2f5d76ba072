"""Response synthesis helpers.

Every code path of a workflow invocation ends in one of these writers, so a
caller always gets a well-formed response even when encoding itself fails.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

from .debuglog import DebugLog
from .exceptions import SerializationError, WorkflowError, reason_phrase
from .request import ResponseWriter

logger = logging.getLogger(__name__)

JSON_HEADERS = {"Content-Type": "application/json"}

# Optional error attributes copied into the error body when set
PASSTHROUGH_ERROR_FIELDS = ("code", "errno", "error_description", "data")


def encode_json(payload: Any) -> bytes:
    """
    Encode a payload as compact JSON.

    Raises:
        SerializationError: Payload contains values JSON cannot represent
    """
    try:
        return json.dumps(payload, separators=(",", ":"), allow_nan=False).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Error serializing response: {e}") from e


def error_payload(error: BaseException) -> dict[str, Any]:
    """Build the JSON error body for any exception."""
    if isinstance(error, WorkflowError):
        payload = error.to_payload()
    else:
        payload = {
            "statusCode": 500,
            "error": reason_phrase(500),
            "message": str(error) or type(error).__name__,
        }

    for key in PASSTHROUGH_ERROR_FIELDS:
        value = getattr(error, key, None)
        if value:
            payload[key] = value

    return payload


async def write_json(
    response: ResponseWriter,
    status_code: int,
    payload: Any,
    headers: Mapping[str, str] | None = None,
) -> None:
    """Encode and write a complete JSON response."""
    body = encode_json(payload)
    await response.write_head(status_code, {**JSON_HEADERS, **(headers or {})})
    await response.end(body)


async def respond_with_error(
    error: BaseException,
    response: ResponseWriter,
    log: DebugLog | None = None,
    _depth: int = 0,
) -> None:
    """
    Write `error` as a JSON error response.

    If the error body cannot be encoded, a SerializationError describing the
    encoding failure is written instead. If headers were already sent (failure
    while streaming a pass-through body), the response is ended as is.
    """
    log = log or DebugLog(logger)
    payload = error_payload(error)
    status_code = payload["statusCode"]

    if response.headers_sent:
        log.error(f"Error after response headers were sent: {error}")
        await response.end()
        return

    try:
        body = encode_json(payload)
    except SerializationError as e:
        if _depth > 0:
            raise
        fallback = SerializationError(f"Error serializing error: {e.__cause__ or e}")
        await respond_with_error(fallback, response, log, _depth=_depth + 1)
        return

    if status_code >= 500:
        log.error(f"Responding with {status_code}: {payload['message']}")
    else:
        log.info(f"Responding with {status_code}: {payload['message']}")

    await response.write_head(status_code, JSON_HEADERS)
    await response.end(body)


__all__ = [
    "JSON_HEADERS",
    "encode_json",
    "error_payload",
    "respond_with_error",
    "write_json",
]
