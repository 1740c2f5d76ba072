"""Runtime configuration read from environment variables.

Environment Variables:
    WEBTASK_WORKFLOWS_DEBUG_LEVEL: Workflow log verbosity
        (0=error, 1=warn, 2=info, 3=debug; default: 1, clamped to 0-3)
    WEBTASK_WORKFLOWS_TIMEOUT_MS: Default per-call timeout in milliseconds
        (default: 10000, clamped to 1-600000)
"""

from __future__ import annotations

import logging
import os

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_DEBUG_LEVEL = 1
DEFAULT_TIMEOUT_MS = 10000
MAX_TIMEOUT_MS = 600000


def _int_from_env(name: str, default: int, low: int, high: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return max(low, min(high, int(raw)))
    except ValueError:
        logger.warning(f"Invalid {name}={raw!r}, using default {default}")
        return default


class WorkflowConfig(BaseModel):
    """Settings shared by every workflow compiled in this process."""

    model_config = {"frozen": True}

    debug_level: int = Field(
        default=DEFAULT_DEBUG_LEVEL, ge=0, le=3, description="Workflow log verbosity (0-3)"
    )
    default_timeout_ms: int = Field(
        default=DEFAULT_TIMEOUT_MS,
        ge=1,
        le=MAX_TIMEOUT_MS,
        description="Per-call timeout used when a workflow sets none",
    )

    @classmethod
    def from_env(cls) -> WorkflowConfig:
        """Build configuration from WEBTASK_WORKFLOWS_* environment variables."""
        return cls(
            debug_level=_int_from_env(
                "WEBTASK_WORKFLOWS_DEBUG_LEVEL", DEFAULT_DEBUG_LEVEL, 0, 3
            ),
            default_timeout_ms=_int_from_env(
                "WEBTASK_WORKFLOWS_TIMEOUT_MS", DEFAULT_TIMEOUT_MS, 1, MAX_TIMEOUT_MS
            ),
        )


__all__ = ["WorkflowConfig", "DEFAULT_DEBUG_LEVEL", "DEFAULT_TIMEOUT_MS", "MAX_TIMEOUT_MS"]
