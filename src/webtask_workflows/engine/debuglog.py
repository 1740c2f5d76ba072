"""Verbosity-filtered workflow logging.

The compiler creates one DebugLog per compiled workflow and hands it to the
invoker and executors explicitly. Records below the configured verbosity are
dropped before they reach the wrapped logger; structured fields travel in
`extra` so handlers can render them.

Verbosity levels:
    0 = error, 1 = warn, 2 = info, 3 = debug
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, MutableMapping
from typing import Any

META_PROP_DEBUG = "wt-debug"
META_PROP_DEBUG_LEVEL = "wt-debug-level"

VERBOSITY_LEVELS = {
    0: logging.ERROR,
    1: logging.WARNING,
    2: logging.INFO,
    3: logging.DEBUG,
}
MAX_VERBOSITY = max(VERBOSITY_LEVELS)


def verbosity_to_level(verbosity: int) -> int:
    """Map a verbosity (clamped to 0..3) to a logging level."""
    return VERBOSITY_LEVELS[max(0, min(MAX_VERBOSITY, verbosity))]


class DebugLog(logging.LoggerAdapter):  # type: ignore[type-arg]
    """LoggerAdapter that applies a verbosity threshold and merges structured extras."""

    def __init__(
        self,
        logger: logging.Logger,
        verbosity: int = 1,
        extra: Mapping[str, Any] | None = None,
    ):
        super().__init__(logger, dict(extra or {}))
        self.verbosity = max(0, min(MAX_VERBOSITY, verbosity))
        self.threshold = verbosity_to_level(self.verbosity)

    def isEnabledFor(self, level: int) -> bool:  # noqa: N802 - logging API name
        return level >= self.threshold and self.logger.isEnabledFor(level)

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**(self.extra or {}), **kwargs.get("extra", {})}
        return msg, kwargs

    def bind(self, **extra: Any) -> DebugLog:
        """Return a child adapter carrying additional structured fields."""
        return DebugLog(self.logger, self.verbosity, {**(self.extra or {}), **extra})


def create_debuglog(
    name: str,
    meta: Mapping[str, Any] | None = None,
    verbosity: int = 1,
    logger: logging.Logger | None = None,
) -> DebugLog:
    """
    Create the DebugLog for a webtask component.

    `meta["wt-debug"]` is a comma separated list of component names; listing
    `name` turns on debug verbosity. `meta["wt-debug-level"]`, when it is an
    integer, sets the verbosity outright.

    Args:
        name: Component name (e.g. "workflow")
        meta: Webtask metadata
        verbosity: Verbosity used when metadata does not set one
        logger: Logger to wrap (defaults to `webtask_workflows.<name>`)
    """
    meta = meta or {}

    enabled = [part.strip() for part in str(meta.get(META_PROP_DEBUG) or "").split(",")]
    if name in enabled:
        verbosity = MAX_VERBOSITY

    explicit = meta.get(META_PROP_DEBUG_LEVEL)
    if explicit is not None:
        try:
            verbosity = int(explicit)
        except (TypeError, ValueError):
            logging.getLogger(__name__).warning(
                f"Ignoring non-integer {META_PROP_DEBUG_LEVEL} metadata: {explicit!r}"
            )

    return DebugLog(logger or logging.getLogger(f"webtask_workflows.{name}"), verbosity)


__all__ = [
    "META_PROP_DEBUG",
    "META_PROP_DEBUG_LEVEL",
    "DebugLog",
    "create_debuglog",
    "verbosity_to_level",
]
