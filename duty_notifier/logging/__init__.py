"""Structured logging helpers for the duty notifier.

Every module logs through ``get_logger(__name__, component=...)`` and tags
records with an ``event`` field (e.g. ``bulk.flags.committed``) so runs can
be followed in JSON log output.
"""

import logging
from typing import Optional, Union


class ComponentLoggerAdapter(logging.LoggerAdapter):
    """LoggerAdapter that merges a fixed component field into every call's extra."""

    def process(self, msg, kwargs):
        # Call's extra takes precedence over the adapter's component
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def get_logger(
    name: str, component: Optional[str] = None
) -> Union[logging.Logger, ComponentLoggerAdapter]:
    """Get a logger, optionally bound to a component name.

    Args:
        name: Logger name (typically __name__)
        component: Component identifier injected into all records
            ("identity", "dispatch", "notification", ...)

    Returns:
        Logger or ComponentLoggerAdapter instance

    Example:
        >>> logger = get_logger(__name__, component="dispatch")
        >>> logger.info("Bulk run started", extra={"event": "bulk.run.started"})
    """
    logger = logging.getLogger(name)

    if component:
        return ComponentLoggerAdapter(logger, {"component": component})

    return logger
