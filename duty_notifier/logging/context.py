"""Scoped logging context for pipeline runs.

Fields pushed here (run_id, person_key, assignment_id, ...) are attached to
every log record emitted inside the scope by ``ContextualFilter``. The
context lives in a ContextVar, so threads started by the scheduler each see
their own copy.
"""

from contextvars import ContextVar, Token
from typing import Any, Dict, Optional


LogContextVar: ContextVar[Dict[str, Any]] = ContextVar("log_context", default={})


def get_log_context() -> Dict[str, Any]:
    """Return a copy of the current logging context."""
    return LogContextVar.get().copy()


def push_log_context(**kwargs) -> Token:
    """Merge fields into the logging context.

    Args:
        **kwargs: Fields to add; existing fields with the same name are shadowed

    Returns:
        Token for pop_log_context()

    Example:
        >>> token = push_log_context(run_id="abc123", person_key="Q1")
        >>> # ... every log line here carries run_id and person_key ...
        >>> pop_log_context(token)
    """
    current = LogContextVar.get()
    return LogContextVar.set({**current, **kwargs})


def pop_log_context(token: Token) -> None:
    """Restore the context saved by push_log_context()."""
    LogContextVar.reset(token)


def clear_log_context() -> None:
    """Drop all context fields (used by tests)."""
    LogContextVar.set({})


class log_context:
    """Context manager that scopes logging fields to a block.

    Example:
        >>> with log_context(run_id="abc123", assignment_id="INV-7"):
        ...     logger.info("Resolving hall")
    """

    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.token: Optional[Token] = None

    def __enter__(self):
        self.token = push_log_context(**self.kwargs)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.token is not None:
            pop_log_context(self.token)
        return False
