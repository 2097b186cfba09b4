"""Task-local logging context.

Hub bridges interleave on one asyncio event loop, so the context lives in a
``ContextVar``: every task gets its own copy and values set while handling
one hub never show up in log lines emitted for another.
"""

from contextlib import contextmanager
from contextvars import ContextVar
from collections.abc import Iterator
from typing import Any

_log_context: ContextVar[dict[str, Any]] = ContextVar("harmony_log_context", default={})


@contextmanager
def log_context(**kwargs: Any) -> Iterator[None]:
    """Context manager for adding temporary logging context.

    Args:
        **kwargs: Context key-value pairs to add

    Example:
        with log_context(hub="family-room"):
            logger.info("Polling")  # Will include hub=family-room
    """
    merged = {**_log_context.get(), **kwargs}
    token = _log_context.set(merged)
    try:
        yield
    finally:
        _log_context.reset(token)


def get_log_context() -> dict[str, Any]:
    """Get the current logging context.

    Returns:
        dict: Current context key-value pairs
    """
    return dict(_log_context.get())
