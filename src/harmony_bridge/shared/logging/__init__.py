"""Context-aware logging infrastructure."""

from harmony_bridge.shared.logging.levels import LogLevel
from harmony_bridge.shared.logging.formatters import (
    ContextFormatter,
    ColoredContextFormatter,
)
from harmony_bridge.shared.logging.config import (
    LogConfig,
    setup_logging,
    get_logger,
)
from harmony_bridge.shared.logging.context import (
    log_context,
    get_log_context,
)

__all__ = [
    # Levels
    "LogLevel",
    # Formatters
    "ContextFormatter",
    "ColoredContextFormatter",
    # Configuration
    "LogConfig",
    "setup_logging",
    "get_logger",
    # Context
    "log_context",
    "get_log_context",
]
