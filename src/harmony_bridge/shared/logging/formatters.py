"""Log formatters that append the active logging context."""

import logging
import threading

from harmony_bridge.shared.logging.context import get_log_context


class ContextFormatter(logging.Formatter):
    """Log formatter that includes thread and context information.

    Format: [timestamp] [level] [thread_name] [logger:line] message {key=value ...}
    """

    def __init__(self) -> None:
        super().__init__(
            fmt="[%(asctime)s] [%(levelname)-8s] [%(thread_name)s] "
            "[%(name)s:%(lineno)d] %(message)s%(context)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record with thread name and context suffix.

        Args:
            record: The log record to format

        Returns:
            str: Formatted log message
        """
        setattr(record, "thread_name", threading.current_thread().name)

        context = get_log_context()
        if context:
            pairs = " ".join(f"{key}={value}" for key, value in sorted(context.items()))
            setattr(record, "context", f" {{{pairs}}}")
        else:
            setattr(record, "context", "")

        return super().format(record)


class ColoredContextFormatter(ContextFormatter):
    """Context formatter with color support for console output."""

    # ANSI color codes
    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
        "RESET": "\033[0m",
    }

    def format(self, record: logging.LogRecord) -> str:
        formatted = super().format(record)

        level_color = self.COLORS.get(record.levelname, self.COLORS["RESET"])
        reset_color = self.COLORS["RESET"]

        return formatted.replace(
            f"[{record.levelname}", f"[{level_color}{record.levelname}{reset_color}", 1
        )
