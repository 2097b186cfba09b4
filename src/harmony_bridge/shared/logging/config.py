"""Logging configuration and setup."""

import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from harmony_bridge.shared.logging.formatters import (
    ContextFormatter,
    ColoredContextFormatter,
)
from harmony_bridge.shared.logging.levels import LogLevel

# Chatty third-party loggers, capped at INFO unless the bridge runs at DEBUG
_NOISY_LOGGERS = ("aioharmony", "paho")


@dataclass
class LogConfig:
    """Where log records go and at which level.

    Attributes:
        level: Minimum level captured by every handler
        log_file: Optional file receiving uncoloured output
        console_output: Whether to log to stdout
        colored_console: Whether stdout output is colourised
    """

    level: LogLevel = LogLevel.INFO
    log_file: Optional[Path] = None
    console_output: bool = True
    colored_console: bool = True


def _handlers(config: LogConfig) -> list[logging.Handler]:
    handlers: list[logging.Handler] = []

    if config.console_output:
        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(ColoredContextFormatter() if config.colored_console else ContextFormatter())
        handlers.append(console)

    if config.log_file:
        config.log_file.parent.mkdir(parents=True, exist_ok=True)
        log_file = logging.FileHandler(config.log_file)
        log_file.setFormatter(ContextFormatter())
        handlers.append(log_file)

    return handlers


def setup_logging(config: LogConfig) -> None:
    """Replace the root logger's handlers according to ``config``."""
    root_logger = logging.getLogger()
    root_logger.setLevel(config.level)
    root_logger.handlers.clear()

    for handler in _handlers(config):
        handler.setLevel(config.level)
        root_logger.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(config.level, LogLevel.INFO))


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the given name (typically __name__)."""
    return logging.getLogger(name)
