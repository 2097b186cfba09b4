"""Log level definitions."""

import logging
from enum import IntEnum


class LogLevel(IntEnum):
    """Log levels for the bridge."""

    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR
    CRITICAL = logging.CRITICAL

    @classmethod
    def from_env_flag(cls, value: str) -> "LogLevel":
        """Map a DEBUG-style environment flag to a level."""
        return cls.DEBUG if value.lower() in ("1", "true", "yes") else cls.INFO
