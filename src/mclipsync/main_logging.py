"""Logging configuration for mclipsync CLI."""
import logging

from mclipsync.config import LogConfig

TRACE = 5
FATAL = logging.CRITICAL

# Clipboard contents are only ever logged through this logger.
SENSITIVE_LOGGER = "mclipsync.sensitive"

LEVELS: dict[str, int] = {
    "fatal": FATAL,
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
    "trace": TRACE,
}

logging.addLevelName(TRACE, "TRACE")
logging.addLevelName(FATAL, "FATAL")


class SensitiveFilter(logging.Filter):
    """Drop records from the sensitive logger unless explicitly allowed."""

    def __init__(self, allow: bool) -> None:
        super().__init__()
        self.allow = allow

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name == SENSITIVE_LOGGER or record.name.startswith(SENSITIVE_LOGGER + "."):
            return self.allow
        return True


def configure_logging(config: LogConfig) -> None:
    """Configure the root logger from the startup LogConfig.

    Args:
        config: Level, timestamp and sensitive-content settings.

    Clipboard contents additionally require the level to be DEBUG or lower,
    since they are logged at DEBUG.
    """
    if config.timestamps:
        fmt = "%(asctime)s - %(levelname)s - %(message)s"
    else:
        fmt = "%(levelname)s - %(message)s"
    handler = logging.StreamHandler()
    handler.addFilter(SensitiveFilter(config.sensitive))
    logging.basicConfig(
        level=config.level,
        format=fmt,
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[handler],
    )


def sensitive_logger() -> logging.Logger:
    """Return the logger used for clipboard contents."""
    return logging.getLogger(SENSITIVE_LOGGER)
