import sys

from loguru import logger

LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")
LOG_FORMAT = "{time:YYYY-MM-DDTHH:mm:ss.SSSZZ} | {level: <7} | {name}:{line} | {message}"


def configure_logging(level: str) -> str:
    """Send log records to stderr at ``level``; unknown levels mean ERROR."""

    resolved = level.upper() if level and level.upper() in LEVELS else "ERROR"
    logger.remove()
    logger.add(sys.stderr, level=resolved, format=LOG_FORMAT)
    return resolved


__all__ = ["configure_logging"]
