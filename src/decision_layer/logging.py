"""Logging configuration using loguru."""

import sys
from pathlib import Path

from loguru import logger
from loguru._logger import Logger as LoguruLogger

from decision_layer.config import settings

_CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)
_FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | "
    "{extra[name]}:{function}:{line} - {message}"
)


def get_logger(name: str) -> LoguruLogger:
    """
    Get a configured logger instance.

    The decision layer logs every routing decision at INFO and every
    degraded path (LLM failure, entity fallback) at WARNING, so the
    console sink is usually enough. File sinks are opt-in via
    ``LOG_TO_FILE``.

    Args:
        name: Logger name (typically __name__ of the calling module)

    Returns:
        Logger bound to ``name``
    """
    # Remove default logger to avoid duplicates
    logger.remove()
    logger.configure(extra={"name": "decision_layer"})

    logger.add(
        sys.stderr,
        format=_CONSOLE_FORMAT,
        level=settings.log_level,
        colorize=True,
    )

    if settings.LOG_TO_FILE:
        log_dir = Path(settings.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        logger.add(
            log_dir / "app.log",
            format=_FILE_FORMAT,
            level="DEBUG",
            rotation="10 MB",
            retention="7 days",
            compression="zip",
        )
        logger.add(
            log_dir / "errors.log",
            format=_FILE_FORMAT,
            level="ERROR",
            rotation="10 MB",
            retention="30 days",
            compression="zip",
        )

    bound_logger = logger.bind(name=name)
    return bound_logger  # type: ignore[return-value]
