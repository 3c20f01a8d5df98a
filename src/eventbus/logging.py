"""Logging configuration for the event bus."""

import logging
import sys

from loguru import logger


class InterceptHandler(logging.Handler):
    """Intercept standard logging messages toward loguru."""

    def emit(self, record):
        # Get corresponding loguru level if it exists
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where the logged message originated
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(log_level: str, log_format: str | None = None):
    """Configure loguru logging for the application embedding the event bus.

    Args:
        log_level: Log level to use (from settings, which handles env vars and CLI args).
        log_format: Optional loguru format string; the loguru default when None.
    """
    log_level = log_level.upper()

    logger.remove()  # Remove default handler
    sink_options = {"format": log_format} if log_format else {}
    logger.add(
        sys.stderr,
        level=log_level,
        colorize=True,
        **sink_options,
    )
    logger.enable("eventbus")

    logger.info(f"Log level set to: {log_level}")

    # Redirect all standard logging to loguru
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    # concurrent.futures reports executor internals through the standard logging module
    for stdlib_logger in ("concurrent.futures", "asyncio"):
        logging.getLogger(stdlib_logger).setLevel(log_level)
