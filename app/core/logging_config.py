"""
Loguru sink configuration.
"""

import logging
import sys

from loguru import logger

from app.core.config import Settings

TEXT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


class InterceptHandler(logging.Handler):
    """Forward standard-library log records (uvicorn, httpx) to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def configure_logging(settings: Settings) -> None:
    """Replace loguru's default sink according to LOG_LEVEL and LOG_FORMAT."""
    logger.remove()
    if settings.LOG_FORMAT.lower() == "json":
        logger.add(sys.stdout, level=settings.LOG_LEVEL.upper(), serialize=True)
    else:
        logger.add(sys.stdout, level=settings.LOG_LEVEL.upper(), format=TEXT_FORMAT, colorize=False)

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access", "httpx"):
        logging.getLogger(name).handlers = [InterceptHandler()]
        logging.getLogger(name).propagate = False
