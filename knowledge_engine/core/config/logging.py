"""
Central logging configuration for the whole service.
Call  init_logging()  *once* early in startup (before anything logs).
"""

import logging
import os
import sys

from loguru import logger
from knowledge_engine.core.config.settings import settings


# --------------------------------------------------------------------------- #
# Helper – forward stdlib logging records to Loguru
# --------------------------------------------------------------------------- #
class _InterceptHandler(logging.Handler):
    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        logger.opt(
            depth=6, exception=record.exc_info  # keep caller info accurate
        ).log(level, record.getMessage())


def _patch_stdlib(level: str) -> None:
    logging.root.setLevel(level)
    logging.root.handlers[:] = [_InterceptHandler()]  # replace all handlers
    for noise in (
        "asyncio",
        "httpx",
        "httpcore",
        "openai",
        "qdrant_client",
        "pdfminer",
        "pdfminer.pdfinterp",
        "pdfminer.pdfparser",
        "pdfminer.psparser",
        "pdfminer.pdfdocument",
        "pdfminer.pdfpage",
    ):
        logging.getLogger(noise).setLevel(logging.WARNING)


# --------------------------------------------------------------------------- #
# Main entry point
# --------------------------------------------------------------------------- #
def init_logging() -> None:
    log_dir = settings.LOG_DIR
    os.makedirs(log_dir, exist_ok=True)

    json_format = (
        '{{"timestamp":"{time:YYYY-MM-DD HH:mm:ss.SSS}",'
        '"level":"{level}",'
        '"message":{message!r},'
        '"file":"{file.name}","line":{line},"function":"{function}"}}'
    )

    logger.remove()  # drop default stderr sink

    # Human-friendly console
    logger.add(
        sys.stdout,
        level=settings.LOG_LEVEL,
        colorize=True,
        format=(
            "<green>{time:HH:mm:ss.SSS}</green> "
            "<level>{level: <8}</level> "
            "<cyan>{name}</cyan>:<cyan>{line}</cyan> | "
            "<level>{message}</level>"
        ),
        enqueue=False,
    )

    logger.add(
        f"{log_dir}/error.log",
        level="ERROR",
        rotation="5 MB",
        retention="14 days",
        compression="zip",
        format=json_format,
        enqueue=False,
    )

    logger.add(
        f"{log_dir}/app.log",
        level="DEBUG",
        rotation="10 MB",
        retention="10 days",
        compression="zip",
        format=json_format,
        enqueue=False,
    )

    # Feed stdlib logging into Loguru
    _patch_stdlib(settings.LOG_LEVEL)

    for name, level in {
        "uvicorn": logging.INFO if settings.DEBUG is False else logging.DEBUG,
        "uvicorn.error": logging.INFO if settings.DEBUG is False else logging.DEBUG,
        "uvicorn.access": logging.INFO if settings.DEBUG is False else logging.DEBUG,
        "sqlalchemy.engine": logging.WARNING,
    }.items():
        logging.getLogger(name).setLevel(level)

    logger.info("Loguru logging configured")
