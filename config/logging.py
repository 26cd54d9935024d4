# coding: utf-8
"""
Logging configuration with loguru for Affiliate Leads Portal
"""
import sys
from pathlib import Path
from loguru import logger
import sentry_sdk

from config.config import LOG_LEVEL, ENVIRONMENT, SENTRY_DSN


def setup_logging(log_to_files: bool = True) -> None:
    """
    Setup loguru sinks: console, rotating files and Sentry

    Args:
        log_to_files: Write api/error log files under ./logs (disabled in tests)
    """
    # Remove default handler
    logger.remove()

    # Console output with colors and formatting
    logger.add(
        sys.stdout,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
            "<level>{message}</level>"
        ),
        level=LOG_LEVEL,
        colorize=True,
    )

    if log_to_files:
        logs_dir = Path(__file__).parent.parent / 'logs'
        logs_dir.mkdir(exist_ok=True)
        file_format = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {message}"

        # All requests, lead reviews and payout processing
        logger.add(
            logs_dir / "api_{time:YYYY-MM-DD}.log",
            format=file_format,
            level="DEBUG",
            rotation="00:00",  # Rotate at midnight
            retention="7 days",
            compression="zip",
            encoding="utf-8",
        )

        # Errors only; payout reconciliation failures end up here
        logger.add(
            logs_dir / "error_{time:YYYY-MM-DD}.log",
            format=file_format,
            level="ERROR",
            rotation="00:00",
            retention="30 days",  # Keep error logs longer
            compression="zip",
            encoding="utf-8",
        )

    # Sentry integration - send ERROR and CRITICAL to Sentry
    if SENTRY_DSN:
        from config.sentry import init_sentry

        init_sentry()
        logger.add(
            sentry_sink,
            level="ERROR",
            format="{message}",
        )

    # Suppress noisy third-party loggers
    import logging
    logging.getLogger('uvicorn.access').setLevel(logging.WARNING)
    logging.getLogger('sqlalchemy.engine').setLevel(logging.ERROR)  # Only errors
    logging.getLogger('asyncio').setLevel(logging.WARNING)

    logger.info(f"Leads Portal initialized | Environment: {ENVIRONMENT} | Log level: {LOG_LEVEL}")


def sentry_sink(message):
    """
    Custom sink to send ERROR and CRITICAL logs to Sentry
    """
    record = message.record
    extras = {
        "function": record["function"],
        "file": record["file"].path,
        "line": record["line"],
    }

    if record["exception"]:
        sentry_sdk.capture_exception(record["exception"].value)
    else:
        level = "fatal" if record["level"].name == "CRITICAL" else "error"
        sentry_sdk.capture_message(record["message"], level=level, extras=extras)
