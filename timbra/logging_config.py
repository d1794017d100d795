"""Logging configuration using Loguru.

Provides structured logging with:
- Console output for development
- File rotation for production
- Caller phone numbers masked in every message
"""

import re
import sys
from pathlib import Path

from loguru import logger

# E.164 numbers or bare digit runs, but not digits embedded in SIDs
_PHONE_NUMBER = re.compile(r"(?<!\w)\+?\d{8,15}(?!\w)")


def setup_logging(
    level: str = "INFO",
    log_dir: str = "logs",
    enable_file: bool = True,
) -> None:
    """Configure application logging.

    Args:
        level: Minimum log level (DEBUG, INFO, WARNING, ERROR)
        log_dir: Directory for log files
        enable_file: Whether to enable file logging
    """
    logger.remove()
    logger.configure(patcher=redact_phone_numbers)

    logger.add(
        sys.stderr,
        format=(
            "<green>{time:HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
            "<level>{message}</level>"
        ),
        level=level,
        colorize=True,
        backtrace=True,
        diagnose=True,
    )

    if enable_file:
        log_path = Path(log_dir)
        log_path.mkdir(exist_ok=True)

        logger.add(
            log_path / "timbra_{time:YYYY-MM-DD}.log",
            format=(
                "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
                "{level: <8} | "
                "{name}:{function}:{line} | "
                "{message}"
            ),
            level=level,
            rotation="100 MB",
            retention="14 days",
            compression="gz",
            backtrace=True,
            diagnose=False,  # never dump locals (transcripts) to disk
        )

        # Error-only log for quick debugging
        logger.add(
            log_path / "errors_{time:YYYY-MM-DD}.log",
            format=(
                "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
                "{level: <8} | "
                "{name}:{function}:{line} | "
                "{message}\n{exception}"
            ),
            level="ERROR",
            rotation="50 MB",
            retention="30 days",
            compression="gz",
            backtrace=True,
            diagnose=False,
        )

    logger.info(f"Logging initialized at {level} level")


def redact_phone_numbers(record: dict) -> None:
    """Loguru patcher that masks phone numbers left in a log message."""
    record["message"] = _PHONE_NUMBER.sub(
        lambda match: mask_phone(match.group()), record["message"]
    )


def get_logger(name: str) -> "logger":
    """Get a logger instance with the given name.

    Usage:
        from timbra.logging_config import get_logger
        logger = get_logger(__name__)
        logger.info("Message")
    """
    return logger.bind(name=name)


def mask_phone(phone: str) -> str:
    """Mask phone number for logging: +4917612345678 -> +4XXXX5678.

    Use this before logging any caller number.
    """
    if not phone or len(phone) < 6:
        return "XXXX"
    return f"{phone[:2]}XXXX{phone[-4:]}"
