"""
Logging configuration for the ledger import service.
Credentials pass through mask_secret before reaching a log line.
"""
import logging
import os
import sys
from typing import Optional


def setup_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """
    Configure and return a logger instance.

    Args:
        name: Logger name (usually __name__)
        level: Log level (DEBUG, INFO, WARNING, ERROR). Defaults to env LOG_LEVEL or INFO.

    Returns:
        Configured logger instance
    """
    log_level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    if not isinstance(getattr(logging, log_level, None), int):
        log_level = "INFO"

    logger = logging.getLogger(name)
    logger.setLevel(log_level)

    # Avoid duplicate handlers
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(log_level)

        formatter = logging.Formatter(
            fmt="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def mask_secret(value: Optional[str]) -> str:
    """
    Render a credential for logs: auth scheme plus last four characters.

    >>> mask_secret("Bearer abcdef123456")
    'Bearer ****3456'
    """
    if not value:
        return "<none>"

    scheme, _, token = value.strip().rpartition(" ")
    tail = token[-4:] if len(token) > 8 else ""
    masked = f"****{tail}"
    return f"{scheme} {masked}" if scheme else masked
