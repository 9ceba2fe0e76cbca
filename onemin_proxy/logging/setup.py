"""Logging configuration for the proxy."""

import logging
import sys

LOGGER_NAME = "onemin-proxy"


def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """Set up the proxy logger with a stdout handler and timestamped format."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    # Clear any existing handlers
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # Propagate to root so pytest's caplog and uvicorn handlers still see records
    logger.propagate = True

    return logger


def mask_secret(secret: str | None, visible: int = 8) -> str:
    """Return a log-safe rendition of a credential secret."""
    if not secret:
        return "<empty>"
    return f"{secret[:visible]}..."


# Global logger instance
logger = setup_logging()
