"""Logging helpers shared by every module."""
import logging
import sys

from app.core import config


_configured = False


def configure_logging(level: str | None = None) -> None:
    """
    Configure root logging once.

    Level comes from LOG_LEVEL unless given explicitly. Output goes to stdout.
    """
    global _configured
    if _configured:
        return
    logging.basicConfig(
        level=level or config.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger for the given module name (usually __name__)."""
    configure_logging()
    return logging.getLogger(name)
