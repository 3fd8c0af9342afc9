"""Logging configuration and utilities."""

import logging
import sys

from .config import get_settings


def configure_logging(level: str | None = None, format_string: str | None = None) -> None:
    """Configure logging for the application.

    Arguments passed to the function win over the configured settings, which
    in turn win over the standard defaults.

    Args:
        level: Optional logging level (e.g., "DEBUG", "INFO").
        format_string: Optional logging format string.
    """
    if level is None or format_string is None:
        settings = get_settings()
        level = level or settings.logging.level
        format_string = format_string or settings.logging.format

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=format_string,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,  # Streamlit reruns the script, so reapply every time
    )

    # Silence noisy loggers
    logging.getLogger("azure").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)

    logging.info("Logging configured with level: %s", level)
