"""
Logging utilities for the TCRS command-line client.

Diagnostics go to stderr so that JSON results written to stdout
stay machine-readable. Credentials and session cookie values are
masked before a record is written.
"""

import logging
import re
import sys
from typing import Optional, TextIO

LOGGER_NAME = 'tcrs'
LOG_FORMAT = '%(levelname)-8s | %(message)s'

# pw=<password> in form bodies, JSESSIONID=<id> in cookie headers
SECRET_PATTERN = re.compile(r'(\b(?:pw|password|jsessionid)=)[^&;\s]+', re.IGNORECASE)


class ColoredFormatter(logging.Formatter):
    """
    Formatter that colors the level name when writing to a terminal.
    """

    LEVEL_COLORS = {
        logging.DEBUG: '36',     # Cyan
        logging.INFO: '32',      # Green
        logging.WARNING: '33',   # Yellow
        logging.ERROR: '31',     # Red
        logging.CRITICAL: '35',  # Magenta
    }

    def format(self, record):
        color = self.LEVEL_COLORS.get(record.levelno)
        if color is None:
            return super().format(record)

        plain = record.levelname
        # Pad before coloring so the escape codes don't break alignment
        record.levelname = f"\033[{color}m{plain:<8}\033[0m"
        try:
            return super().format(record)
        finally:
            record.levelname = plain


class SecretMaskingFilter(logging.Filter):
    """Replace password and session id values in log messages with '***'."""

    def filter(self, record):
        message = record.getMessage()
        masked = SECRET_PATTERN.sub(r'\1***', message)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


def setup_logging(verbose: bool = False, use_colors: bool = True,
                  stream: Optional[TextIO] = None) -> logging.Logger:
    """
    Configure the application logger.

    Normal runs only surface warnings and errors; progress messages
    need --verbose.

    Args:
        verbose: If True, set level to DEBUG; otherwise WARNING
        use_colors: If True, color level names when the stream is a TTY
        stream: Output stream (defaults to sys.stderr)

    Returns:
        Configured logger instance
    """
    stream = stream if stream is not None else sys.stderr
    level = logging.DEBUG if verbose else logging.WARNING

    handler = logging.StreamHandler(stream)
    handler.setLevel(level)
    handler.addFilter(SecretMaskingFilter())

    is_terminal = getattr(stream, 'isatty', None) is not None and stream.isatty()
    formatter_class = ColoredFormatter if use_colors and is_terminal else logging.Formatter
    handler.setFormatter(formatter_class(fmt=LOG_FORMAT))

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.propagate = False

    return logger


def get_logger() -> logging.Logger:
    """Return the application logger."""
    return logging.getLogger(LOGGER_NAME)


def log_section(title: str, logger: Optional[logging.Logger] = None):
    """
    Log a banner for the start of a command, at debug level.

    Args:
        title: Section title
        logger: Logger instance (uses default if None)
    """
    logger = logger or get_logger()
    rule = "=" * 60
    for line in (rule, f"  {title}", rule):
        logger.debug(line)


def log_step(step: str, logger: Optional[logging.Logger] = None):
    """Log one outgoing request or processing step."""
    (logger or get_logger()).info(f"→ {step}")


def log_error(error: str, logger: Optional[logging.Logger] = None):
    """Log a command failure."""
    (logger or get_logger()).error(f"✗ {error}")


def log_success(message: str, logger: Optional[logging.Logger] = None):
    (logger or get_logger()).info(f"✓ {message}")


def log_warning(warning: str, logger: Optional[logging.Logger] = None):
    (logger or get_logger()).warning(f"⚠ {warning}")
