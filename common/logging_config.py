"""Logging setup shared by the upload service and the CLI."""

import logging
import os
import re
import sys
from typing import Optional

MASK = '***MASKED***'

_KEY_VALUE = r'(%s["\']?\s*[:=]\s*["\']?)([^"\'}\s,&]+)'


class SensitiveDataFilter(logging.Filter):
    """Filter to mask credentials and signed URL material in log records."""

    PATTERNS = [
        re.compile(r'(X-Goog-(?:Signature|Credential)=)([^&\s]+)', re.IGNORECASE),
        re.compile(_KEY_VALUE % r'key[_-]?file', re.IGNORECASE),
        re.compile(_KEY_VALUE % r'private[_-]?key', re.IGNORECASE),
        re.compile(_KEY_VALUE % r'token', re.IGNORECASE),
        re.compile(r'(bearer\s+)([^\s,}\'\"]+)', re.IGNORECASE),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        """Render the message once, mask it, and drop the args."""
        message = record.getMessage()
        for pattern in self.PATTERNS:
            message = pattern.sub(rf'\g<1>{MASK}', message)
        record.msg = message
        record.args = None
        return True


def setup_logging(component_name: str, log_level: Optional[str] = None) -> logging.Logger:
    """
    Set up logging configuration for a component.

    The handler is attached to the component logger and to the top-level
    packages so module loggers obtained with get_logger(__name__) share it.

    Args:
        component_name: Name of the component (e.g., 'coordinator', 'cli')
        log_level: Log level (DEBUG, INFO, WARNING, ERROR). Defaults to LOG_LEVEL env var or INFO

    Returns:
        Configured logger instance
    """
    if log_level is None:
        log_level = os.getenv('LOG_LEVEL', 'INFO')

    level = getattr(logging, log_level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    handler.addFilter(SensitiveDataFilter())

    for name in (component_name, 'coordinator', 'chunkstore', 'cli', 'common'):
        target = logging.getLogger(name)
        target.setLevel(level)
        if not target.handlers:
            target.addHandler(handler)
            target.propagate = False

    return logging.getLogger(component_name)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger with the given name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
