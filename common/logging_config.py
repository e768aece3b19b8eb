"""Logging setup shared by the CLI, the range server and the engine."""

import logging
import os
import re
import sys
from typing import Iterable, Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

MASK = '***MASKED***'

# field names whose values never reach a log line
SECRET_FIELDS = ('project_key', 'api_key', 'encryption_key', 'token', 'secret')


class SensitiveDataFilter(logging.Filter):
    """Masks credentials, key material and webhook tokens in log records."""

    FIELD_PATTERN = re.compile(
        r'((?:%s)["\']?\s*[:=]\s*["\']?)([^"\'}\s,]+)'
        % '|'.join(name.replace('_', '[_-]?') for name in SECRET_FIELDS),
        re.IGNORECASE,
    )
    WEBHOOK_PATTERN = re.compile(r'(/webhooks/\d+/)([A-Za-z0-9_\-]+)')

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = self.mask(record.msg)
        if isinstance(record.args, dict):
            record.args = {key: self.mask(value) for key, value in record.args.items()}
        elif isinstance(record.args, tuple):
            record.args = tuple(self.mask(arg) for arg in record.args)
        return True

    @classmethod
    def mask(cls, value):
        if not isinstance(value, str):
            return value
        value = cls.FIELD_PATTERN.sub(rf'\1{MASK}', value)
        return cls.WEBHOOK_PATTERN.sub(rf'\1{MASK}', value)


def setup_logging(
    component_name: str,
    log_level: Optional[str] = None,
    correlation_id: Optional[str] = None
) -> logging.Logger:
    """
    Set up logging configuration for a component.

    Calling it again for the same component only changes the level.

    Args:
        component_name: Top-level logger name (e.g., 'server', 'cli', 'engine')
        log_level: DEBUG, INFO, WARNING or ERROR. Defaults to LOG_LEVEL env var or INFO
        correlation_id: Optional ID included in every line

    Returns:
        Configured logger instance
    """
    level_name = (log_level or os.getenv('LOG_LEVEL', 'INFO')).upper()
    level = getattr(logging, level_name, logging.INFO)

    logger = logging.getLogger(component_name)
    logger.setLevel(level)

    if not logger.handlers:
        fmt = LOG_FORMAT
        if correlation_id:
            fmt = LOG_FORMAT.replace('%(message)s', f'[{correlation_id}] - %(message)s')

        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(fmt, datefmt=DATE_FORMAT))
        handler.addFilter(SensitiveDataFilter())
        logger.addHandler(handler)
        logger.propagate = False

    for handler in logger.handlers:
        handler.setLevel(level)

    return logger


def setup_component_logging(components: Iterable[str], log_level: Optional[str] = None) -> logging.Logger:
    """Configure several components at one level; returns the first component's logger."""
    loggers = [setup_logging(component, log_level=log_level) for component in components]
    return loggers[0]


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger with the given name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
