"""
Logging setup for the dealer directory service.

Production (PRODUCTION=true, or running under gunicorn) writes one JSON object
per line; development gets a short colored line. Records emitted while a
request is being served carry its method and path. Fields passed to
log_with_context() become extra JSON keys, or trailing ' | k=v' pairs.
"""

import os
import sys
import json
import logging
from datetime import datetime, timezone

from flask import has_request_context, request


def _context_fields(record: logging.LogRecord) -> dict:
    """Request method/path (when serving a request) plus any log_with_context() fields."""
    fields = {}
    if has_request_context():
        fields['method'] = request.method
        fields['path'] = request.path
    fields.update(getattr(record, 'extra', None) or {})
    return fields


class JSONFormatter(logging.Formatter):
    """One JSON document per record, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            'timestamp': datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'source': f'{record.pathname.rsplit(os.sep, 1)[-1]}:{record.lineno}',
        }
        entry.update(_context_fields(record))
        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class DevelopmentFormatter(logging.Formatter):
    """Colored one-line output for a terminal."""

    LEVEL_COLORS = {
        logging.DEBUG: 36,
        logging.INFO: 32,
        logging.WARNING: 33,
        logging.ERROR: 31,
        logging.CRITICAL: 35,
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno)
        level = f'\033[{color}m{record.levelname:<8}\033[0m' if color else f'{record.levelname:<8}'
        clock = datetime.fromtimestamp(record.created).strftime('%H:%M:%S')

        parts = [f'[{clock}] {level} {record.name}:{record.lineno}  {record.getMessage()}']
        parts.extend(f'{key}={value}' for key, value in _context_fields(record).items())
        line = ' | '.join(parts)

        if record.exc_info:
            line += '\n' + self.formatException(record.exc_info)
        return line


def setup_logging(
    level: str = 'INFO',
    json_format: bool = None,
    logger_name: str = 'dealerdb'
) -> logging.Logger:
    """Install a single stdout handler on the application's logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Force JSON (True) or colored text (False); None picks
            JSON for production and gunicorn.
        logger_name: Root of the application's logger hierarchy.
    """
    if json_format is None:
        json_format = (os.environ.get('PRODUCTION', '').lower() == 'true'
                       or 'gunicorn' in os.environ.get('SERVER_SOFTWARE', ''))

    logger = logging.getLogger(logger_name)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # create_app() may run more than once per process (tests)
    for existing in list(logger.handlers):
        logger.removeHandler(existing)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if json_format else DevelopmentFormatter())
    logger.addHandler(handler)
    logger.propagate = False
    return logger


def get_logger(name: str = 'dealerdb') -> logging.Logger:
    """Logger under the application hierarchy, e.g. 'dealerdb.database'."""
    return logging.getLogger(name)


def log_with_context(logger: logging.Logger, level: int, message: str, **context):
    """Emit one record carrying context as structured fields.

    Example:
        log_with_context(logger, logging.ERROR, 'Failed to update dealer',
                         code='40P01', operation='transaction')
    """
    if not logger.isEnabledFor(level):
        return
    record = logger.makeRecord(logger.name, level, '(context)', 0, message, (), None)
    record.extra = context
    logger.handle(record)
