"""
Structured JSON Logging
Configures structlog (governor events) and the stdlib root logger (library
and third-party output) to emit one JSON object per line.
"""

import logging
import os
import sys
from typing import Optional

import structlog
from pythonjsonlogger import jsonlogger

SERVICE_NAME = "ai-request-governor"


class ServiceJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter that tags every stdlib log record with the service name
    and deployment environment.
    """

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        log_record['service'] = SERVICE_NAME
        log_record['environment'] = os.getenv('ENVIRONMENT', 'development')


def setup_logging(level: Optional[str] = None) -> logging.Handler:
    """
    Configure structured JSON logging to stdout.

    Args:
        level: Log level name; defaults to settings.log_level.

    Returns:
        logging.Handler: The root handler that was installed (for testing)
    """
    if level is None:
        from ai_governor.config import settings
        level = settings.log_level

    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
    )

    handler = logging.StreamHandler(sys.stdout)
    formatter = ServiceJsonFormatter(
        '%(asctime)s %(levelname)s %(name)s %(message)s',
        rename_fields={
            'asctime': 'timestamp',
            'levelname': 'level'
        }
    )
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.addHandler(handler)
    root_logger.setLevel(numeric_level)

    return handler
