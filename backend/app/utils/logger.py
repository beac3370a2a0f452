"""Logging configuration.

JSON output is the default. Every record carries the service name and
environment, plus any ``extra`` fields such as ``orderId`` or
``gatewayOrderId`` passed by the services.
"""

import logging
import sys
from typing import Optional

from pythonjsonlogger import jsonlogger

from app.config import Settings, get_settings

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
JSON_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Chatty libraries used by the Mongo driver and the Razorpay SDK
QUIET_LOGGERS = ("uvicorn.access", "urllib3", "pymongo", "razorpay")


def build_formatter(settings: Settings) -> logging.Formatter:
    """Return the formatter for ``settings.log_format``."""
    if settings.log_format != "json":
        return logging.Formatter(TEXT_FORMAT, datefmt=DATE_FORMAT)

    return jsonlogger.JsonFormatter(
        JSON_FORMAT,
        datefmt=DATE_FORMAT,
        rename_fields={"levelname": "level", "asctime": "timestamp"},
        static_fields={"service": settings.app_name, "environment": settings.environment},
    )


def setup_logging(settings: Optional[Settings] = None) -> None:
    """Configure the root logger. Safe to call more than once."""
    settings = settings or get_settings()
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(log_level)
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(build_formatter(settings))
    root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root.info(
        "Logging configured",
        extra={"log_level": settings.log_level, "log_format": settings.log_format},
    )
