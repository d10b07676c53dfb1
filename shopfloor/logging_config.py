"""
Structured logging for the planner.

Service and route code log through structlog with key-value context. The pure
scheduling modules use stdlib loggers under the same "shopfloor" tree, so both
end up in the same handlers.
"""
import logging
import logging.config
import os
import sys
import time
import uuid
from typing import Any, Dict, Optional

import structlog

# Third-party loggers that are noisy at INFO
QUIET_LOGGERS = ("sqlalchemy.engine", "werkzeug")

CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _structlog_processors():
    return [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer(),
    ]


def _handlers(log_level: str, log_file: Optional[str]) -> Dict[str, Dict[str, Any]]:
    handlers = {
        "console": {
            "class": "logging.StreamHandler",
            "level": log_level,
            "formatter": "console",
            "stream": sys.stdout,
        }
    }

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": log_level,
            "formatter": "json",
            "filename": log_file,
            "maxBytes": 5 * 1024 * 1024,
            "backupCount": 3,
        }

    return handlers


def configure_logging(log_level: str = "INFO", log_file: Optional[str] = None):
    """
    Configure structlog and the stdlib handlers behind it.

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR
        log_file: Rotating JSON log file. None logs to stdout only.
    """
    log_level = log_level.upper()

    structlog.configure(
        processors=_structlog_processors(),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handlers = _handlers(log_level, log_file)
    handler_names = list(handlers)

    loggers = {
        "": {"level": log_level, "handlers": handler_names, "propagate": False},
        "shopfloor": {"level": log_level, "handlers": handler_names, "propagate": False},
    }
    for name in QUIET_LOGGERS:
        loggers[name] = {"level": "WARNING"}

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "console": {"format": CONSOLE_FORMAT},
            "json": {
                "()": "structlog.stdlib.ProcessorFormatter",
                "processor": structlog.processors.JSONRenderer(),
            },
        },
        "handlers": handlers,
        "loggers": loggers,
    })

    logger = structlog.get_logger("shopfloor")
    logger.info("Logging configured", level=log_level, file=log_file)
    return logger


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


class PlanningOperationContext:
    """
    Logs start, completion and failure of a planning operation.

    Every line carries the same short operation_id. Call record() inside the
    block to add result fields (e.g. updated=3) to the completion line.
    """

    def __init__(self, operation_type: str, operation_id: Optional[str] = None, **context):
        self.operation_type = operation_type
        self.operation_id = operation_id or uuid.uuid4().hex[:8]
        self.logger = get_logger("shopfloor.planning").bind(
            operation_type=operation_type,
            operation_id=self.operation_id,
        )
        self.context = context
        self.results: Dict[str, Any] = {}
        self._started = None

    def record(self, **fields):
        self.results.update(fields)

    def __enter__(self):
        self._started = time.monotonic()
        self.logger.info("Planning operation started", **self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration = round(time.monotonic() - self._started, 3)

        if exc_type is None:
            self.logger.info(
                "Planning operation completed",
                duration_seconds=duration,
                status="success",
                **self.results
            )
        else:
            self.logger.error(
                "Planning operation failed",
                duration_seconds=duration,
                status="error",
                error_type=exc_type.__name__,
                error_message=str(exc_val)
            )

        return False
