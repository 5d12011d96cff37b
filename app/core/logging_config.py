"""
Logging configuration for the application.

Standard library loggers feed the console and a rotating file; structlog is
layered on top for ledger and payment audit events, which carry key/value
context (user id, payment id, amounts) instead of formatted strings.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler, TimedRotatingFileHandler
import structlog
from pythonjsonlogger import jsonlogger

from app.core.config import settings

AUDIT_LOGGER_NAME = "codegen.audit"


def _build_formatter() -> logging.Formatter:
    if settings.LOG_FORMAT == "json":
        return jsonlogger.JsonFormatter(
            "%(asctime)s %(name)s %(levelname)s %(message)s",
            rename_fields={"asctime": "timestamp"},
            datefmt="%Y-%m-%d %H:%M:%S"
        )
    return logging.Formatter(
        "[%(asctime)s] %(levelname)s [%(name)s.%(funcName)s:%(lineno)d] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )


def _build_file_handler(formatter: logging.Formatter, console: logging.StreamHandler):
    try:
        settings.LOG_FILE_PATH.parent.mkdir(parents=True, exist_ok=True)
        if "day" in settings.LOG_ROTATION:
            handler = TimedRotatingFileHandler(
                settings.LOG_FILE_PATH,
                when="D",
                interval=1,
                backupCount=30,
                encoding="utf-8"
            )
        else:
            handler = RotatingFileHandler(
                settings.LOG_FILE_PATH,
                maxBytes=50 * 1024 * 1024,  # 50MB
                backupCount=10,
                encoding="utf-8"
            )
    except (OSError, PermissionError) as e:
        console.stream.write(f"Warning: Could not create log file handler: {e}\n")
        return None

    handler.setFormatter(formatter)
    return handler


def setup_logging():
    """
    Configure root logging and structlog.

    Safe to call more than once; existing root handlers are replaced.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter = _build_formatter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if settings.LOG_FILE_PATH:
        file_handler = _build_file_handler(formatter, console_handler)
        if file_handler is not None:
            root_logger.addHandler(file_handler)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.dev.ConsoleRenderer() if settings.is_development else structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Third-party noise
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING if not settings.DATABASE_ECHO else logging.INFO)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("celery").setLevel(logging.INFO)

    logger = logging.getLogger(__name__)
    logger.info(
        f"Logging configured: level={settings.LOG_LEVEL}, "
        f"format={settings.LOG_FORMAT}, "
        f"file={settings.LOG_FILE_PATH}"
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Structured logger instance
    """
    return structlog.get_logger(name)


def get_audit_logger(**context) -> structlog.BoundLogger:
    """
    Get the audit logger bound to the given context.

    Args:
        **context: Key/value pairs attached to every event (e.g. payment_id)

    Returns:
        Structured logger writing to the audit channel
    """
    return structlog.get_logger(AUDIT_LOGGER_NAME).bind(**context)
