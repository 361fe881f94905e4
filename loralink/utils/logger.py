"""Logging configuration for LoRa link daemon."""

import logging
import logging.handlers
from pathlib import Path
from typing import Optional

import structlog


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Per-frame chatter from these loggers is only useful when debugging the link
PROTOCOL_LOGGERS = (
    "loralink.protocol",
    "loralink.link",
)


def setup_logging(log_level: str = "INFO",
                  log_file: Optional[str] = None,
                  max_size: int = 10485760,
                  backup_count: int = 5,
                  trace_frames: bool = False):
    """
    Set up stdlib and structlog logging.

    Args:
        log_level: Logging level
        log_file: Optional log file path (rotated)
        max_size: Maximum log file size in bytes
        backup_count: Number of rotated files to keep
        trace_frames: Log every frame even when not running at DEBUG
    """
    level = getattr(logging, log_level.upper())
    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    handlers = [console_handler]

    if log_file:
        log_path = Path(log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            str(log_path),
            maxBytes=max_size,
            backupCount=backup_count
        )
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    logging.basicConfig(level=level, handlers=handlers, force=True)

    if trace_frames:
        for name in PROTOCOL_LOGGERS:
            logging.getLogger(name).setLevel(logging.DEBUG)

    renderer = (
        structlog.dev.ConsoleRenderer()
        if level <= logging.DEBUG
        else structlog.processors.JSONRenderer()
    )

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
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str, **context) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger.

    Args:
        name: Logger name
        **context: Key/value pairs bound to every event

    Returns:
        Structured logger instance
    """
    logger = structlog.get_logger(name)
    if context:
        logger = logger.bind(**context)
    return logger
