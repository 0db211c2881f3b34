"""Structured logging configuration shared by the CLI and embedding applications."""

import logging as py_logging

import structlog

from .config import LoggingConfig


def setup_logging(config: LoggingConfig) -> structlog.stdlib.BoundLogger:
    """Route structlog through stdlib logging with the configured level and renderer."""
    level = getattr(py_logging, config.level.upper(), py_logging.INFO)
    py_logging.basicConfig(
        level=level,
        format="%(message)s",
        force=True
    )

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.format_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.dev.ConsoleRenderer(colors=True) if config.format.lower() == "console"
            else structlog.processors.JSONRenderer(sort_keys=True)
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    logger = structlog.get_logger("mdns_scout")
    logger.debug("Logging configured.", logging_level=config.level, logging_format=config.format)
    return logger
