"""Logging configuration for banque.

Every module logs through structlog with snake_case events and key/value
context (``dossier_id``, ``module``, ``action``). Output goes to stdout,
as JSON lines when ``BANQUE_JSON_LOGS`` is set, and to the rotating file
named by ``BANQUE_LOG_FILE`` outside of test runs.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Any

import structlog

from banque.core.settings import get_settings

SERVICE_NAME = "banque"

_configured: bool = False


def _file_handler(path: Path) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    return logging.handlers.RotatingFileHandler(
        str(path), maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8"
    )


def configure_logging(
    level: str | None = None,
    json_output: bool | None = None,
) -> structlog.BoundLogger:
    """Configure stdlib logging and structlog once per process.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR). Defaults to settings.
        json_output: Render JSON lines instead of console text. Defaults to settings.

    Returns:
        Logger bound to the service name.
    """
    global _configured

    if _configured:
        return structlog.get_logger().bind(service=SERVICE_NAME)

    settings = get_settings()
    numeric_level = getattr(logging, (level or settings.log_level).upper(), logging.INFO)
    use_json = settings.json_logs if json_output is None else json_output

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    file_error: OSError | None = None
    if settings.log_file is not None and not os.environ.get("PYTEST_CURRENT_TEST"):
        try:
            handlers.append(_file_handler(settings.log_file))
        except OSError as e:
            file_error = e

    logging.basicConfig(format="%(message)s", level=numeric_level, handlers=handlers, force=True)

    processors: list[Any] = [
        structlog.stdlib.filter_by_level,
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer() if use_json else structlog.dev.ConsoleRenderer(colors=False),
    ]

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    _configured = True

    logger = structlog.get_logger().bind(service=SERVICE_NAME)
    if file_error is not None:
        logger.warning("log_file_unavailable", path=str(settings.log_file), error=str(file_error))
    return logger


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """Logger for a module of the service, configuring logging on first use."""
    if not _configured:
        configure_logging()

    logger = structlog.get_logger().bind(service=SERVICE_NAME)
    if name:
        return logger.bind(logger_name=name)
    return logger
