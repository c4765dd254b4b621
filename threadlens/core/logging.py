"""
Centralized logging configuration for the ThreadLens API.
"""

import json
import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Dict, Any, List

from .config import get_settings

# Attributes present on every LogRecord; anything else came in via `extra`
_RESERVED_RECORD_KEYS = {
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname', 'filename',
    'module', 'lineno', 'funcName', 'created', 'msecs', 'relativeCreated',
    'thread', 'threadName', 'processName', 'process', 'getMessage', 'exc_info',
    'exc_text', 'stack_info', 'message', 'taskName',
}

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_KEYS:
                log_data[key] = value

        return json.dumps(log_data, default=str, ensure_ascii=False)


def _build_formatter(json_format: bool) -> logging.Formatter:
    if json_format:
        return JSONFormatter(datefmt=DATE_FORMAT)
    return logging.Formatter(TEXT_FORMAT, datefmt=DATE_FORMAT)


def setup_logging() -> None:
    """
    Set up logging with a console handler and, optionally, a rotating file handler.

    Log level, JSON formatting, file rotation and per-module levels all come
    from the application settings.
    """
    settings = get_settings()

    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    handlers: List[logging.Handler] = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(_build_formatter(settings.enable_json_logging))
    handlers.append(console_handler)

    log_file = None
    if settings.enable_file_logging:
        log_dir = Path(settings.log_file_path)
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / settings.log_file_name

        file_handler = logging.handlers.RotatingFileHandler(
            filename=str(log_file),
            maxBytes=settings.log_rotation_size,
            backupCount=settings.log_retention_count,
            encoding='utf-8'
        )
        file_handler.setFormatter(_build_formatter(settings.enable_json_logging))
        handlers.append(file_handler)

    logging.basicConfig(
        level=log_level,
        handlers=handlers,
        force=True,  # Override any existing configuration
    )

    for module_name, level_str in settings.module_log_levels.items():
        module_level = getattr(logging, level_str.upper(), logging.INFO)
        logging.getLogger(module_name).setLevel(module_level)

    logger = logging.getLogger(__name__)
    logger.info("Logging system initialized", extra={
        "log_level": settings.log_level,
        "file_logging_enabled": settings.enable_file_logging,
        "json_logging_enabled": settings.enable_json_logging,
        "log_file_path": str(log_file) if log_file else None,
        "module_log_levels": settings.module_log_levels
    })


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the specified name.

    Args:
        name: Name for the logger (usually __name__)

    Returns:
        Logger instance configured with the global settings
    """
    return logging.getLogger(name)
