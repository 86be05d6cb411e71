"""
Structured logging for the Autonomous MAS engine.

This module configures structlog for console or JSON output and provides a
small performance logger used by the drivers to report execution and
recovery durations.
"""

import logging
import logging.config
import sys
import time
from pathlib import Path
from typing import Any, Dict, Optional

import structlog
from structlog.types import FilteringBoundLogger

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


class PerformanceLogger:
    """Specialized logger for performance metrics."""

    def __init__(self, logger: FilteringBoundLogger):
        self.logger = logger

    def log_execution_time(
        self,
        operation: str,
        duration_ms: float,
        success: bool = True,
        **kwargs: Any
    ) -> None:
        """Log operation execution time."""
        self.logger.info(
            "Operation performance",
            event_type="performance",
            operation=operation,
            duration_ms=duration_ms,
            success=success,
            **kwargs
        )

    def log_recovery(
        self,
        agent_id: str,
        strategy: str,
        recovery_ms: float,
        success: bool,
        **kwargs: Any
    ) -> None:
        """Log a self-healing recovery."""
        self.logger.info(
            "Recovery performance",
            event_type="recovery",
            agent_id=agent_id,
            strategy=strategy,
            recovery_ms=recovery_ms,
            success=success,
            **kwargs
        )


def add_timestamp_processor(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add a wall-clock timestamp to log events."""
    event_dict["timestamp"] = time.time()
    return event_dict


def setup_logging(
    log_level: str = "INFO",
    environment: str = "development",
    log_file: Optional[Path] = None
) -> None:
    """
    Set up structured logging configuration.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        environment: Environment name (development, staging, production, testing)
        log_file: Optional log file path
    """
    level = _LEVELS.get(log_level.upper(), logging.INFO)

    processors = [
        structlog.contextvars.merge_contextvars,
        add_timestamp_processor,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
    ]

    if environment == "production":
        processors.extend([
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer()
        ])
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=environment == "development"))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )

    logging_config: Dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": log_level.upper(),
                "formatter": "standard",
                "stream": sys.stdout
            }
        },
        "root": {
            "level": log_level.upper(),
            "handlers": ["console"]
        }
    }

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logging_config["handlers"]["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": log_level.upper(),
            "formatter": "standard",
            "filename": str(log_file),
            "maxBytes": 10485760,  # 10MB
            "backupCount": 5
        }
        logging_config["root"]["handlers"].append("file")

    logging.config.dictConfig(logging_config)


def get_logger(name: Optional[str] = None) -> FilteringBoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (defaults to caller's module name)

    Returns:
        FilteringBoundLogger: Configured logger instance
    """
    if name is None:
        import inspect
        frame = inspect.currentframe()
        if frame and frame.f_back:
            name = frame.f_back.f_globals.get("__name__", "autonomous_mas")

    return structlog.get_logger(name)


def get_performance_logger(name: Optional[str] = None) -> PerformanceLogger:
    """Get a performance logger."""
    return PerformanceLogger(get_logger(name))


__all__ = [
    "setup_logging",
    "get_logger",
    "get_performance_logger",
    "PerformanceLogger",
]
