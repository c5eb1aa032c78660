"""Structured logging configuration using structlog.

This module configures structlog for structured JSON logging with:
- JSON formatter for file output
- Pretty-printed console output for debugging
- UTC timestamps
- File rotation for log management
- Component tracking derived from the logger name
"""

import logging
import logging.handlers
import pathlib
import sys
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from host_metrics.config.settings import AppConfig


def _get_log_level() -> str:
    """Get log level from configuration.

    Returns:
        Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """
    # Bootstrap from environment to avoid circular imports during startup.
    from host_metrics.config.bootstrap import get_bootstrap_log_level  # noqa: PLC0415

    return get_bootstrap_log_level()


def _get_log_dir() -> pathlib.Path | None:
    """Get log directory path.

    Returns:
        Path to the log directory, or None when file logging is disabled.
    """
    from host_metrics.config.bootstrap import get_bootstrap_log_dir  # noqa: PLC0415

    return get_bootstrap_log_dir()


def _get_log_format() -> str:
    from host_metrics.config.bootstrap import get_bootstrap_log_format  # noqa: PLC0415

    return get_bootstrap_log_format()


def _add_timestamp(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Add UTC timestamp to log event."""
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def _component_from_name(logger_name: str) -> str:
    # "host_metrics.sensors.cpu" -> "cpu"
    if "." in logger_name:
        return logger_name.split(".")[-1]
    return logger_name or "unknown"


def _add_component(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Add component name to a stdlib (foreign) log event.

    Args:
        logger: The logger instance.
        method_name: The log method name (info, error, etc.).
        event_dict: The event dictionary.

    Returns:
        Event dictionary with component added.
    """
    # Guard against None logger (can happen with third-party libraries during shutdown)
    if logger is None or not hasattr(logger, "name"):
        event_dict["component"] = "unknown"
        return event_dict

    event_dict["component"] = _component_from_name(logger.name)
    return event_dict


def _add_component_from_event_dict(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Add component name using the logger name placed by add_logger_name."""
    event_dict.setdefault("component", _component_from_name(event_dict.get("logger", "")))
    return event_dict


def _configure_file_handler(log_dir: pathlib.Path) -> logging.handlers.RotatingFileHandler:
    """Configure rotating file handler for JSON logs.

    Args:
        log_dir: Directory for log files.

    Returns:
        Configured RotatingFileHandler.
    """
    log_dir.mkdir(parents=True, exist_ok=True)

    handler = logging.handlers.RotatingFileHandler(
        filename=str(log_dir / "current.jsonl"),
        maxBytes=20 * 1024 * 1024,  # 20 MB
        backupCount=3,
        encoding="utf-8",
    )
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(),
            foreign_pre_chain=[
                structlog.stdlib.add_log_level,
                structlog.stdlib.add_logger_name,
                _add_timestamp,  # type: ignore[list-item]
                _add_component,  # type: ignore[list-item]
            ],
        )
    )
    return handler


def _configure_console_handler(log_format: str = "console") -> logging.StreamHandler[Any]:
    """Configure console handler: pretty-printed, or JSON lines when log_format is "json"."""
    renderer: Any
    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=renderer,
            foreign_pre_chain=[
                structlog.stdlib.add_log_level,
                structlog.stdlib.add_logger_name,
                _add_timestamp,  # type: ignore[list-item]
                _add_component,  # type: ignore[list-item]
            ],
        )
    )
    return handler


def configure_logging(settings: "AppConfig | None" = None) -> None:
    """Configure structlog for structured logging.

    Call once at application startup. Sets up JSON file output (when a log
    directory is configured and writable) and console output.

    Args:
        settings: Loaded configuration. Without it the level, directory and
            console format are read from the environment.
    """
    if settings is not None:
        log_level, log_dir, log_format = settings.log_level, settings.log_dir, settings.log_format
    else:
        log_level, log_dir, log_format = _get_log_level(), _get_log_dir(), _get_log_format()

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    logging.getLogger("asyncio").setLevel(logging.WARNING)

    configured_level = getattr(logging, log_level, logging.INFO)

    if log_dir is not None:
        try:
            file_handler = _configure_file_handler(log_dir)
        except OSError as e:
            # console only
            sys.stderr.write(f"host_metrics: file logging disabled ({e})\n")
        else:
            file_handler.setLevel(logging.INFO)
            root_logger.addHandler(file_handler)

    console_handler = _configure_console_handler(log_format)
    console_handler.setLevel(configured_level)
    root_logger.addHandler(console_handler)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            _add_component_from_event_dict,  # type: ignore[list-item]
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> Any:  # Returns structlog.stdlib.BoundLogger
    """Get a structured logger instance.

    Args:
        name: Logger name (typically __name__ of the calling module).

    Returns:
        Configured structlog logger instance.

    Example:
        >>> from host_metrics.telemetry import get_logger
        >>> log = get_logger(__name__)
        >>> log.info("sensor_poll", source="cpu", cache_hit=False)
    """
    if not structlog.is_configured():
        configure_logging()

    return structlog.get_logger(name)
