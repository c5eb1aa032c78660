"""Custom Pydantic validators for configuration.

This module provides validators for cross-field validation and
custom type conversions.
"""

from pathlib import Path


def validate_log_level(value: str) -> str:
    """Validate log level is one of the standard levels.

    Args:
        value: Log level string.

    Returns:
        Validated log level.

    Raises:
        ValueError: If log level is not valid.
    """
    valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
    if value.upper() not in valid_levels:
        raise ValueError(f"log_level must be one of {valid_levels}, got {value}")
    return value.upper()


def validate_log_format(value: str) -> str:
    """Validate log format is 'json' or 'console'.

    Args:
        value: Log format string.

    Returns:
        Validated log format.

    Raises:
        ValueError: If log format is not valid.
    """
    valid_formats = {"json", "console"}
    if value.lower() not in valid_formats:
        raise ValueError(f"log_format must be one of {valid_formats}, got {value}")
    return value.lower()


def validate_interval_bounds(min_ms: int, max_ms: int) -> None:
    """Validate that a polling band is non-empty.

    Raises:
        ValueError: If the minimum exceeds the maximum.
    """
    if min_ms > max_ms:
        raise ValueError(
            f"min_poll_interval_ms ({min_ms}) must not exceed max_poll_interval_ms ({max_ms})"
        )


def resolve_path(value: Path | str | None) -> Path | None:
    """Resolve relative paths against the working directory.

    Args:
        value: Path value (string, Path or None).

    Returns:
        Resolved Path object, or None when no path (or an empty one) was given.
    """
    if value is None or value == "":
        return None
    path = Path(value) if isinstance(value, str) else value
    return path.expanduser().resolve()
