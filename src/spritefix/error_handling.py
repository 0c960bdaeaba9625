"""Standardized Error Handling Utilities

Provides consistent error handling patterns across the SpriteFix codebase
so codec failures, bad inputs and soft failures are reported the same way.
"""

from __future__ import annotations

import logging
import traceback
from contextlib import contextmanager
from enum import Enum
from typing import Any


class ErrorLevel(Enum):
    """Error severity levels for consistent logging."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class SpriteFixError(Exception):
    """Base exception class for all SpriteFix errors."""

    def __init__(
        self, message: str, cause: Exception | None = None, context: dict | None = None
    ):
        super().__init__(message)
        self.cause = cause
        self.context = context or {}

    def __str__(self) -> str:
        base_msg = super().__str__()
        if self.cause:
            return f"{base_msg} (caused by: {self.cause})"
        return base_msg


class ValidationError(SpriteFixError):
    """Raised when input validation fails."""

    pass


class CodecError(SpriteFixError):
    """Raised when decoding, encoding or compositing a frame fails.

    Codec failures are fatal: a frame that cannot be decoded cannot be
    analyzed, so the whole run is aborted.
    """

    pass


class ConfigurationError(SpriteFixError):
    """Raised when configuration is invalid or missing."""

    pass


class DetectionError(SpriteFixError):
    """Raised when anomaly detection cannot complete."""

    pass


def _format_context(context: dict | None) -> str:
    if not context:
        return ""
    return ", ".join(f"{k}={v}" for k, v in context.items())


def handle_error(
    error: Exception,
    operation: str,
    error_type: type[SpriteFixError] = CodecError,
    level: ErrorLevel = ErrorLevel.ERROR,
    context: dict | None = None,
    logger: logging.Logger | None = None,
    reraise: bool = True,
) -> SpriteFixError | None:
    """Standardized error handling with consistent logging and error transformation.

    Args:
        error: Original exception that occurred
        operation: Description of operation that failed
        error_type: Type of SpriteFixError to raise
        level: Logging level for the error
        context: Additional context information
        logger: Logger to use (defaults to module logger)
        reraise: Whether to reraise the transformed exception

    Returns:
        The transformed error if reraise=False, otherwise None

    Raises:
        SpriteFixError: Transformed error if reraise=True
    """
    if logger is None:
        logger = logging.getLogger(__name__)

    message = f"Failed to {operation}: {error}"

    error_context = dict(context or {})
    error_context.update(
        {
            "operation": operation,
            "original_error_type": type(error).__name__,
        }
    )

    transformed_error = error_type(message, cause=error, context=error_context)

    log_message = f"🚨 {operation.capitalize()} failed: {error}"
    context_str = _format_context(error_context)
    if context_str:
        log_message += f" (context: {context_str})"

    log_func = getattr(logger, level.value)
    log_func(log_message)

    if level in [ErrorLevel.ERROR, ErrorLevel.CRITICAL]:
        logger.debug(f"Traceback for {operation}: {traceback.format_exc()}")

    if reraise:
        raise transformed_error from error
    return transformed_error


@contextmanager
def error_context(
    operation: str,
    error_type: type[SpriteFixError] = CodecError,
    level: ErrorLevel = ErrorLevel.ERROR,
    context: dict | None = None,
    logger: logging.Logger | None = None,
) -> Any:
    """Context manager for standardized error handling.

    Usage:
        with error_context("decode frame", CodecError, context={"index": 3}):
            codec.decode(frame)

    SpriteFixError subclasses pass through unchanged; anything else is
    wrapped in ``error_type`` and logged.
    """
    try:
        yield
    except SpriteFixError:
        raise
    except Exception as e:
        handle_error(e, operation, error_type, level, context, logger, reraise=True)


def log_warning_with_context(
    message: str, context: dict | None = None, logger: logging.Logger | None = None
) -> None:
    """Log a warning with standardized context formatting."""
    if logger is None:
        logger = logging.getLogger(__name__)

    warning_msg = f"⚠️  {message}"
    context_str = _format_context(context)
    if context_str:
        warning_msg += f" (context: {context_str})"

    logger.warning(warning_msg)


def log_info_with_context(
    message: str, context: dict | None = None, logger: logging.Logger | None = None
) -> None:
    """Log an info message with standardized context formatting."""
    if logger is None:
        logger = logging.getLogger(__name__)

    info_msg = f"ℹ️  {message}"
    context_str = _format_context(context)
    if context_str:
        info_msg += f" (context: {context_str})"

    logger.info(info_msg)
