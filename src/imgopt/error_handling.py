"""Standardized Error Handling Utilities

Defines the error taxonomy of the optimizer and the helpers that turn
arbitrary exceptions into it with consistent logging.
"""

from __future__ import annotations

import logging
import traceback
from collections.abc import Iterator
from contextlib import contextmanager
from enum import Enum
from pathlib import Path


class ErrorLevel(Enum):
    """Error severity levels for consistent logging."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ImageOptimizationError(Exception):
    """Base exception class for all optimizer errors."""

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


class ConfigurationError(ImageOptimizationError):
    """Raised when the service is constructed with invalid arguments."""


class UnsupportedImageError(ImageOptimizationError):
    """Raised when a file is not a PNG, JPEG or GIF image."""


class ToolNotFoundError(ImageOptimizationError):
    """Raised when an external executable is missing or not executable."""

    def __init__(self, tool: str, path: Path | str):
        super().__init__(
            f"Required tool '{tool}' not found at {path}",
            context={"tool": tool, "path": str(path)},
        )
        self.tool = tool
        self.path = Path(path)


def optimization_error_message(canonical_path: Path | str) -> str:
    """Message shared by every failure of a single tool invocation."""
    return f'Error while optimizing the file "{canonical_path}"'


class ToolExecutionError(ImageOptimizationError):
    """Raised when an external executable exits with a non-zero status.

    ``str(error)`` is exactly ``Error while optimizing the file "<path>"``;
    the tool, exit code and stderr excerpt are kept as attributes.
    """

    def __init__(
        self,
        tool: str,
        canonical_path: Path | str,
        exit_code: int | None,
        stderr: str = "",
    ):
        super().__init__(
            optimization_error_message(canonical_path),
            context={"tool": tool, "exit_code": exit_code, "stderr": stderr},
        )
        self.tool = tool
        self.canonical_path = Path(canonical_path)
        self.exit_code = exit_code
        self.stderr = stderr


class ToolTimeoutError(ImageOptimizationError):
    """Raised when an external executable exceeds its time bound."""

    def __init__(self, tool: str, canonical_path: Path | str, timeout: float):
        super().__init__(
            optimization_error_message(canonical_path),
            context={"tool": tool, "timeout": timeout},
        )
        self.tool = tool
        self.canonical_path = Path(canonical_path)
        self.timeout = timeout


def handle_error(
    error: Exception,
    operation: str,
    error_type: type[ImageOptimizationError] = ImageOptimizationError,
    level: ErrorLevel = ErrorLevel.ERROR,
    context: dict | None = None,
    logger: logging.Logger | None = None,
    reraise: bool = True,
) -> ImageOptimizationError | None:
    """Log *error* and transform it into *error_type*.

    Args:
        error: Original exception that occurred
        operation: Description of operation that failed
        error_type: Type of ImageOptimizationError to raise
        level: Logging level for the error
        context: Additional context information
        logger: Logger to use (defaults to module logger)
        reraise: Whether to reraise the transformed exception

    Returns:
        The transformed error if reraise=False, otherwise None

    Raises:
        ImageOptimizationError: Transformed error if reraise=True
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

    log_message = f"{operation.capitalize()} failed: {error}"
    context_str = ", ".join(
        f"{k}={v}" for k, v in error_context.items() if k != "operation"
    )
    if context_str:
        log_message += f" (context: {context_str})"

    getattr(logger, level.value)(log_message)

    if level in [ErrorLevel.ERROR, ErrorLevel.CRITICAL]:
        logger.debug(f"Traceback for {operation}: {traceback.format_exc()}")

    if reraise:
        raise transformed_error from error
    return transformed_error


@contextmanager
def error_context(
    operation: str,
    error_type: type[ImageOptimizationError] = ImageOptimizationError,
    level: ErrorLevel = ErrorLevel.ERROR,
    context: dict | None = None,
    logger: logging.Logger | None = None,
) -> Iterator[None]:
    """Context manager for standardized error handling.

    Usage:
        with error_context("copy source file", ConfigurationError, context={'file': 'a.png'}):
            risky_operation()
    """
    try:
        yield
    except ImageOptimizationError:
        raise
    except Exception as e:
        handle_error(e, operation, error_type, level, context, logger, reraise=True)


def log_warning_with_context(
    message: str, context: dict | None = None, logger: logging.Logger | None = None
) -> None:
    """Log a warning with standardized context formatting."""
    if logger is None:
        logger = logging.getLogger(__name__)

    warning_msg = message
    if context:
        context_str = ", ".join(f"{k}={v}" for k, v in context.items())
        warning_msg += f" (context: {context_str})"

    logger.warning(warning_msg)


def stderr_excerpt(stderr: str | bytes | None, max_length: int = 500) -> str:
    """Return a single-line, bounded excerpt of a tool's diagnostic output."""
    if not stderr:
        return ""
    if isinstance(stderr, bytes):
        stderr = stderr.decode("utf-8", errors="replace")

    cleaned = " ".join(stderr.split())
    if len(cleaned) > max_length:
        cleaned = cleaned[: max_length - 3] + "..."
    return cleaned
