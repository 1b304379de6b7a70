"""
Custom exception classes for docserve.

Provides specific exception types for the failure modes of the live document
index so callers can tell fatal startup problems apart from per-request
rejections.
"""

from typing import Any


class DocserveError(Exception):
    """
    Base exception class for all docserve errors.

    All custom exceptions in the system inherit from this base class
    to enable consistent error handling and logging.
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        """
        Initialize the error.

        Args:
            message: Human-readable error description
            error_code: Optional error code for programmatic handling
            context: Optional dictionary with error context information
            cause: Optional underlying exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context or {}
        self.cause = cause

    def __str__(self) -> str:
        """String representation including error code if present."""
        if self.error_code:
            return f"[{self.error_code}] {self.message}"
        return self.message

    def __repr__(self) -> str:
        """Detailed representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message='{self.message}', "
            f"error_code='{self.error_code}', "
            f"context={self.context})"
        )


class ConfigurationError(DocserveError):
    """Raised when there are configuration or settings issues."""

    def __init__(
        self,
        message: str,
        config_key: str | None = None,
        expected_type: str | None = None,
        actual_value: Any | None = None,
    ):
        context = {}
        if config_key:
            context["config_key"] = config_key
        if expected_type:
            context["expected_type"] = expected_type
        if actual_value is not None:
            context["actual_value"] = str(actual_value)

        super().__init__(message, error_code="CONFIG_ERROR", context=context)


class InitializationError(DocserveError):
    """Raised when the initial index cannot be built."""

    def __init__(
        self,
        message: str,
        path: str | None = None,
        initialization_stage: str | None = None,
        underlying_error: Exception | None = None,
    ):
        context = {}
        if path:
            context["path"] = path
        if initialization_stage:
            context["initialization_stage"] = initialization_stage

        super().__init__(
            message,
            error_code="INITIALIZATION_ERROR",
            context=context,
            cause=underlying_error,
        )


class WatchSetupError(DocserveError):
    """Raised when the filesystem watch on the root cannot be established."""

    def __init__(
        self,
        message: str,
        path: str | None = None,
        operation: str | None = None,
        underlying_error: Exception | None = None,
    ):
        context = {}
        if path:
            context["path"] = path
        if operation:
            context["operation"] = operation

        super().__init__(
            message,
            error_code="WATCH_SETUP_ERROR",
            context=context,
            cause=underlying_error,
        )


class PathEscapeError(DocserveError):
    """Raised when a requested path resolves outside the served root."""

    def __init__(self, message: str, requested_path: str | None = None, root: str | None = None):
        context = {}
        if requested_path is not None:
            context["requested_path"] = requested_path
        if root:
            context["root"] = root

        super().__init__(message, error_code="PATH_ESCAPE", context=context)


class DocumentNotFoundError(DocserveError):
    """Raised when a requested document or asset is not available."""

    def __init__(self, message: str, name: str | None = None):
        context = {}
        if name is not None:
            context["name"] = name

        super().__init__(message, error_code="NOT_FOUND", context=context)


class RenderError(DocserveError):
    """Raised by the strict render path when markdown conversion fails."""

    def __init__(self, message: str, underlying_error: Exception | None = None):
        super().__init__(message, error_code="RENDER_ERROR", cause=underlying_error)


class ChannelClosedError(DocserveError):
    """Raised by a client channel once the peer has gone away."""

    def __init__(self, message: str = "Client channel closed"):
        super().__init__(message, error_code="CHANNEL_CLOSED")


class ShutdownError(DocserveError):
    """Raised when monitoring shutdown fails."""

    def __init__(
        self,
        message: str,
        component: str | None = None,
        underlying_error: Exception | None = None,
    ):
        context = {}
        if component:
            context["component"] = component

        super().__init__(
            message,
            error_code="SHUTDOWN_ERROR",
            context=context,
            cause=underlying_error,
        )
