"""Error handling module for the replay watcher.

This module provides:
- Custom exception classes for the client, file system, retry and configuration failures
- User-friendly error message generation with suggested actions
- A centralized error handling service that logs and records failures
"""

import json
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any

import aiohttp
import httpx
import structlog

log = structlog.stdlib.get_logger()


class ErrorCategory(Enum):
    """Categories of errors for classification and handling."""
    CLIENT = "client"
    FILE_SYSTEM = "file_system"
    REPLAY = "replay"
    RETRY = "retry"
    CONFIGURATION = "configuration"
    VALIDATION = "validation"
    UNEXPECTED = "unexpected"


class ErrorSeverity(Enum):
    """Severity levels for errors."""
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


@dataclass(frozen=True)
class ErrorContext:
    """Context information for an error."""
    operation: str
    component: str
    details: dict[str, Any]


@dataclass(frozen=True)
class UserFriendlyError:
    """User-friendly error representation with suggested actions."""
    message: str
    category: ErrorCategory
    severity: ErrorSeverity
    suggested_actions: list[str]
    technical_details: str | None = None
    recoverable: bool = True


class AppError(Exception):
    """Base exception class for application errors."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNEXPECTED,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        suggested_actions: list[str] | None = None,
        technical_details: str | None = None,
        recoverable: bool = True,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.suggested_actions = suggested_actions or []
        self.technical_details = technical_details
        self.recoverable = recoverable
        self.context = context

    def to_user_friendly(self) -> UserFriendlyError:
        """Convert to user-friendly error representation."""
        return UserFriendlyError(
            message=self.message,
            category=self.category,
            severity=self.severity,
            suggested_actions=self.suggested_actions,
            technical_details=self.technical_details,
            recoverable=self.recoverable,
        )


class ClientConnectionError(AppError):
    """Exception raised when the League client cannot be reached."""

    def __init__(
        self,
        message: str,
        original_error: Exception | None = None,
    ) -> None:
        technical_details = None
        if original_error:
            technical_details = f"{type(original_error).__name__}: {str(original_error)}"

        super().__init__(
            message=message,
            category=ErrorCategory.CLIENT,
            severity=ErrorSeverity.ERROR,
            suggested_actions=[
                "Make sure the League client is running",
                "Log in to the client and wait for it to finish loading",
            ],
            technical_details=technical_details,
            recoverable=True,
        )
        self.original_error = original_error


class ClientNotFoundError(ClientConnectionError):
    """Exception raised when no running client could be discovered."""


class ClientRequestError(AppError):
    """Exception for failed requests against the client API."""

    def __init__(
        self,
        message: str,
        method: str | None = None,
        path: str | None = None,
        status_code: int | None = None,
        original_error: Exception | None = None,
    ) -> None:
        suggested_actions = ["Try again in a few moments"]
        if status_code:
            if status_code == 404:
                suggested_actions = [
                    "The replay may not be available for this game",
                    "Check that the game id is correct",
                ]
            elif status_code == 409:
                suggested_actions = [
                    "A download for this replay is probably already in progress",
                ]
            elif status_code >= 500:
                suggested_actions = [
                    "The client is not ready yet",
                    "Try again later",
                ]

        technical_details = None
        if original_error:
            technical_details = f"{type(original_error).__name__}: {str(original_error)}"
        if method and path:
            technical_details = f"Request: {method.upper()} {path}" + (f"\n{technical_details}" if technical_details else "")
        if status_code:
            technical_details = f"Status: {status_code}" + (f"\n{technical_details}" if technical_details else "")

        super().__init__(
            message=message,
            category=ErrorCategory.CLIENT,
            severity=ErrorSeverity.ERROR,
            suggested_actions=suggested_actions,
            technical_details=technical_details,
            recoverable=True,
        )
        self.method = method
        self.path = path
        self.status_code = status_code
        self.original_error = original_error


class FileSystemError(AppError):
    """Exception for file system-related errors."""

    def __init__(
        self,
        message: str,
        original_error: Exception | None = None,
        path: str | None = None,
        operation: str | None = None,
    ) -> None:
        suggested_actions = self._get_suggested_actions(original_error)

        technical_details = None
        if original_error:
            technical_details = f"{type(original_error).__name__}: {str(original_error)}"
        if path:
            technical_details = f"Path: {path}" + (f"\n{technical_details}" if technical_details else "")

        super().__init__(
            message=message,
            category=ErrorCategory.FILE_SYSTEM,
            severity=ErrorSeverity.ERROR,
            suggested_actions=suggested_actions,
            technical_details=technical_details,
            recoverable=True,
        )
        self.original_error = original_error
        self.path = path
        self.operation = operation

    @staticmethod
    def _get_suggested_actions(original_error: Exception | None) -> list[str]:
        """Get suggested actions based on error type."""
        if isinstance(original_error, PermissionError):
            return [
                "Check directory permissions",
                "Try running with appropriate permissions",
            ]
        elif isinstance(original_error, FileNotFoundError):
            return [
                "Verify the replay directory path is correct",
                "Change the replay folder in the client settings or pass --replay-dir",
            ]

        return [
            "Check the directory path and permissions",
        ]


class DirectoryUnavailableError(FileSystemError):
    """Exception raised when the replay directory cannot be listed."""


class ReplayNotReadyError(AppError):
    """Raised inside a poll attempt while the replay file is not available yet."""

    def __init__(self, message: str, game_id: int | None = None, state: str | None = None) -> None:
        technical_details = None
        if game_id is not None:
            technical_details = f"Game: {game_id}"
        if state:
            technical_details = (technical_details or "") + f"\nState: {state}"

        super().__init__(
            message=message,
            category=ErrorCategory.REPLAY,
            severity=ErrorSeverity.WARNING,
            suggested_actions=["Wait for the client to finish the download"],
            technical_details=technical_details,
            recoverable=True,
        )
        self.game_id = game_id
        self.state = state


class RetryExhaustedError(AppError):
    """Raised when every attempt of a retried operation has failed.

    ``errors`` holds the failure of each attempt in order.
    """

    def __init__(self, errors: list[Exception]) -> None:
        attempts = len(errors)
        message = f"Failed to execute function in {attempts} attempt{'s' if attempts != 1 else ''}."
        technical_details = "\n".join(
            f"Attempt {index}: {type(error).__name__}: {error}"
            for index, error in enumerate(errors, start=1)
        )

        super().__init__(
            message=message,
            category=ErrorCategory.RETRY,
            severity=ErrorSeverity.ERROR,
            suggested_actions=["Check the individual attempt errors"],
            technical_details=technical_details or None,
            recoverable=True,
        )
        self.errors = list(errors)
        self.attempts = attempts

    @property
    def last_error(self) -> Exception | None:
        """The failure of the final attempt."""
        return self.errors[-1] if self.errors else None


class ValidationError(AppError):
    """Exception for validation-related errors."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        value: Any = None,
    ) -> None:
        technical_details = None
        if field:
            technical_details = f"Field: {field}"
        if value is not None:
            value_str = str(value)[:100]  # Truncate long values
            technical_details = (technical_details or "") + f"\nValue: {value_str}"

        super().__init__(
            message=message,
            category=ErrorCategory.VALIDATION,
            severity=ErrorSeverity.WARNING,
            suggested_actions=["Review the input requirements"],
            technical_details=technical_details,
            recoverable=True,
        )
        self.field = field
        self.value = value


class ConfigurationError(AppError):
    """Exception for configuration-related errors."""

    def __init__(
        self,
        message: str,
        setting: str | None = None,
        current_value: Any = None,
        expected: str | None = None,
    ) -> None:
        suggested_actions = [
            "Check the configuration settings",
            "Reset to default values if needed",
        ]
        if expected:
            suggested_actions.append(f"Expected: {expected}")

        technical_details = None
        if setting:
            technical_details = f"Setting: {setting}"
        if current_value is not None:
            technical_details = (technical_details or "") + f"\nCurrent: {current_value}"

        super().__init__(
            message=message,
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.ERROR,
            suggested_actions=suggested_actions,
            technical_details=technical_details,
            recoverable=True,
        )
        self.setting = setting
        self.current_value = current_value
        self.expected = expected


class ErrorHandlingService:
    """Centralized error handling service.

    This service provides:
    - Error classification and user-friendly message generation
    - Error logging with technical details
    - A bounded history of recent errors
    """

    def __init__(self, max_history_size: int = 100) -> None:
        """Initialize the error handling service."""
        self._error_history: list[tuple[float, AppError]] = []
        self._max_history_size = max_history_size
        log.debug("Error handling service initialized")

    def handle_error(
        self,
        error: Exception,
        operation: str,
        component: str,
        context: dict[str, Any] | None = None,
    ) -> UserFriendlyError:
        """Handle an error and return a user-friendly representation.

        Args:
            error: The exception that occurred
            operation: The operation being performed
            component: The component where the error occurred
            context: Additional context information

        Returns:
            User-friendly error representation
        """
        app_error = self._convert_to_app_error(error, operation, component, context)

        self._log_error(app_error, operation, component, context)

        self._error_history.append((time.time(), app_error))
        if len(self._error_history) > self._max_history_size:
            self._error_history.pop(0)

        return app_error.to_user_friendly()

    def _convert_to_app_error(
        self,
        error: Exception,
        operation: str,
        component: str,
        context: dict[str, Any] | None,
    ) -> AppError:
        """Convert a standard exception to an AppError."""
        if isinstance(error, AppError):
            return error

        # Client errors
        if isinstance(error, httpx.HTTPStatusError):
            return ClientRequestError(
                message=f"The client rejected the request (HTTP {error.response.status_code}).",
                method=error.request.method if error.request else None,
                path=error.request.url.path if error.request else None,
                status_code=error.response.status_code,
                original_error=error,
            )
        elif isinstance(error, (httpx.RequestError, aiohttp.ClientError)):
            return ClientConnectionError(
                message="Unable to reach the League client.",
                original_error=error,
            )

        # File system errors
        elif isinstance(error, PermissionError):
            return FileSystemError(
                message="Permission denied. You don't have access to this file or directory.",
                original_error=error,
                path=context.get("path") if context else None,
                operation=operation,
            )
        elif isinstance(error, FileNotFoundError):
            return FileSystemError(
                message="The file or directory was not found.",
                original_error=error,
                path=context.get("path") if context else None,
                operation=operation,
            )
        elif isinstance(error, OSError):
            return FileSystemError(
                message=f"A file system error occurred: {str(error)}",
                original_error=error,
                path=context.get("path") if context else None,
                operation=operation,
            )

        # JSON errors are ValueErrors, check them first
        elif isinstance(error, json.JSONDecodeError):
            return ValidationError(
                message="Invalid JSON format. The data could not be parsed.",
                field="json_content",
            )
        elif isinstance(error, ValueError):
            return ValidationError(
                message=str(error),
                field=context.get("field") if context else None,
                value=context.get("value") if context else None,
            )

        return AppError(
            message="An unexpected error occurred.",
            category=ErrorCategory.UNEXPECTED,
            severity=ErrorSeverity.ERROR,
            technical_details=f"{type(error).__name__}: {str(error)}",
            recoverable=True,
            context=ErrorContext(
                operation=operation,
                component=component,
                details=context or {},
            ),
        )

    def _log_error(
        self,
        error: AppError,
        operation: str,
        component: str,
        context: dict[str, Any] | None,
    ) -> None:
        """Log error with full technical details."""
        log_method = log.error if error.severity != ErrorSeverity.WARNING else log.warning

        log_method(
            "Error occurred",
            error_message=error.message,
            category=error.category.value,
            severity=error.severity.value,
            operation=operation,
            component=component,
            technical_details=error.technical_details,
            recoverable=error.recoverable,
            context=context,
        )

    def get_recent_errors(self, count: int = 10) -> list[AppError]:
        """Get recent errors from history.

        Args:
            count: Number of recent errors to return

        Returns:
            List of recent AppError instances
        """
        recent = self._error_history[-count:] if self._error_history else []
        return [error for _, error in recent]

    def get_error_count_by_category(self) -> dict[ErrorCategory, int]:
        """Get count of errors by category."""
        counts: dict[ErrorCategory, int] = {}
        for _, error in self._error_history:
            counts[error.category] = counts.get(error.category, 0) + 1
        return counts

    def create_user_message(
        self,
        error: UserFriendlyError,
        include_suggestions: bool = True,
    ) -> str:
        """Create a formatted user message from an error.

        Args:
            error: The user-friendly error
            include_suggestions: Whether to include suggested actions

        Returns:
            Formatted message string
        """
        parts = [error.message]

        if include_suggestions and error.suggested_actions:
            parts.append("\nSuggested actions:")
            for action in error.suggested_actions[:3]:  # Limit to 3 suggestions
                parts.append(f"  • {action}")

        return "\n".join(parts)


# Global error handling service instance
_error_service: ErrorHandlingService | None = None


def get_error_service() -> ErrorHandlingService:
    """Get the global error handling service instance."""
    global _error_service
    if _error_service is None:
        _error_service = ErrorHandlingService()
    return _error_service


def handle_error(
    error: Exception,
    operation: str,
    component: str,
    context: dict[str, Any] | None = None,
) -> UserFriendlyError:
    """Convenience function to handle errors using the global service."""
    return get_error_service().handle_error(error, operation, component, context)
