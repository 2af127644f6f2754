"""Service layer for the watcher workflow and its external integrations."""

from .config import ConfigurationService, ValidationResult
from .credentials import ClientCredentials, discover_credentials
from .errors import (
    AppError,
    ClientConnectionError,
    ClientNotFoundError,
    ClientRequestError,
    ConfigurationError,
    DirectoryUnavailableError,
    ErrorCategory,
    ErrorHandlingService,
    ErrorSeverity,
    FileSystemError,
    ReplayNotReadyError,
    RetryExhaustedError,
    UserFriendlyError,
    ValidationError,
    get_error_service,
    handle_error,
)
from .event_feed import ClientEventFeed
from .filesystem import FileSystemService, default_replay_directory
from .lcu_client import LeagueClientService
from .replay_locator import locate_replay
from .retry import RetryExecutor, RetryOptions, retry
from .watcher import END_OF_GAME_EVENT, GameCompletionWatcher, WatcherState

__all__ = [
    "AppError",
    "ClientConnectionError",
    "ClientCredentials",
    "ClientEventFeed",
    "ClientNotFoundError",
    "ClientRequestError",
    "ConfigurationError",
    "ConfigurationService",
    "DirectoryUnavailableError",
    "END_OF_GAME_EVENT",
    "ErrorCategory",
    "ErrorHandlingService",
    "ErrorSeverity",
    "FileSystemError",
    "FileSystemService",
    "GameCompletionWatcher",
    "LeagueClientService",
    "ReplayNotReadyError",
    "RetryExecutor",
    "RetryExhaustedError",
    "RetryOptions",
    "UserFriendlyError",
    "ValidationError",
    "ValidationResult",
    "WatcherState",
    "default_replay_directory",
    "discover_credentials",
    "get_error_service",
    "handle_error",
    "locate_replay",
    "retry",
]
