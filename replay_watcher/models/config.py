"""Configuration data models."""

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class WatcherConfig:
    """Application configuration settings."""
    replay_directory: Path | None = None  # None = ask the client
    lockfile_path: Path | None = None  # None = scan running processes
    download_retries: int = 2
    download_retry_delay: float = 10.0
    download_initial_delay: float = 5.0  # Client needs time to register the finished game
    poll_retries: int = 4
    poll_retry_delay: float = 5.0
    poll_initial_delay: float = 5.0
    reconnect_delay: float = 2.0
    log_level: str = "INFO"
