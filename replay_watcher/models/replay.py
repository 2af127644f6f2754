"""Replay-related data models."""

from dataclasses import dataclass


GameId = int


@dataclass(frozen=True)
class DirectoryEntry:
    """Snapshot of a single directory entry at listing time."""
    name: str
    is_file: bool


@dataclass(frozen=True)
class ReplayOutcome:
    """Final result of one download-and-locate workflow."""
    game_id: GameId
    success: bool
    message: str
    file_name: str | None = None
