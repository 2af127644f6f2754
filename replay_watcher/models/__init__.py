"""Data models for the replay watcher."""

from .config import WatcherConfig
from .events import ClientEvent, EventDescriptor
from .replay import DirectoryEntry, GameId, ReplayOutcome

__all__ = [
    "ClientEvent",
    "DirectoryEntry",
    "EventDescriptor",
    "GameId",
    "ReplayOutcome",
    "WatcherConfig",
]
