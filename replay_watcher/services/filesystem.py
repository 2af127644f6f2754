"""File system service for reading the replay directory."""

import os
from pathlib import Path

import structlog

from ..models import DirectoryEntry
from .errors import DirectoryUnavailableError

log = structlog.stdlib.get_logger()


def default_replay_directory() -> Path:
    """Return the client's default replay folder (``~/Documents/League of Legends/Replays``)."""
    return Path.home() / "Documents" / "League of Legends" / "Replays"


class FileSystemService:
    """Service for file system operations with error handling."""

    def list_directory(self, directory: Path) -> list[DirectoryEntry]:
        """List the entries of a directory.

        Every call reads the directory again, so files created since the
        previous call are visible.

        Args:
            directory: Directory to list

        Returns:
            Entries in the order the operating system reports them

        Raises:
            DirectoryUnavailableError: If the directory cannot be read
        """
        try:
            with os.scandir(directory) as it:
                entries = [DirectoryEntry(name=entry.name, is_file=entry.is_file()) for entry in it]
        except OSError as e:
            log.warning("Failed to list directory", directory=str(directory), error=str(e))
            raise DirectoryUnavailableError(
                f"Couldn't access replay directory at {directory}.",
                original_error=e,
                path=str(directory),
                operation="list_directory",
            ) from e

        log.debug("Listed directory", directory=str(directory), count=len(entries))
        return entries

    def directory_exists(self, directory: Path) -> bool:
        """Check whether ``directory`` exists and is a directory."""
        try:
            return directory.is_dir()
        except OSError as e:
            log.warning("Failed to check directory", directory=str(directory), error=str(e))
            return False
