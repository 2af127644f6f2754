"""Finds a game's replay file in a directory listing."""

from collections.abc import Sequence

from ..models import DirectoryEntry, GameId

REPLAY_EXTENSION = ".rofl"


def replay_suffix(game_id: GameId | str) -> str:
    """File name suffix of the replay for ``game_id``, e.g. ``123.rofl``."""
    return f"{game_id}{REPLAY_EXTENSION}"


def locate_replay(
    entries: Sequence[DirectoryEntry] | None,
    game_id: GameId | str,
) -> DirectoryEntry | None:
    """Return the first regular file whose name ends with ``<game_id>.rofl``.

    Client file names carry a region prefix (``EUW1-123.rofl``) so the match
    is on the suffix. ``entries`` may be None when the directory could not be
    read, which is treated like an empty listing.
    """
    if not entries:
        return None

    suffix = replay_suffix(game_id)
    for entry in entries:
        if entry.is_file and entry.name.endswith(suffix):
            return entry
    return None
