"""Tests for locating replay files in a directory listing."""

from hypothesis import given, strategies as st

from replay_watcher.models import DirectoryEntry
from replay_watcher.services.replay_locator import locate_replay


names = st.text(
    min_size=1,
    max_size=20,
    alphabet=st.characters(whitelist_categories=("Lu", "Ll", "Nd"), whitelist_characters="-_."),
)
entries_strategy = st.lists(st.builds(DirectoryEntry, name=names, is_file=st.booleans()), max_size=10)


def test_finds_file_and_ignores_directory() -> None:
    """Only regular files whose name ends with <gameId>.rofl match."""
    entries = [
        DirectoryEntry(name="abc123.rofl", is_file=True),
        DirectoryEntry(name="xyz.rofl", is_file=True),
        DirectoryEntry(name="folder123.rofl", is_file=False),
    ]

    result = locate_replay(entries, "123")

    assert result == DirectoryEntry(name="abc123.rofl", is_file=True)


def test_directory_with_matching_name_is_skipped() -> None:
    """A directory listed before the file does not shadow it."""
    entries = [
        DirectoryEntry(name="EUW1-555.rofl", is_file=False),
        DirectoryEntry(name="EUW1-555.rofl.part", is_file=True),
        DirectoryEntry(name="NA1-555.rofl", is_file=True),
    ]

    assert locate_replay(entries, 555) == DirectoryEntry(name="NA1-555.rofl", is_file=True)


def test_substring_is_not_a_match() -> None:
    """The game id must sit directly before the extension."""
    entries = [
        DirectoryEntry(name="123-other.rofl", is_file=True),
        DirectoryEntry(name="EUW1-123.rofl.bak", is_file=True),
    ]

    assert locate_replay(entries, "123") is None


def test_first_match_in_listing_order_wins() -> None:
    """When several files match, the first listed one is returned."""
    entries = [
        DirectoryEntry(name="EUW1-7.rofl", is_file=True),
        DirectoryEntry(name="NA1-7.rofl", is_file=True),
    ]

    assert locate_replay(entries, 7).name == "EUW1-7.rofl"


def test_empty_or_unavailable_listing() -> None:
    """Empty and unavailable listings yield no replay."""
    assert locate_replay([], "123") is None
    assert locate_replay(None, "123") is None


@given(entries=entries_strategy, game_id=st.integers(min_value=1, max_value=10**12))
def test_result_always_satisfies_match_rule(entries: list[DirectoryEntry], game_id: int) -> None:
    """Any returned entry is a file ending with the replay suffix, and None means no such entry exists."""
    result = locate_replay(entries, game_id)
    suffix = f"{game_id}.rofl"

    if result is None:
        assert not any(e.is_file and e.name.endswith(suffix) for e in entries)
    else:
        assert result.is_file
        assert result.name.endswith(suffix)
        assert result is next(e for e in entries if e.is_file and e.name.endswith(suffix))
