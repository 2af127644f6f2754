"""Tests for the game completion watcher workflow."""

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from replay_watcher.models import ClientEvent, DirectoryEntry, WatcherConfig
from replay_watcher.services.errors import ClientRequestError, DirectoryUnavailableError
from replay_watcher.services.event_feed import ClientEventFeed
from replay_watcher.services.filesystem import FileSystemService
from replay_watcher.services.lcu_client import LeagueClientService
from replay_watcher.services.watcher import END_OF_GAME_EVENT, GameCompletionWatcher, WatcherState


REPLAY_DIR = Path("/replays")


class RecordingSleep:
    """Records delays and yields to the event loop instead of waiting."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


def end_of_game(game_id: object) -> ClientEvent:
    return ClientEvent(uri=END_OF_GAME_EVENT.path, event_type="Create", data={"gameId": game_id})


def create_watcher(
    listings: list[object] | None = None,
    state: str = "watch",
) -> tuple[GameCompletionWatcher, AsyncMock, MagicMock, RecordingSleep]:
    """Create a watcher with mocked client and file system."""
    client = AsyncMock(spec=LeagueClientService)
    client.request_replay_download.return_value = None
    client.get_replay_metadata.return_value = {"state": state}

    filesystem = MagicMock(spec=FileSystemService)
    if listings is not None:
        filesystem.list_directory.side_effect = listings

    sleep = RecordingSleep()
    watcher = GameCompletionWatcher(
        client=client,
        filesystem=filesystem,
        replay_directory=REPLAY_DIR,
        config=WatcherConfig(),
        sleep=sleep,
    )
    return watcher, client, filesystem, sleep


@pytest.mark.asyncio
async def test_file_appears_on_last_poll() -> None:
    """The replay found on the fifth poll is reported after the full schedule."""
    replay = DirectoryEntry(name="match555.rofl", is_file=True)
    watcher, client, filesystem, sleep = create_watcher(
        # Initial probe, four empty polls, then the file
        listings=[[], [], [], [], [], [replay]],
    )

    outcome = await watcher.handle_event(end_of_game(555))

    assert outcome is not None
    assert outcome.success
    assert outcome.file_name == "match555.rofl"
    assert outcome.game_id == 555
    client.request_replay_download.assert_awaited_once_with(555)
    assert client.get_replay_metadata.await_count == 5
    assert filesystem.list_directory.call_count == 6
    filesystem.list_directory.assert_called_with(REPLAY_DIR)

    # Download: 5s initial. Polling: 5s initial then 5s between attempts.
    assert sleep.delays == [5.0, 5.0, 5.0, 5.0, 5.0, 5.0]
    assert sum(sleep.delays[1:]) == 25.0
    assert watcher.state == WatcherState.IDLE
    assert watcher.last_outcome == outcome


@pytest.mark.asyncio
async def test_unreadable_directory_skips_polling() -> None:
    """A directory that cannot be read ends the workflow without polling."""
    watcher, client, filesystem, sleep = create_watcher(
        listings=[DirectoryUnavailableError("Couldn't access replay directory at /replays.", path="/replays")],
    )

    outcome = await watcher.handle_event(end_of_game(42))

    assert outcome is not None
    assert not outcome.success
    assert "Couldn't access replay directory" in outcome.message
    client.request_replay_download.assert_awaited_once_with(42)
    client.get_replay_metadata.assert_not_awaited()
    assert filesystem.list_directory.call_count == 1
    assert sleep.delays == [5.0]
    assert watcher.state == WatcherState.IDLE


@pytest.mark.asyncio
async def test_duplicate_events_start_one_workflow() -> None:
    """Two events for the same game during one workflow trigger one download."""
    replay = DirectoryEntry(name="EUW1-7.rofl", is_file=True)
    watcher, client, filesystem, _ = create_watcher()
    filesystem.list_directory.return_value = [replay]

    first, second = await asyncio.gather(
        watcher.handle_event(end_of_game(7)),
        watcher.handle_event(end_of_game(7)),
    )

    assert first is not None and first.success
    assert second is None
    client.request_replay_download.assert_awaited_once_with(7)


@pytest.mark.asyncio
async def test_repeated_event_after_completion_is_ignored() -> None:
    """A game already handled is not downloaded again."""
    watcher, client, filesystem, _ = create_watcher()
    filesystem.list_directory.return_value = [DirectoryEntry(name="NA1-8.rofl", is_file=True)]

    await watcher.handle_event(end_of_game(8))
    assert await watcher.handle_event(end_of_game(8)) is None

    client.request_replay_download.assert_awaited_once_with(8)


@pytest.mark.asyncio
async def test_distinct_games_run_independent_workflows() -> None:
    """Each accepted game uses its own id for requests and file matching."""
    watcher, client, filesystem, _ = create_watcher()
    filesystem.list_directory.return_value = [
        DirectoryEntry(name="EUW1-100.rofl", is_file=True),
        DirectoryEntry(name="EUW1-200.rofl", is_file=True),
    ]

    first, second = await asyncio.gather(
        watcher.handle_event(end_of_game(100)),
        watcher.handle_event(end_of_game(200)),
    )

    assert first is not None and first.file_name == "EUW1-100.rofl"
    assert second is not None and second.file_name == "EUW1-200.rofl"
    assert [c.args for c in client.request_replay_download.await_args_list] == [(100,), (200,)]
    assert {c.args for c in client.get_replay_metadata.await_args_list} == {(100,), (200,)}
    assert watcher.last_game_id == 200


@pytest.mark.asyncio
async def test_failed_download_request_still_polls() -> None:
    """An exhausted download request is tolerated and polling proceeds."""
    watcher, client, filesystem, sleep = create_watcher()
    client.request_replay_download.side_effect = ClientRequestError(
        "POST failed with status 409.", method="post", path="/lol-replays/v1/rofls/9/download", status_code=409
    )
    filesystem.list_directory.return_value = [DirectoryEntry(name="KR-9.rofl", is_file=True)]

    outcome = await watcher.handle_event(end_of_game(9))

    assert client.request_replay_download.await_count == 3
    assert sleep.delays[:3] == [5.0, 10.0, 10.0]
    assert outcome is not None and outcome.success
    assert outcome.file_name == "KR-9.rofl"


@pytest.mark.asyncio
async def test_gives_up_after_poll_retries() -> None:
    """A replay that never becomes ready is reported as failed and the watcher stays usable."""
    watcher, client, filesystem, _ = create_watcher(state="downloading")
    filesystem.list_directory.return_value = []

    outcome = await watcher.handle_event(end_of_game(11))

    assert outcome is not None
    assert not outcome.success
    assert outcome.message == "Failed to download replay for game 11."
    assert client.get_replay_metadata.await_count == 5
    # Only the initial probe reads the directory while the replay is downloading
    assert filesystem.list_directory.call_count == 1
    assert watcher.state == WatcherState.IDLE

    client.get_replay_metadata.return_value = {"state": "watch"}
    filesystem.list_directory.return_value = [DirectoryEntry(name="EUW1-12.rofl", is_file=True)]
    next_outcome = await watcher.handle_event(end_of_game(12))
    assert next_outcome is not None and next_outcome.success


@pytest.mark.asyncio
async def test_unexpected_replay_state_is_retried() -> None:
    """Replay states other than 'watch' count as not ready."""
    watcher, client, filesystem, _ = create_watcher()
    client.get_replay_metadata.side_effect = [
        {"state": "checking"},
        {"state": "downloading"},
        {"state": "watch"},
    ]
    filesystem.list_directory.return_value = [DirectoryEntry(name="EUW1-13.rofl", is_file=True)]

    outcome = await watcher.handle_event(end_of_game(13))

    assert outcome is not None and outcome.success
    assert client.get_replay_metadata.await_count == 3


@pytest.mark.asyncio
async def test_directory_failure_during_polling_is_retried() -> None:
    """A transiently unreadable directory inside the poll loop is just another failed attempt."""
    replay = DirectoryEntry(name="EUW1-14.rofl", is_file=True)
    watcher, _, _, _ = create_watcher(
        listings=[[], DirectoryUnavailableError("Couldn't access replay directory at /replays."), [replay]],
    )

    outcome = await watcher.handle_event(end_of_game(14))

    assert outcome is not None and outcome.success
    assert outcome.file_name == "EUW1-14.rofl"


@pytest.mark.asyncio
@pytest.mark.parametrize("data", [None, {}, {"gameId": None}, {"gameId": 0}, ["not", "a", "dict"]])
async def test_events_without_game_id_are_ignored(data: object) -> None:
    """Events without a usable game id do not start a workflow."""
    watcher, client, _, _ = create_watcher()

    outcome = await watcher.handle_event(ClientEvent(uri=END_OF_GAME_EVENT.path, event_type="Update", data=data))

    assert outcome is None
    client.request_replay_download.assert_not_awaited()
    assert watcher.last_game_id is None


@pytest.mark.asyncio
async def test_state_transitions() -> None:
    """The watcher moves through download and polling states and back to idle."""
    watcher, client, filesystem, _ = create_watcher()
    seen: list[WatcherState] = []

    async def record_download(_: int) -> None:
        seen.append(watcher.state)

    async def record_metadata(_: int) -> dict[str, str]:
        seen.append(watcher.state)
        return {"state": "watch"}

    client.request_replay_download.side_effect = record_download
    client.get_replay_metadata.side_effect = record_metadata
    filesystem.list_directory.return_value = [DirectoryEntry(name="EUW1-15.rofl", is_file=True)]

    assert watcher.state == WatcherState.IDLE
    await watcher.handle_event(end_of_game(15))

    assert seen == [WatcherState.DOWNLOAD_REQUESTED, WatcherState.POLLING_FOR_FILE]
    assert watcher.state == WatcherState.IDLE


def test_register_subscribes_to_end_of_game_event() -> None:
    """The watcher registers its handler for the end-of-game stats event."""
    watcher, _, _, _ = create_watcher()
    feed = MagicMock(spec=ClientEventFeed)

    watcher.register(feed)

    feed.register_handler.assert_called_once_with(END_OF_GAME_EVENT, watcher.handle_event)
    assert END_OF_GAME_EVENT.path == "/lol-end-of-game/v1/eog-stats-block"
    assert END_OF_GAME_EVENT.types == ("Create", "Update")
