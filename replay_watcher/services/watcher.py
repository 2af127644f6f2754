"""Watches for finished games and downloads their replays.

When the client publishes end-of-game stats for a new game the watcher asks
the client to download the replay, then polls the replay directory until the
``.rofl`` file shows up. Every step is retried on a fixed schedule and no
failure ever stops the watcher from handling the next game.
"""

import asyncio
from collections.abc import Awaitable, Callable
from enum import Enum
from pathlib import Path
from typing import Any

import structlog

from ..models import ClientEvent, DirectoryEntry, EventDescriptor, GameId, ReplayOutcome, WatcherConfig
from .errors import DirectoryUnavailableError, ReplayNotReadyError, RetryExhaustedError, handle_error
from .event_feed import ClientEventFeed
from .filesystem import FileSystemService
from .lcu_client import LeagueClientService
from .replay_locator import locate_replay
from .retry import RetryExecutor, RetryOptions, retry

log = structlog.stdlib.get_logger()

END_OF_GAME_EVENT = EventDescriptor(
    name="OnJsonApiEvent_lol-end-of-game_v1_eog-stats-block",
    path="/lol-end-of-game/v1/eog-stats-block",
    types=("Create", "Update"),
)


class WatcherState(Enum):
    """Progress of the most recently accepted game."""
    IDLE = "idle"
    DOWNLOAD_REQUESTED = "download_requested"
    POLLING_FOR_FILE = "polling_for_file"


class GameCompletionWatcher:
    """Downloads the replay of every newly finished game exactly once."""

    def __init__(
        self,
        client: LeagueClientService,
        filesystem: FileSystemService,
        replay_directory: Path,
        config: WatcherConfig | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """Initialize the watcher.

        Args:
            client: Client service used to request downloads and read replay state
            filesystem: File system service used to list the replay directory
            replay_directory: Directory the client writes replay files to
            config: Retry schedule (defaults apply when omitted)
            sleep: Awaitable sleep used for all retry delays
        """
        self._client = client
        self._filesystem = filesystem
        self.replay_directory = replay_directory
        self._config = config or WatcherConfig()
        self._sleep = sleep
        self._executor = RetryExecutor(sleep=sleep)

        self._last_game_id: GameId | None = None
        self.state: WatcherState = WatcherState.IDLE
        self.last_outcome: ReplayOutcome | None = None

    @property
    def last_game_id(self) -> GameId | None:
        return self._last_game_id

    def register(self, feed: ClientEventFeed) -> None:
        """Subscribe the watcher to the end-of-game event of ``feed``."""
        feed.register_handler(END_OF_GAME_EVENT, self.handle_event)

    async def handle_event(self, event: ClientEvent) -> ReplayOutcome | None:
        """Start the replay workflow for a new completed game.

        Returns:
            The workflow outcome, or None when the event was ignored
        """
        data = event.data if isinstance(event.data, dict) else {}
        game_id = data.get("gameId")
        if not game_id or game_id == self._last_game_id:
            return None

        # Claim the game before the first await so duplicates arriving
        # during the workflow are ignored
        self._last_game_id = game_id
        log.info("Found completed game, trying to download replay", game_id=game_id)
        return await self.process_game(game_id)

    async def process_game(self, game_id: GameId) -> ReplayOutcome:
        """Request the replay of ``game_id`` and wait for the file to appear."""
        self.state = WatcherState.DOWNLOAD_REQUESTED
        await self._request_download(game_id)

        self.state = WatcherState.POLLING_FOR_FILE
        try:
            self._filesystem.list_directory(self.replay_directory)
        except DirectoryUnavailableError as e:
            handle_error(e, operation="list_replay_directory", component="watcher", context={"path": str(self.replay_directory)})
            return self._finish(ReplayOutcome(game_id=game_id, success=False, message=e.message))

        try:
            replay_file = await self._executor.execute(
                lambda: self._find_replay(game_id),
                RetryOptions(
                    retries=self._config.poll_retries,
                    retry_delay=self._config.poll_retry_delay,
                    initial_delay=self._config.poll_initial_delay,
                    on_error=lambda will_retry, e: log.debug(
                        "Replay not available yet", game_id=game_id, reason=str(e), will_retry=will_retry
                    ),
                ),
            )
        except RetryExhaustedError as e:
            handle_error(e, operation="wait_for_replay", component="watcher", context={"game_id": game_id})
            message = f"Failed to download replay for game {game_id}."
            log.warning(message, game_id=game_id, reason=str(e.last_error))
            return self._finish(ReplayOutcome(game_id=game_id, success=False, message=message))

        message = f"Downloaded replay file '{replay_file.name}'."
        log.info(message, game_id=game_id, file_name=replay_file.name)
        return self._finish(ReplayOutcome(game_id=game_id, success=True, message=message, file_name=replay_file.name))

    async def _request_download(self, game_id: GameId) -> None:
        # The client answers 409 while a download is already running, so an
        # exhausted request still continues to polling
        def on_error(will_retry: bool, error: Exception) -> None:
            log.warning(
                f"Failed to download replay ({error}).{' Retrying...' if will_retry else ''}",
                game_id=game_id,
                will_retry=will_retry,
            )

        try:
            await retry(
                lambda: self._client.request_replay_download(game_id),
                sleep=self._sleep,
                retries=self._config.download_retries,
                retry_delay=self._config.download_retry_delay,
                initial_delay=self._config.download_initial_delay,
                on_success=lambda _: log.info("Downloading replay...", game_id=game_id),
                on_error=on_error,
            )
        except RetryExhaustedError as e:
            handle_error(e, operation="request_replay_download", component="watcher", context={"game_id": game_id})

    async def _find_replay(self, game_id: GameId) -> DirectoryEntry:
        metadata = await self._client.get_replay_metadata(game_id)
        state = (metadata or {}).get("state")
        if state == "downloading":
            raise ReplayNotReadyError("Replay is still downloading...", game_id=game_id, state=state)
        if state != "watch":
            raise ReplayNotReadyError(f"Replay is in an unexpected state. ({state})", game_id=game_id, state=state)

        entries = self._filesystem.list_directory(self.replay_directory)
        replay_file = locate_replay(entries, game_id)
        if replay_file is None:
            raise ReplayNotReadyError("Couldn't find replay file.", game_id=game_id, state=state)
        return replay_file

    def _finish(self, outcome: ReplayOutcome) -> ReplayOutcome:
        self.last_outcome = outcome
        self.state = WatcherState.IDLE
        return outcome
