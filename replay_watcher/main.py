"""Main entry point for the replay watcher.

This module provides the application entry point with:
- Command-line argument parsing
- Service wiring and replay directory resolution
- Reconnecting event loop and graceful shutdown
"""

import argparse
import asyncio
import signal
import sys
from dataclasses import replace
from functools import partial
from pathlib import Path

import structlog

from replay_watcher import __version__
from replay_watcher.models import WatcherConfig
from replay_watcher.services.config import ConfigurationService
from replay_watcher.services.credentials import discover_credentials
from replay_watcher.services.errors import AppError, get_error_service, handle_error
from replay_watcher.services.event_feed import ClientEventFeed
from replay_watcher.services.filesystem import FileSystemService, default_replay_directory
from replay_watcher.services.lcu_client import LeagueClientService
from replay_watcher.services.logging import setup_logging
from replay_watcher.services.watcher import GameCompletionWatcher


log = structlog.stdlib.get_logger()


class ApplicationContext:
    """Container for application services and state.

    Services are created lazily so that argument errors surface before the
    client is contacted.
    """

    def __init__(
        self,
        config_path: Path | None = None,
        replay_directory: Path | None = None,
        lockfile_path: Path | None = None,
    ) -> None:
        self._config_path: Path | None = config_path
        self._replay_directory_override: Path | None = replay_directory
        self._lockfile_override: Path | None = lockfile_path

        self._config_service: ConfigurationService | None = None
        self._config: WatcherConfig | None = None
        self._client: LeagueClientService | None = None
        self._filesystem: FileSystemService | None = None
        self._feed: ClientEventFeed | None = None

        self._shutdown_requested: bool = False

    @property
    def config_service(self) -> ConfigurationService:
        """Get the configuration service (lazy initialization)."""
        if self._config_service is None:
            self._config_service = ConfigurationService(config_path=self._config_path)
        return self._config_service

    @property
    def config(self) -> WatcherConfig:
        """Get the configuration with command-line overrides applied."""
        if self._config is None:
            config = self.config_service.load_config()
            if self._replay_directory_override is not None:
                config = replace(config, replay_directory=self._replay_directory_override)
            if self._lockfile_override is not None:
                config = replace(config, lockfile_path=self._lockfile_override)
            self._config = config
        return self._config

    @property
    def client(self) -> LeagueClientService:
        """Get the client service (lazy initialization)."""
        if self._client is None:
            self._client = LeagueClientService(
                credentials_provider=partial(discover_credentials, self.config.lockfile_path),
                connect_retry_delay=self.config.reconnect_delay,
            )
        return self._client

    @property
    def filesystem(self) -> FileSystemService:
        """Get the file system service (lazy initialization)."""
        if self._filesystem is None:
            self._filesystem = FileSystemService()
        return self._filesystem

    @property
    def feed(self) -> ClientEventFeed:
        """Get the event feed (lazy initialization)."""
        if self._feed is None:
            self._feed = ClientEventFeed(self.client, reconnect_delay=self.config.reconnect_delay)
        return self._feed

    async def resolve_replay_directory(self) -> Path:
        """Work out where the client stores replays.

        The configured directory wins; otherwise the connected client is asked
        and the platform default is used if that fails.
        """
        if self.config.replay_directory is not None:
            return self.config.replay_directory

        try:
            return Path(await self.client.get_replay_directory())
        except (AppError, TypeError) as e:
            fallback = default_replay_directory()
            log.warning("Could not ask the client for the replay directory", error=str(e), fallback=str(fallback))
            return fallback

    def request_shutdown(self) -> None:
        """Request graceful shutdown of the application."""
        self._shutdown_requested = True
        if self._client is not None:
            self._client.cancel_connect()
        log.info("Shutdown requested")

    @property
    def shutdown_requested(self) -> bool:
        return self._shutdown_requested

    async def cleanup(self) -> None:
        """Summarize handled errors and close connections."""
        log.info("Cleaning up application resources")
        error_counts = get_error_service().get_error_count_by_category()
        if error_counts:
            recent = get_error_service().get_recent_errors(count=1)
            log.info(
                "Errors during this session",
                counts={category.value: count for category, count in error_counts.items()},
                last_error=recent[-1].message,
            )
        if self._feed is not None:
            await self._feed.stop()
        if self._client is not None:
            await self._client.close()
        log.info("Application cleanup complete")


class ParsedArgs:
    """Type-safe container for parsed command-line arguments."""

    def __init__(
        self,
        config: Path | None,
        log_level: str,
        log_dir: Path | None,
        replay_dir: Path | None,
        lockfile: Path | None,
    ) -> None:
        self.config: Path | None = config
        self.log_level: str = log_level
        self.log_dir: Path | None = log_dir
        self.replay_dir: Path | None = replay_dir
        self.lockfile: Path | None = lockfile


def parse_arguments(argv: list[str] | None = None) -> ParsedArgs:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="rofl-watcher",
        description="Download the replay of every League of Legends game as soon as it ends",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  rofl-watcher                                  Watch using the client's replay folder
  rofl-watcher --log-level DEBUG                Show every retry attempt
  rofl-watcher --replay-dir D:/Replays          Look for replay files in a custom folder
        """
    )

    _ = parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    _ = parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: ~/.config/rofl-watcher/config.json)"
    )

    _ = parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Set the logging level (default: from configuration, INFO)"
    )

    _ = parser.add_argument(
        "--log-dir",
        type=Path,
        default=None,
        help="Directory for log files (default: console only)"
    )

    _ = parser.add_argument(
        "--replay-dir",
        type=Path,
        default=None,
        help="Replay folder to watch (default: ask the client)"
    )

    _ = parser.add_argument(
        "--lockfile",
        type=Path,
        default=None,
        help="Path to the client's lockfile (default: find the client process)"
    )

    ns = parser.parse_args(argv)

    return ParsedArgs(
        config=ns.config,
        log_level=ns.log_level or "",
        log_dir=ns.log_dir,
        replay_dir=ns.replay_dir,
        lockfile=ns.lockfile,
    )


def setup_signal_handlers(context: ApplicationContext, loop: asyncio.AbstractEventLoop) -> None:
    """Stop the event feed on SIGINT/SIGTERM."""
    def signal_handler(signum: int) -> None:
        log.info("Received signal", signal=signal.Signals(signum).name)
        context.request_shutdown()
        _ = loop.create_task(context.feed.stop())

    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, signal_handler, signum)
        except (NotImplementedError, RuntimeError):
            # Windows event loops have no signal handler support; Ctrl+C raises KeyboardInterrupt
            pass

    log.debug("Signal handlers registered")


async def run_watcher(context: ApplicationContext) -> int:
    """Connect to the client and process finished games until shutdown.

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    client = context.client
    client.on("connecting", lambda: log.info("Connecting to League client..."))
    client.on("connected", lambda: log.info("Connected to League client."))
    def on_disconnected() -> None:
        if context.shutdown_requested:
            log.info("Disconnected from League client.")
        else:
            log.info("Disconnected from League client. Reconnecting...")

    client.on("disconnected", on_disconnected)

    setup_signal_handlers(context, asyncio.get_running_loop())

    try:
        await client.connect()
        replay_directory = await context.resolve_replay_directory()
        log.info(f"Replay directory is {replay_directory}.")
        if not context.filesystem.directory_exists(replay_directory):
            log.warning("Replay directory does not exist yet", replay_directory=str(replay_directory))

        watcher = GameCompletionWatcher(
            client=client,
            filesystem=context.filesystem,
            replay_directory=replay_directory,
            config=context.config,
        )
        watcher.register(context.feed)

        if not context.shutdown_requested:
            await context.feed.run_forever()
        return 0

    except Exception as e:
        if context.shutdown_requested:
            log.info("Stopped before the watcher started", reason=str(e))
            return 0
        log.error("Watcher error", error=str(e), exc_info=True)
        user_error = handle_error(e, operation="run_watcher", component="main")
        print(get_error_service().create_user_message(user_error), file=sys.stderr)
        return 1
    finally:
        await context.cleanup()


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the application."""
    args = parse_arguments(argv)

    context = ApplicationContext(
        config_path=args.config,
        replay_directory=args.replay_dir,
        lockfile_path=args.lockfile,
    )

    log_level = args.log_level or context.config.log_level
    _ = setup_logging(log_level=log_level, log_dir=args.log_dir)

    log.info(
        "Starting replay watcher",
        version=__version__,
        log_level=log_level,
        config_path=str(context.config_service.config_path),
    )

    try:
        exit_code = asyncio.run(run_watcher(context))

    except KeyboardInterrupt:
        log.info("Application interrupted by user")
        exit_code = 130  # Standard exit code for SIGINT

    except Exception as e:
        log.error("Unhandled exception", error=str(e), exc_info=True)
        print(f"Fatal error: {e}", file=sys.stderr)
        exit_code = 1

    log.info("Application exiting", exit_code=exit_code)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
