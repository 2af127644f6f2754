"""Discovery of the running League client's API port and auth token."""

from dataclasses import dataclass
from pathlib import Path

import psutil
import structlog

from .errors import ClientNotFoundError

log = structlog.stdlib.get_logger()

CLIENT_PROCESS_NAMES = ("LeagueClientUx.exe", "LeagueClientUx")


@dataclass(frozen=True)
class ClientCredentials:
    """Connection details of a running client."""
    port: int
    token: str
    protocol: str = "https"
    pid: int | None = None

    @property
    def base_url(self) -> str:
        return f"{self.protocol}://127.0.0.1:{self.port}"

    @property
    def websocket_url(self) -> str:
        scheme = "wss" if self.protocol == "https" else "ws"
        return f"{scheme}://127.0.0.1:{self.port}/"


def parse_lockfile(content: str) -> ClientCredentials:
    """Parse lockfile content of the form ``name:pid:port:password:protocol``.

    Raises:
        ValueError: If the content is not a valid lockfile
    """
    parts = content.strip().split(":")
    if len(parts) != 5:
        raise ValueError(f"Expected 5 lockfile fields, got {len(parts)}")

    _, pid, port, token, protocol = parts
    return ClientCredentials(port=int(port), token=token, protocol=protocol, pid=int(pid))


def read_lockfile(path: Path) -> ClientCredentials | None:
    """Read credentials from a lockfile, returning None if it is missing or malformed."""
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        log.debug("Lockfile not readable", path=str(path), error=str(e))
        return None

    try:
        return parse_lockfile(content)
    except ValueError as e:
        log.warning("Malformed lockfile", path=str(path), error=str(e))
        return None


def parse_command_line(cmdline: list[str]) -> ClientCredentials | None:
    """Extract credentials from the client's ``--app-port``/``--remoting-auth-token`` arguments."""
    port: str | None = None
    token: str | None = None
    for arg in cmdline:
        if arg.startswith("--app-port="):
            port = arg.split("=", 1)[1]
        elif arg.startswith("--remoting-auth-token="):
            token = arg.split("=", 1)[1]

    if not port or not token:
        return None
    try:
        return ClientCredentials(port=int(port), token=token)
    except ValueError:
        return None


def find_client_process() -> ClientCredentials | None:
    """Scan running processes for the client and read its credentials."""
    for proc in psutil.process_iter(["pid", "name", "cmdline"]):
        if proc.info["name"] not in CLIENT_PROCESS_NAMES:
            continue

        credentials = parse_command_line(proc.info["cmdline"] or [])
        if credentials is not None:
            return ClientCredentials(
                port=credentials.port,
                token=credentials.token,
                protocol=credentials.protocol,
                pid=proc.info["pid"],
            )
    return None


def discover_credentials(lockfile_path: Path | None = None) -> ClientCredentials:
    """Find the running client, preferring the lockfile when one is configured.

    Raises:
        ClientNotFoundError: If no running client could be found
    """
    if lockfile_path is not None:
        credentials = read_lockfile(lockfile_path)
        if credentials is not None:
            log.debug("Found client via lockfile", path=str(lockfile_path), port=credentials.port)
            return credentials

    try:
        credentials = find_client_process()
    except psutil.Error as e:
        raise ClientNotFoundError("Failed to scan running processes for the League client.", original_error=e) from e

    if credentials is None:
        raise ClientNotFoundError("The League client is not running.")

    log.debug("Found client process", pid=credentials.pid, port=credentials.port)
    return credentials
