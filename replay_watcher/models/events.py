"""Client event data models."""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class EventDescriptor:
    """Identifies one client event subscription.

    ``name`` is the websocket topic, ``path`` the API resource the payload
    belongs to and ``types`` the change kinds (Create, Update, Delete) that
    should reach the handler.
    """
    name: str
    path: str
    types: tuple[str, ...] = ("Create", "Update", "Delete")

    def matches(self, event: "ClientEvent") -> bool:
        """Check whether an incoming event belongs to this subscription."""
        return event.uri == self.path and event.event_type in self.types


@dataclass(frozen=True)
class ClientEvent:
    """A single JSON API event pushed by the client."""
    uri: str
    event_type: str
    data: Any = field(default=None)
