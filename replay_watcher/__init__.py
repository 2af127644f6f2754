"""Watches the League client for finished games and fetches their replays."""

__version__ = "0.1.0"
