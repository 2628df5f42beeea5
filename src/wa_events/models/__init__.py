"""Data models for wa-events."""

from __future__ import annotations

from wa_events.models.connection import (
    Connected,
    Connecting,
    ConnectionState,
    DisconnectedRetryable,
    DisconnectedTerminal,
    DisconnectReason,
)
from wa_events.models.event import EventToSave, ExtractedEvent, Location, StoredEvent
from wa_events.models.message import CanonicalMessage, MediaKind

__all__ = [
    "CanonicalMessage",
    "Connected",
    "Connecting",
    "ConnectionState",
    "DisconnectReason",
    "DisconnectedRetryable",
    "DisconnectedTerminal",
    "EventToSave",
    "ExtractedEvent",
    "Location",
    "MediaKind",
    "StoredEvent",
]
