"""wa-events: WhatsApp group event extraction.

Listens to monitored WhatsApp groups, asks Gemini whether each message
announces a scheduled event, extracts the structured event when it does,
and stores it without duplicates.
"""

from __future__ import annotations

from wa_events.exceptions import (
    DuplicateRecordError,
    EventNotFoundError,
    ParseError,
    SchemaValidationError,
    StorageError,
    WaEventsError,
)
from wa_events.groups import GroupFilter
from wa_events.models.event import EventToSave, ExtractedEvent, Location, StoredEvent
from wa_events.models.message import CanonicalMessage, MediaKind
from wa_events.normalizer import normalize_message
from wa_events.retry import RetryPolicy

__version__ = "0.1.0"

__all__ = [
    "CanonicalMessage",
    "DuplicateRecordError",
    "EventNotFoundError",
    "EventToSave",
    "ExtractedEvent",
    "GroupFilter",
    "Location",
    "MediaKind",
    "ParseError",
    "RetryPolicy",
    "SchemaValidationError",
    "StorageError",
    "StoredEvent",
    "WaEventsError",
    "normalize_message",
]
