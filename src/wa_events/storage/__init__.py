"""Event persistence: SQLAlchemy schema, engine factory and event store."""

from __future__ import annotations

from wa_events.storage.database import create_engine_from_settings
from wa_events.storage.event_store import EventStore
from wa_events.storage.markdown import chat_to_markdown
from wa_events.storage.schema import events, metadata
from wa_events.storage.slug import derive_slug, slugify

__all__ = [
    "EventStore",
    "chat_to_markdown",
    "create_engine_from_settings",
    "derive_slug",
    "events",
    "metadata",
    "slugify",
]
