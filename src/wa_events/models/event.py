"""Pydantic models for extracted and stored events.

Defines the structured data types used from extraction to storage:

- :class:`Location` -- where an event happens.
- :class:`ExtractedEvent` -- a single event as returned by the LLM
  (datetimes as ISO 8601 strings with a UTC offset).  Accepts the
  camelCase names the model is asked to emit.
- :class:`EventToSave` -- an extracted event plus the chat message it came
  from, as handed to the event store.
- :class:`StoredEvent` -- a persisted row, with store-assigned id and
  timestamps.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

LocationType = Literal["IN-PERSON", "ONLINE"]


def _require_offset(value: str) -> str:
    """Validate that *value* is ISO 8601 and carries a UTC offset."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        raise ValueError(f"datetime {value!r} has no UTC offset")
    return value


# ---------------------------------------------------------------------------
# Location
# ---------------------------------------------------------------------------


class Location(BaseModel):
    """Where an event takes place.

    Attributes:
        type: ``"IN-PERSON"`` or ``"ONLINE"``.
        full_address: ``"Venue, Street, City"`` for in-person events,
            usually ``None`` for online ones.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: LocationType
    full_address: str | None = Field(default=None, alias="fullAddress")


# ---------------------------------------------------------------------------
# ExtractedEvent -- raw LLM output
# ---------------------------------------------------------------------------


class ExtractedEvent(BaseModel):
    """A single event extracted from a chat message by the LLM.

    Attributes:
        slug: Kebab-case identifier proposed by the model.
        title: Clean event title.
        description: One-sentence summary.
        organizer: Organizing person or entity.
        start_at: ISO 8601 start with UTC offset.
        end_at: ISO 8601 end with UTC offset, or ``None`` if not stated.
        location: Event location.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    slug: str
    title: str = Field(min_length=1)
    description: str
    organizer: str
    start_at: str = Field(alias="startAt")
    end_at: str | None = Field(default=None, alias="endAt")
    location: Location

    @field_validator("start_at")
    @classmethod
    def _validate_start(cls, value: str) -> str:
        return _require_offset(value)

    @field_validator("end_at")
    @classmethod
    def _validate_end(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return _require_offset(value)

    @property
    def starts(self) -> datetime:
        """Parsed, offset-aware start time."""
        return datetime.fromisoformat(self.start_at)


# ---------------------------------------------------------------------------
# EventToSave -- store input
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EventToSave:
    """An extracted event and the chat message it was extracted from.

    Attributes:
        event: The extracted event.
        message_body: Text of the source message.
        whatsapp_message_id: Transport id of the source message.
        whatsapp_group_jid: Group the message was posted in.
        whatsapp_sender_jid: Participant who posted it.
    """

    event: ExtractedEvent
    message_body: str
    whatsapp_message_id: str
    whatsapp_group_jid: str
    whatsapp_sender_jid: str


# ---------------------------------------------------------------------------
# StoredEvent -- persisted row
# ---------------------------------------------------------------------------


class StoredEvent(BaseModel):
    """An event row as returned by the event store.

    Carries every :class:`ExtractedEvent` field (``slug`` being the
    store-derived slug) plus the source message and bookkeeping columns.
    ``created_at`` and ``updated_at`` are ISO 8601 strings in UTC.
    """

    model_config = ConfigDict(frozen=True)

    id: int
    slug: str
    title: str
    description: str
    organizer: str
    start_at: str
    end_at: str | None = None
    location: Location
    message_body: str
    whatsapp_message_id: str
    whatsapp_group_jid: str
    whatsapp_sender_jid: str
    created_at: str
    updated_at: str

    @property
    def starts(self) -> datetime:
        """Parsed, offset-aware start time."""
        return datetime.fromisoformat(self.start_at)
