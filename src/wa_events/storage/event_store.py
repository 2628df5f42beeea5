"""Idempotent event store on SQLAlchemy Core.

Every method is synchronous and opens its own connection, so callers on
the event loop run them with :func:`asyncio.to_thread`.  Duplicate
protection relies on the two unique constraints alone: racing saves for
the same message are resolved by the database, and the loser gets a
:class:`~wa_events.exceptions.DuplicateRecordError` naming the key that
collided.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Engine, delete, select
from sqlalchemy.engine import RowMapping
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from wa_events.exceptions import DuplicateRecordError, EventNotFoundError, StorageError
from wa_events.models.event import EventToSave, Location, StoredEvent
from wa_events.storage.schema import events, metadata
from wa_events.storage.slug import derive_slug

logger = logging.getLogger(__name__)

SLUG_KEY = "slug"
MESSAGE_ID_KEY = "whatsapp_message_id"


def epoch_to_iso(seconds: int) -> str:
    """Render integer epoch seconds as an ISO 8601 UTC string."""
    return datetime.fromtimestamp(seconds, tz=timezone.utc).isoformat()


class EventStore:
    """Persist and query extracted events.

    Args:
        engine: SQLAlchemy engine for the events database.
        clock: Wall-clock source for ``created_at``/``updated_at``.
    """

    def __init__(self, engine: Engine, clock: Callable[[], float] = time.time) -> None:
        self._engine = engine
        self._clock = clock

    def create_schema(self) -> None:
        """Create the ``events`` table and its constraints if missing."""
        try:
            metadata.create_all(self._engine)
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to create schema: {exc}") from exc

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def save_event(self, item: EventToSave) -> StoredEvent:
        """Insert a new row for *item*.

        The stored slug is :func:`~wa_events.storage.slug.derive_slug` of
        the extracted event, not the model's own slug.

        Returns:
            The stored event.

        Raises:
            DuplicateRecordError: If the slug or the message id is already
                stored.
            StorageError: On any other database failure.
        """
        event = item.event
        now = int(self._clock())
        row: dict[str, Any] = {
            "slug": derive_slug(event),
            "title": event.title,
            "description": event.description,
            "organizer": event.organizer,
            "start_at": event.start_at,
            "end_at": event.end_at,
            "location_type": event.location.type,
            "full_address": event.location.full_address,
            "message_body": item.message_body,
            "whatsapp_message_id": item.whatsapp_message_id,
            "whatsapp_group_jid": item.whatsapp_group_jid,
            "whatsapp_sender_jid": item.whatsapp_sender_jid,
            "created_at": now,
            "updated_at": now,
        }

        try:
            with self._engine.begin() as conn:
                result = conn.execute(events.insert().values(**row))
                row_id = result.inserted_primary_key[0]
        except IntegrityError as exc:
            raise self._classify_integrity_error(exc, row) from exc
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to insert event: {exc}") from exc

        logger.info("Event saved: '%s' (slug: %s)", event.title, row["slug"])
        return self._to_stored({"id": row_id, **row})

    def delete_by_slug(self, slug: str) -> None:
        """Delete the event stored under *slug*.

        Raises:
            EventNotFoundError: If no row has that slug.
            StorageError: On database failure.
        """
        try:
            with self._engine.begin() as conn:
                result = conn.execute(delete(events).where(events.c.slug == slug))
        except SQLAlchemyError as exc:
            raise StorageError(f"Database delete failed: {exc}") from exc

        if result.rowcount == 0:
            raise EventNotFoundError(SLUG_KEY, slug)
        logger.info("Event deleted: %s", slug)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find_by_slug(self, slug: str) -> StoredEvent:
        """Return the event stored under *slug*.

        Raises:
            EventNotFoundError: If no row matches.
            StorageError: On database failure.
        """
        return self._find_one(SLUG_KEY, slug)

    def find_by_message_id(self, message_id: str) -> StoredEvent:
        """Return the event extracted from WhatsApp message *message_id*.

        Raises:
            EventNotFoundError: If no row matches.
            StorageError: On database failure.
        """
        return self._find_one(MESSAGE_ID_KEY, message_id)

    def list_all(self) -> list[StoredEvent]:
        """Return every stored event, earliest start first.

        Start times are compared as instants, so rows written with
        different UTC offsets still sort correctly.
        """
        try:
            with self._engine.connect() as conn:
                rows = conn.execute(select(events)).mappings().all()
        except SQLAlchemyError as exc:
            raise StorageError(f"Database query failed: {exc}") from exc

        stored = [self._to_stored(row) for row in rows]
        return sorted(stored, key=lambda e: (e.starts, e.id))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _find_one(self, key: str, value: str) -> StoredEvent:
        row = self._lookup(key, value)
        if row is None:
            raise EventNotFoundError(key, value)
        return self._to_stored(row)

    def _lookup(self, key: str, value: str) -> RowMapping | None:
        try:
            with self._engine.connect() as conn:
                return (
                    conn.execute(select(events).where(events.c[key] == value).limit(1))
                    .mappings()
                    .first()
                )
        except SQLAlchemyError as exc:
            raise StorageError(f"Database query failed: {exc}") from exc

    def _classify_integrity_error(
        self,
        exc: IntegrityError,
        row: dict[str, Any],
    ) -> DuplicateRecordError | StorageError:
        """Work out which unique key an insert collided with.

        The driver message names the column (SQLite) or the constraint
        (PostgreSQL and others).  When it names neither, the keys are looked
        up directly.
        """
        detail = str(exc.orig).lower()
        for key in (MESSAGE_ID_KEY, SLUG_KEY):
            if key in detail:
                logger.debug("Duplicate %s %r", key, row[key])
                return DuplicateRecordError(key, row[key])

        for key in (MESSAGE_ID_KEY, SLUG_KEY):
            if self._lookup(key, row[key]) is not None:
                logger.debug("Duplicate %s %r", key, row[key])
                return DuplicateRecordError(key, row[key])

        return StorageError(f"Failed to insert event: {exc.orig}")

    @staticmethod
    def _to_stored(row: Any) -> StoredEvent:
        return StoredEvent(
            id=row["id"],
            slug=row["slug"],
            title=row["title"],
            description=row["description"],
            organizer=row["organizer"],
            start_at=row["start_at"],
            end_at=row["end_at"],
            location=Location(type=row["location_type"], full_address=row["full_address"]),
            message_body=row["message_body"],
            whatsapp_message_id=row["whatsapp_message_id"],
            whatsapp_group_jid=row["whatsapp_group_jid"],
            whatsapp_sender_jid=row["whatsapp_sender_jid"],
            created_at=epoch_to_iso(row["created_at"]),
            updated_at=epoch_to_iso(row["updated_at"]),
        )
