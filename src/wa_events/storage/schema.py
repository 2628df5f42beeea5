"""Table definition for stored events.

One table, ``events``.  ``slug`` and ``whatsapp_message_id`` are each
unique on their own; the named constraints let the store tell which one a
failed insert collided with.  Timestamps are integer epoch seconds.
"""

from __future__ import annotations

from sqlalchemy import Column, Integer, MetaData, Table, Text, UniqueConstraint

metadata = MetaData()

SLUG_CONSTRAINT = "uq_events_slug"
MESSAGE_ID_CONSTRAINT = "uq_events_whatsapp_message_id"

events = Table(
    "events",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("slug", Text, nullable=False),
    Column("title", Text, nullable=False),
    Column("description", Text, nullable=False),
    Column("organizer", Text, nullable=False),
    Column("start_at", Text, nullable=False),
    Column("end_at", Text, nullable=True),
    Column("location_type", Text, nullable=False),
    Column("full_address", Text, nullable=True),
    Column("message_body", Text, nullable=False),
    Column("whatsapp_message_id", Text, nullable=False),
    Column("whatsapp_group_jid", Text, nullable=False),
    Column("whatsapp_sender_jid", Text, nullable=False),
    Column("created_at", Integer, nullable=False),
    Column("updated_at", Integer, nullable=False),
    UniqueConstraint("slug", name=SLUG_CONSTRAINT),
    UniqueConstraint("whatsapp_message_id", name=MESSAGE_ID_CONSTRAINT),
)
