"""Builders for domain objects shared across the test suite."""

from __future__ import annotations

from typing import Any

from wa_events.models.event import EventToSave, ExtractedEvent

GROUP_JID = "120363000000000001@g.us"
OTHER_GROUP_JID = "120363000000000002@g.us"
SENDER_JID = "56911112222@s.whatsapp.net"


def make_event(**overrides: Any) -> ExtractedEvent:
    """Build a valid :class:`ExtractedEvent`; keyword overrides win.

    Overrides use the camelCase names the model emits (``startAt``,
    ``endAt``).
    """
    data: dict[str, Any] = {
        "slug": "hubconnect",
        "title": "HubConnect Innovación",
        "description": "Encuentro de innovación abierta en Providencia.",
        "organizer": "Departamento de Innovación",
        "startAt": "2025-12-18T10:00:00-03:00",
        "endAt": "2025-12-18T13:00:00-03:00",
        "location": {"type": "IN-PERSON", "fullAddress": "Hub Providencia, Santiago"},
    }
    data.update(overrides)
    return ExtractedEvent.model_validate(data)


def make_event_json(**overrides: Any) -> dict[str, Any]:
    """The JSON object a well-behaved model returns for extraction."""
    return make_event(**overrides).model_dump(by_alias=True)


def make_event_to_save(
    message_id: str = "MSG-1",
    event: ExtractedEvent | None = None,
    body: str = "HubConnect jueves 18/12 10:00",
) -> EventToSave:
    """Wrap an extracted event with source-message metadata."""
    return EventToSave(
        event=event or make_event(),
        message_body=body,
        whatsapp_message_id=message_id,
        whatsapp_group_jid=GROUP_JID,
        whatsapp_sender_jid=SENDER_JID,
    )


def make_envelope(
    text: str | None = "Taller jueves 18/12 a las 10:00",
    remote_jid: str = GROUP_JID,
    message_id: str = "MSG-1",
    participant: str | None = SENDER_JID,
    timestamp: Any = 1734526800,
) -> dict[str, Any]:
    """Build a raw inbound envelope shaped like the transport's JSON.

    ``text=None`` produces a sticker with no text.
    """
    key: dict[str, Any] = {"remoteJid": remote_jid, "id": message_id, "fromMe": False}
    if participant is not None:
        key["participant"] = participant
    message = {"conversation": text} if text is not None else {"stickerMessage": {"url": "x"}}
    return {"key": key, "message": message, "messageTimestamp": timestamp}
