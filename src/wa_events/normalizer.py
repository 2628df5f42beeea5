"""Normalizer for raw WhatsApp message envelopes.

Turns the JSON form of a transport message (``key``, ``message``,
``messageTimestamp``) into a :class:`~wa_events.models.message.CanonicalMessage`.
Only the addressing key and the message body are mandatory; everything
else degrades to a sensible default.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from typing import Any

from wa_events.exceptions import ParseError
from wa_events.models.message import CanonicalMessage, MediaKind

GROUP_JID_SUFFIX = "@g.us"

# Epoch values below this are seconds, above it milliseconds.
_SECONDS_CUTOFF = 10_000_000_000

# Media-kind precedence: first key present wins.
_MEDIA_KEYS: tuple[tuple[str, MediaKind], ...] = (
    ("imageMessage", MediaKind.IMAGE),
    ("videoMessage", MediaKind.VIDEO),
    ("audioMessage", MediaKind.AUDIO),
    ("documentMessage", MediaKind.DOCUMENT),
    ("stickerMessage", MediaKind.STICKER),
    ("contactMessage", MediaKind.CONTACT),
    ("locationMessage", MediaKind.LOCATION),
)


def is_group_jid(jid: str | None) -> bool:
    """Whether *jid* names a group conversation."""
    return jid is not None and jid.endswith(GROUP_JID_SUFFIX)


def _text(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def extract_text(message: Mapping[str, Any]) -> str | None:
    """Return the message text, checking fields in precedence order.

    Plain conversation text, then extended (quoted/linked) text, then the
    image caption, then the video caption.  Empty and non-string values
    are skipped.
    """
    text = _text(message.get("conversation"))
    if text:
        return text
    for container, field in (
        ("extendedTextMessage", "text"),
        ("imageMessage", "caption"),
        ("videoMessage", "caption"),
    ):
        inner = message.get(container)
        if isinstance(inner, Mapping):
            text = _text(inner.get(field))
            if text:
                return text
    return None


def determine_media_kind(message: Mapping[str, Any]) -> MediaKind:
    """Classify the content of a message body."""
    for key, kind in _MEDIA_KEYS:
        if message.get(key):
            return kind
    if message.get("conversation") or message.get("extendedTextMessage"):
        return MediaKind.TEXT
    return MediaKind.UNKNOWN


def extract_timestamp_ms(
    raw: Any,
    now: Callable[[], float] = time.time,
) -> int:
    """Convert an envelope timestamp to epoch milliseconds.

    Accepts an int, a numeric string, or a long object of the form
    ``{"low": ..., "high": ...}``.  Values in seconds are scaled up.
    Missing, non-numeric or zero timestamps fall back to the current
    wall-clock time.
    """
    value = _coerce_int(raw)
    if not value:
        return int(now() * 1000)
    return value * 1000 if value < _SECONDS_CUTOFF else value


def _coerce_int(raw: Any) -> int | None:
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, Mapping):
        low = _coerce_int(raw.get("low")) or 0
        high = _coerce_int(raw.get("high")) or 0
        return (high << 32) + (low & 0xFFFFFFFF)
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def normalize_message(
    envelope: Mapping[str, Any],
    now: Callable[[], float] = time.time,
) -> CanonicalMessage:
    """Build a :class:`CanonicalMessage` from a raw transport envelope.

    Args:
        envelope: The raw message mapping.
        now: Wall-clock source used when the envelope has no timestamp.

    Returns:
        The canonical message.  ``group_jid`` is set only when the origin
        is a group.

    Raises:
        ParseError: If the envelope, its addressing key or its message body
            is missing or not a mapping (``"MISSING_KEY"`` or
            ``"MISSING_MESSAGE"``).
    """
    if not isinstance(envelope, Mapping):
        raise ParseError("MISSING_KEY")
    key = envelope.get("key")
    if not isinstance(key, Mapping) or not key:
        raise ParseError("MISSING_KEY")
    message = envelope.get("message")
    if not isinstance(message, Mapping) or not message:
        raise ParseError("MISSING_MESSAGE")

    origin = _text(key.get("remoteJid")) or ""

    return CanonicalMessage(
        id=_text(key.get("id")) or "",
        origin_jid=origin,
        from_me=bool(key.get("fromMe", False)),
        author=_text(key.get("participant")),
        media_kind=determine_media_kind(message),
        text_content=extract_text(message),
        timestamp_ms=extract_timestamp_ms(envelope.get("messageTimestamp"), now),
        group_jid=origin if is_group_jid(origin) else None,
    )


def format_message_for_log(message: CanonicalMessage) -> str:
    """Render a one-line summary: ``time | group | sender: content``."""
    sent = datetime.fromtimestamp(message.timestamp_ms / 1000, tz=timezone.utc)
    sender = "You" if message.from_me else (message.author or "Unknown")
    group = message.group_jid or "DM"
    content = message.text_content or f"[{message.media_kind.value}]"
    return f"{sent.isoformat(timespec='seconds')} | {group} | {sender}: {content}"
