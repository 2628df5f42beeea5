"""Canonical chat message model.

These are intentionally simple stdlib dataclasses (not Pydantic): a
:class:`CanonicalMessage` is built by our own normalizer, never from
untrusted JSON directly.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class MediaKind(str, Enum):
    """What kind of content a chat message carries."""

    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    DOCUMENT = "document"
    STICKER = "sticker"
    CONTACT = "contact"
    LOCATION = "location"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class CanonicalMessage:
    """A normalized inbound chat message.

    Attributes:
        id: Transport message identifier.
        origin_jid: JID of the conversation the message arrived in.
        from_me: Whether the linked account sent the message.
        author: JID of the group participant who sent it, if known.
        media_kind: Content classification.
        text_content: Text body or media caption, or ``None``.
        timestamp_ms: Send time in epoch milliseconds.
        group_jid: ``origin_jid`` when it is a group, else ``None``.
    """

    id: str
    origin_jid: str
    from_me: bool
    author: str | None
    media_kind: MediaKind
    text_content: str | None
    timestamp_ms: int
    group_jid: str | None

    @property
    def is_group(self) -> bool:
        """Whether the message was posted in a group conversation."""
        return self.group_jid is not None
