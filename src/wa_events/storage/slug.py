"""Slug derivation for stored events."""

from __future__ import annotations

import re
import unicodedata

from wa_events.models.event import ExtractedEvent

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(text: str) -> str:
    """ASCII-fold *text* and turn it into lower-case kebab-case.

    >>> slugify("Taller de Innovación: ¡IA!")
    'taller-de-innovacion-ia'
    """
    folded = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    return _NON_ALNUM.sub("-", folded.lower()).strip("-")


def derive_slug(event: ExtractedEvent) -> str:
    """Build the store key for *event*: slugified title plus start date.

    The date is the calendar date of ``start_at`` in its own offset, so
    the same title on different days gives different slugs.  Falls back to
    the model's proposed slug, then to ``"event"``, when the title has no
    slug-able characters.
    """
    base = slugify(event.title) or slugify(event.slug) or "event"
    return f"{base}-{event.starts.date().isoformat()}"
