"""Convert WhatsApp message text to Markdown.

URLs become Markdown links and WhatsApp inline formatting is mapped to
its Markdown equivalent:

=================  ==============
WhatsApp           Markdown
=================  ==============
``*bold*``         ``**bold**``
``_italic_``       ``_italic_``
``~strike~``       ``~~strike~~``
```` ```mono``` ````  ```` `mono` ````
=================  ==============

URLs are left untouched by the formatting rules, so underscores and
asterisks inside links survive.
"""

from __future__ import annotations

import re

_URL_RE = re.compile(r"(https?://\S+)", re.IGNORECASE)
_MONOSPACE_RE = re.compile(r"```(.*?)```", re.DOTALL)
_BOLD_RE = re.compile(r"\*([^*\n]+)\*")
_STRIKE_RE = re.compile(r"~([^~\n]+)~")

DEFAULT_LINK_TEXT = "external link"


def _format_segment(text: str) -> str:
    text = _MONOSPACE_RE.sub(r"`\1`", text)
    text = _BOLD_RE.sub(r"**\1**", text)
    return _STRIKE_RE.sub(r"~~\1~~", text)


def chat_to_markdown(text: str, link_text: str = DEFAULT_LINK_TEXT) -> str:
    """Return *text* as Markdown; empty input gives ``""``."""
    if not text:
        return ""
    parts = _URL_RE.split(text)
    # re.split with one capture group alternates text, url, text, ...
    return "".join(
        f"[{link_text}]({part})" if index % 2 else _format_segment(part)
        for index, part in enumerate(parts)
    )
