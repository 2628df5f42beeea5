"""Prompt builders for the two-stage classify/extract pipeline.

Stage 1 asks Gemini a yes/no question: does this chat message carry
enough information (a calendar date *and* a clock time) to become an
event record?  Stage 2 asks for one JSON object shaped like
:class:`~wa_events.models.event.ExtractedEvent`.

Each builder returns an ordered list of role-tagged :class:`ChatMessage`
objects.  The client sends ``system`` messages as the system instruction
and the rest as conversation turns.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

Role = Literal["system", "user", "assistant"]


@dataclass(frozen=True)
class ChatMessage:
    """One role-tagged prompt message."""

    role: Role
    content: str


_CLASSIFICATION_SYSTEM = """\
You are a data feasibility validator. Classify the input text as either a
**parsable event (1)** or **noise/notification (0)**.

## Objective

Decide whether the text contains the raw material needed to fill a
database record with a specific `startAt` timestamp (date + time) and a
`title`.

## Return `1` (parsable event) if and only if

1. **Explicit date:** the text names a specific calendar date
   (e.g. "Dec 10", "Thursday 18th", "tomorrow").
2. **Explicit time:** the text names a specific clock time
   (e.g. "14:00", "6 pm").
3. **Independence:** the text is a standalone listing and does not rely
   only on the message's own timestamp ("starting now").

## Return `0` (noise/notification) if

1. **Relative urgency:** it uses *only* relative time ("starting in 30
   minutes", "live now", "join the room").
2. **Missing coordinates:** it lacks either the date or the time.
3. **Vague:** it is general conversation or a partial fragment.

## Examples

Input:
"Team, the most important session of the week starts in less than 30
minutes!!! Here is the VIP Zoom link..."
Output:
0
(Relies on "starts in 30 minutes"; no explicit date or clock time.)

Input:
"The Innovation Department invites you to HubConnect. Day: Thursday 18/12
from 10:00 to 13:00. Venue: Hub Providencia..."
Output:
1
(Explicit date "18/12" and time "10:00".)
"""


def build_classification_messages(text: str) -> list[ChatMessage]:
    """Build the Stage 1 prompt for *text*.

    The model must answer with the single character ``0`` or ``1``.
    """
    user = f"## Input text\n{text}\n\n## Output\n(Return ONLY `0` or `1`)"
    return [
        ChatMessage(role="system", content=_CLASSIFICATION_SYSTEM),
        ChatMessage(role="user", content=user),
    ]


def build_extraction_system_prompt(
    current_date: str,
    timezone: str,
    language: str,
) -> str:
    """Build the Stage 2 system prompt.

    Args:
        current_date: Today's date (``YYYY-MM-DD``) in *timezone*, used to
            resolve relative references such as "tomorrow" or "next
            Thursday".
        timezone: IANA name of the default time zone for the offsets.
        language: Language every free-text field must be written in.

    Returns:
        The complete system prompt string.
    """
    return f"""\
You are a high-precision event extraction engine. Convert unstructured
chat text into one strict JSON object.

## Context

Current date: {current_date} (use it to resolve relative dates such as
"tomorrow" or "next Thursday").
Default time zone: {timezone}, unless the text states another one.

## Output schema

Return ONLY a JSON object with exactly this structure:

{{
  "slug": "string (kebab-case unique identifier)",
  "title": "string (clean title in {language}, no emojis)",
  "description": "string (one sentence, under 20 words, high-value summary in {language})",
  "organizer": "string (name of the organizing entity)",
  "startAt": "string (ISO 8601 with UTC offset, e.g. 2025-12-18T10:00:00-03:00)",
  "endAt": "string | null (ISO 8601 with UTC offset)",
  "location": {{
    "type": "IN-PERSON" | "ONLINE",
    "fullAddress": "string | null (IN-PERSON: 'Venue, Street, City'; ONLINE: null)"
  }}
}}

## Parsing rules

1. Language: ALL text fields (title, description, address) must be in
   {language}. Translate if the input is in another language.
2. Noise reduction: drop marketing filler ("We are pleased to invite
   you..."). Keep only the core value proposition.
3. Dates: always compute the specific year from {current_date}. If it is
   December and the event is in January, assume next year.
4. Location:
   - If there is only a URL (Zoom/Meet), type is "ONLINE".
   - If a physical address or city is mentioned, type is "IN-PERSON".
5. Nulls: if `endAt` is not given, use null. Do not guess the duration.
"""


def build_extraction_messages(
    text: str,
    current_date: str,
    timezone: str = "America/Santiago",
    language: str = "Spanish",
) -> list[ChatMessage]:
    """Build the Stage 2 prompt for *text*."""
    user = (
        f"## Input text\n{text}\n\n"
        "## Output\n"
        "Return ONLY the JSON object (no Markdown, no code fences):"
    )
    return [
        ChatMessage(
            role="system",
            content=build_extraction_system_prompt(current_date, timezone, language),
        ),
        ChatMessage(role="user", content=user),
    ]
