"""Group allow-list, group discovery and group selection.

:class:`GroupFilter` decides which messages reach the extraction pipeline.
It holds an immutable snapshot of monitored group JIDs that is replaced
wholesale, never edited, so concurrent message tasks always read a
complete value.  An empty snapshot means discovery mode: nothing is
admitted, and the operator picks a group from :func:`list_all_groups`.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import TextIO

from wa_events.models.message import CanonicalMessage
from wa_events.normalizer import is_group_jid
from wa_events.transport import TransportSession

logger = logging.getLogger(__name__)

_RULE = "-" * 60


class AllowListLockedError(RuntimeError):
    """Raised when selecting a group while already monitoring one."""


@dataclass(frozen=True)
class GroupMetadata:
    """A group the linked account participates in.

    Attributes:
        id: Group JID.
        subject: Group name.
        participant_count: Number of members.
    """

    id: str
    subject: str
    participant_count: int


class GroupFilter:
    """Admit messages from monitored groups only.

    Args:
        allowed: Initial group JIDs.  Empty starts discovery mode.
    """

    def __init__(self, allowed: Iterable[str] = ()) -> None:
        self._snapshot: frozenset[str] = frozenset(allowed)

    @property
    def snapshot(self) -> frozenset[str]:
        """The current allow-list."""
        return self._snapshot

    @property
    def discovery_mode(self) -> bool:
        """Whether no group is being monitored yet."""
        return not self._snapshot

    def admits(self, message: CanonicalMessage) -> bool:
        """Whether *message* was posted in a monitored group."""
        group = message.group_jid
        return group is not None and group in self._snapshot

    def select(self, group_jid: str) -> None:
        """Leave discovery mode by monitoring *group_jid*.

        Allowed exactly once, and only from discovery mode.

        Raises:
            AllowListLockedError: If a group is already being monitored.
            ValueError: If *group_jid* is not a group JID.
        """
        if not is_group_jid(group_jid):
            raise ValueError(f"Not a group JID: {group_jid!r}")
        if self._snapshot:
            raise AllowListLockedError(
                f"Already monitoring {sorted(self._snapshot)}; cannot select {group_jid!r}"
            )
        self._snapshot = frozenset({group_jid})
        logger.info("Now monitoring group %s", group_jid)


async def list_all_groups(session: TransportSession) -> list[GroupMetadata]:
    """Enumerate every group reachable through *session*, sorted by name."""
    raw = await session.fetch_groups()
    groups = [
        GroupMetadata(
            id=jid,
            subject=meta.get("subject") or "Unnamed Group",
            participant_count=len(meta.get("participants") or ()),
        )
        for jid, meta in raw.items()
    ]
    return sorted(groups, key=lambda g: g.subject.lower())


def format_groups_for_discovery(groups: Sequence[GroupMetadata]) -> str:
    """Render *groups* with copy-pasteable JIDs for the ``.env`` file."""
    lines = [
        "",
        "Your WhatsApp groups:",
        _RULE,
        "Copy a JID (looks like 1234567890@g.us) into your .env file",
        _RULE,
    ]
    for group in groups:
        lines.append("")
        lines.append(group.subject)
        lines.append(f"   JID: {group.id}")
        lines.append(f"   Members: {group.participant_count}")
    lines.append("")
    lines.append(_RULE)
    lines.append("Add to .env: WHATSAPP_ALLOWED_GROUPS=<JID1>,<JID2>,...")
    lines.append(_RULE)
    return "\n".join(lines)


def select_group_interactively(
    groups: Sequence[GroupMetadata],
    input_func: Callable[[str], str] = input,
    output: TextIO | None = None,
) -> GroupMetadata | None:
    """Ask the operator to pick one of *groups* from a numbered list.

    A single group is selected without asking.  Blank input or end of
    input cancels; anything else that is not a listed number asks again.

    Returns:
        The chosen group, or ``None`` if there was nothing to choose or the
        operator cancelled.
    """
    out = output or sys.stdout
    if not groups:
        logger.warning("No groups available to monitor")
        return None
    if len(groups) == 1:
        logger.info("Only one group found, selecting it: %s", groups[0].subject)
        return groups[0]

    print("Select a WhatsApp group to monitor:", file=out)
    for index, group in enumerate(groups, start=1):
        print(f"  {index:>2}. {group.subject} ({group.participant_count} members)", file=out)

    while True:
        try:
            answer = input_func(f"Group number [1-{len(groups)}, blank to cancel]: ").strip()
        except EOFError:
            answer = ""
        if not answer:
            print("Selection cancelled.", file=out)
            return None
        if answer.isdigit() and 1 <= int(answer) <= len(groups):
            chosen = groups[int(answer) - 1]
            print(f"Selected: {chosen.subject} ({chosen.id})", file=out)
            return chosen
        print(f"Please enter a number between 1 and {len(groups)}.", file=out)
