"""Connection lifecycle states and their transition table.

The connection is always in exactly one of four states:

- :class:`Connecting` -- a session is being opened.
- :class:`Connected` -- the session is open and delivering messages.
- :class:`DisconnectedRetryable` -- the session closed but can be reopened.
- :class:`DisconnectedTerminal` -- the session was logged out; nothing
  more can happen in this run.

:data:`TRANSITIONS` lists the legal moves and :func:`transition` enforces
them.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum


class DisconnectReason(IntEnum):
    """Disconnect status codes reported by the WhatsApp transport."""

    LOGGED_OUT = 401
    FORBIDDEN = 403
    CONNECTION_LOST = 408
    MULTIDEVICE_MISMATCH = 411
    CONNECTION_CLOSED = 428
    CONNECTION_REPLACED = 440
    BAD_SESSION = 500
    UNAVAILABLE_SERVICE = 503
    RESTART_REQUIRED = 515


@dataclass(frozen=True)
class Connecting:
    """A session is being opened."""


@dataclass(frozen=True)
class Connected:
    """The session is open."""


@dataclass(frozen=True)
class DisconnectedRetryable:
    """The session closed for a reason that a reconnect may fix.

    Attributes:
        is_conflict: Another device took over the same session.
        status_code: Disconnect reason reported by the transport, if any.
    """

    is_conflict: bool = False
    status_code: int | None = None


@dataclass(frozen=True)
class DisconnectedTerminal:
    """The session was logged out and needs re-authentication.

    Attributes:
        status_code: Disconnect reason reported by the transport, if any.
    """

    status_code: int | None = None


ConnectionState = Connecting | Connected | DisconnectedRetryable | DisconnectedTerminal

TRANSITIONS: dict[type, frozenset[type]] = {
    Connecting: frozenset({Connected, DisconnectedRetryable, DisconnectedTerminal}),
    Connected: frozenset({DisconnectedRetryable, DisconnectedTerminal}),
    DisconnectedRetryable: frozenset({Connecting}),
    DisconnectedTerminal: frozenset(),
}


class InvalidTransitionError(ValueError):
    """Raised when a state change is not in :data:`TRANSITIONS`."""

    def __init__(self, current: ConnectionState, new: ConnectionState) -> None:
        super().__init__(
            f"Illegal connection transition {type(current).__name__} -> "
            f"{type(new).__name__}"
        )
        self.current = current
        self.new = new


def transition(current: ConnectionState, new: ConnectionState) -> ConnectionState:
    """Move from *current* to *new*, enforcing the transition table.

    An update reporting the same kind of state as *current* is a no-op and
    returns *current* unchanged.

    Raises:
        InvalidTransitionError: If the move is not allowed.
    """
    if type(new) is type(current):
        return current
    if type(new) not in TRANSITIONS[type(current)]:
        raise InvalidTransitionError(current, new)
    return new


def state_from_update(connection: str, status_code: int | None = None) -> ConnectionState:
    """Map a transport connection update onto a :data:`ConnectionState`.

    Args:
        connection: ``"open"``, ``"close"`` or ``"connecting"``.
        status_code: Disconnect reason for ``"close"`` updates.

    Returns:
        The state the update describes.  A close is terminal only when the
        session was logged out; a close caused by another device taking
        over the session is flagged as a conflict.
    """
    if connection == "close":
        if status_code == DisconnectReason.LOGGED_OUT:
            return DisconnectedTerminal(status_code=status_code)
        return DisconnectedRetryable(
            is_conflict=status_code == DisconnectReason.CONNECTION_REPLACED,
            status_code=status_code,
        )
    if connection == "open":
        return Connected()
    return Connecting()
