"""In-memory transport session used by connection and listener tests."""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterable, Mapping
from typing import Any

from wa_events.transport import QueueTransport, TransportEvent


class FakeSession(QueueTransport):
    """A transport session that replays a scripted list of events.

    The script is queued up front followed by the end-of-stream marker,
    so :meth:`events` yields it and then stops, or raises *fail_with*
    when one is given.
    """

    def __init__(
        self,
        script: Iterable[TransportEvent] = (),
        groups: Mapping[str, Mapping[str, Any]] | None = None,
        end: bool = True,
        fail_with: Exception | None = None,
    ) -> None:
        super().__init__()
        self.groups = dict(groups or {})
        self.closed = False
        self.fail_with = fail_with
        for event in script:
            self.emit(event)
        if end:
            self.end()

    async def events(self) -> AsyncIterator[TransportEvent]:
        async for event in super().events():
            yield event
        if self.fail_with is not None:
            raise self.fail_with

    async def fetch_groups(self) -> Mapping[str, Mapping[str, Any]]:
        return self.groups

    async def close(self) -> None:
        self.closed = True
        await super().close()


class ScriptedFactory:
    """Transport factory returning one prepared session per call.

    An exception in *sessions* is raised by the call that would have
    returned it.
    """

    def __init__(self, sessions: Iterable[FakeSession | Exception]) -> None:
        self._sessions = list(sessions)
        self.credentials_seen: list[Mapping[str, Any] | None] = []

    def __call__(self, credentials: Mapping[str, Any] | None) -> FakeSession:
        self.credentials_seen.append(credentials)
        session = self._sessions.pop(0)
        if isinstance(session, Exception):
            raise session
        return session


def make_session(credentials: Mapping[str, Any] | None) -> FakeSession:
    """Importable factory for transport-loading tests."""
    return FakeSession()
