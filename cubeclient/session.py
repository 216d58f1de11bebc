"""
Session Store: the single owner of the current CurrentPlayerEnvelope.

Every mutation is written through to the durable store before the in-memory
value changes. ``epoch`` advances on every clear so callers can tell whether
a response belongs to a session that has since been logged out.
"""

from __future__ import annotations

from cubeclient import config
from cubeclient.api import _log_session_event
from cubeclient.exceptions import DecodeError
from cubeclient.models import CurrentPlayerEnvelope


class SessionStore:
    def __init__(self, store, key: str = config.SESSION_KEY) -> None:
        self._store = store
        self._key = key
        self._epoch = 0
        self._current = self._restore()

    def _restore(self) -> CurrentPlayerEnvelope | None:
        raw = self._store.get(self._key)
        if raw is None:
            return None
        try:
            envelope = CurrentPlayerEnvelope.from_dict(raw)
        except DecodeError as e:
            _log_session_event(event="session_discarded", reason=str(e))
            return None
        _log_session_event(event="session_restored", player_id=envelope.player.id)
        return envelope

    @property
    def epoch(self) -> int:
        return self._epoch

    def current(self) -> CurrentPlayerEnvelope | None:
        return self._current

    def replace(self, envelope: CurrentPlayerEnvelope) -> None:
        self._store.set(self._key, envelope.to_dict())
        self._current = envelope
        _log_session_event(event="session_replaced", player_id=envelope.player.id)

    def clear(self) -> None:
        self._epoch += 1
        if self._current is None and self._store.get(self._key) is None:
            return
        self._store.delete(self._key)
        self._current = None
        _log_session_event(event="session_cleared")
