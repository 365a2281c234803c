import threading
from typing import Generic, TypeVar

T = TypeVar("T")


class SessionRegistry(Generic[T]):
    """Holds live streaming sessions so they outlive the caller's frame.

    Sessions are keyed by id and kept in insertion order. The event loop
    adds and removes sessions while other threads may read ``len`` or
    ``snapshot``.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sessions: dict[str, T] = {}

    def add(self, session_id: str, session: T) -> None:
        with self._lock:
            self._sessions[session_id] = session

    def remove(self, session_id: str) -> T | None:
        """Drop a session. Unknown ids are ignored."""
        with self._lock:
            return self._sessions.pop(session_id, None)

    def __contains__(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def snapshot(self) -> list[T]:
        """Return the live sessions, oldest first."""
        with self._lock:
            return list(self._sessions.values())
