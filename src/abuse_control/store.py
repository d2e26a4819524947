"""Key/value state behind the abuse-control engines.

The engines only rely on the narrow ``StateStore`` contract so a shared
cache can replace the in-process map without touching the accounting.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

from src.abuse_control.clock import Clock

Mutation = Callable[[Optional[Any]], tuple[Any, float]]


class StateStore(Protocol):
    def get(self, key: str) -> Optional[Any]:
        ...

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        ...

    def delete(self, key: str) -> None:
        ...

    def delete_if(self, key: str, predicate: Callable[[Any], bool]) -> bool:
        """Delete ``key`` only if its live value satisfies ``predicate``."""
        ...

    def update(self, key: str, mutate: Mutation) -> Any:
        """Atomically replace the value at ``key`` with ``mutate(current)``.

        ``mutate`` returns ``(new_value, ttl_seconds)``; the new value is returned.
        """
        ...

    def purge_expired(self) -> int:
        ...

    def clear(self) -> None:
        ...

    def __len__(self) -> int:
        ...


@dataclass
class _Entry:
    value: Any
    expires_at: float


class InMemoryStateStore:
    """Process-local store; every operation holds a single lock."""

    def __init__(self, clock: Clock | None = None):
        self.clock = clock or Clock()
        self._entries: dict[str, _Entry] = {}
        self._lock = threading.Lock()

    def _live(self, key: str, now: float) -> Optional[_Entry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= now:
            del self._entries[key]
            return None
        return entry

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._live(key, self.clock.monotonic())
            return entry.value if entry else None

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        with self._lock:
            self._entries[key] = _Entry(value, self.clock.monotonic() + ttl_seconds)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def delete_if(self, key: str, predicate: Callable[[Any], bool]) -> bool:
        with self._lock:
            entry = self._live(key, self.clock.monotonic())
            if entry is None or not predicate(entry.value):
                return False
            del self._entries[key]
            return True

    def update(self, key: str, mutate: Mutation) -> Any:
        with self._lock:
            now = self.clock.monotonic()
            entry = self._live(key, now)
            value, ttl_seconds = mutate(entry.value if entry else None)
            self._entries[key] = _Entry(value, now + ttl_seconds)
            return value

    def purge_expired(self) -> int:
        with self._lock:
            now = self.clock.monotonic()
            stale = [key for key, entry in self._entries.items() if entry.expires_at <= now]
            for key in stale:
                del self._entries[key]
            return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
