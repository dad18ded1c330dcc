from __future__ import annotations

from abc import ABC, abstractmethod
from collections import OrderedDict
from datetime import datetime, timedelta
from threading import Lock


class SessionCache(ABC):
    """Advisory sender -> last-seen store. Never a source of truth."""

    @abstractmethod
    def get(self, sender_id: str, *, now: datetime) -> datetime | None:
        """Returns the last-seen timestamp if it has not expired."""

    @abstractmethod
    def touch(self, sender_id: str, *, seen_at: datetime) -> None:
        """Records activity for the sender."""

    @abstractmethod
    def clear(self) -> None:
        """Drops every entry."""


class InMemorySessionCache(SessionCache):
    def __init__(self, *, max_size: int = 10_000, ttl: timedelta = timedelta(hours=24)) -> None:
        if max_size < 1:
            raise ValueError("max_size must be positive")
        self.max_size = max_size
        self.ttl = ttl
        self._entries: OrderedDict[str, datetime] = OrderedDict()
        self._lock = Lock()

    def get(self, sender_id: str, *, now: datetime) -> datetime | None:
        with self._lock:
            seen_at = self._entries.get(sender_id)
            if seen_at is None:
                return None
            if now - seen_at >= self.ttl:
                self._entries.pop(sender_id, None)
                return None
            self._entries.move_to_end(sender_id)
            return seen_at

    def touch(self, sender_id: str, *, seen_at: datetime) -> None:
        with self._lock:
            self._entries[sender_id] = seen_at
            self._entries.move_to_end(sender_id)
            while len(self._entries) > self.max_size:
                self._entries.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class NullSessionCache(SessionCache):
    def get(self, sender_id: str, *, now: datetime) -> datetime | None:
        return None

    def touch(self, sender_id: str, *, seen_at: datetime) -> None:
        return None

    def clear(self) -> None:
        return None
