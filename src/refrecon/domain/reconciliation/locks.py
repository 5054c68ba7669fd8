"""Keyed mutexes serialising work on the same real-world entity."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator


@dataclass(slots=True)
class _Entry:
    lock: threading.Lock = field(default_factory=threading.Lock)
    holders: int = 0


class KeyedLocks:
    """Reference-counted locks, created on demand and dropped when unused.

    Keys are always acquired in sorted order, so two callers that share any
    subset of keys cannot deadlock on each other.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: dict[str, _Entry] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)

    @contextmanager
    def hold(self, keys: Iterable[str]) -> Iterator[None]:
        acquired: list[str] = []
        try:
            for key in sorted(set(keys)):
                entry = self._checkout(key)
                entry.lock.acquire()
                acquired.append(key)
            yield
        finally:
            for key in reversed(acquired):
                self._release(key)

    def _checkout(self, key: str) -> _Entry:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _Entry()
            entry.holders += 1
            return entry

    def _release(self, key: str) -> None:
        with self._guard:
            entry = self._entries[key]
            entry.lock.release()
            entry.holders -= 1
            if entry.holders == 0:
                del self._entries[key]
