"""Session-scoped detail cache."""

from __future__ import annotations

from threading import Lock

from .models import DetailRecord


class InMemoryDetailCache:
    """Unbounded, additive-only cache keyed by playlist id.

    ``put`` is an atomic check-then-insert: the first record stored for an id
    wins and is returned to every later caller.
    """

    def __init__(self) -> None:
        self._records: dict[str, DetailRecord] = {}
        self._lock = Lock()

    def get(self, playlist_id: str) -> DetailRecord | None:
        return self._records.get(playlist_id)

    def put(self, record: DetailRecord) -> DetailRecord:
        with self._lock:
            return self._records.setdefault(record.id, record)

    def __contains__(self, playlist_id: object) -> bool:
        return playlist_id in self._records

    def __len__(self) -> int:
        return len(self._records)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()
