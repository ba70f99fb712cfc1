"""Short-window suppression of repeated notifications."""

from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import datetime, timedelta

from notification_engine.utils import now_utc

DEFAULT_DEDUP_TAG = "default"


def dedup_key(user_id: str, notification_type: str, tag: str | None) -> str:
    return f"{user_id}:{notification_type}:{tag or DEFAULT_DEDUP_TAG}"


class DedupCache:
    """Remember recent deliveries and report repeats within ``window``.

    The cache is process local and shared by every dispatcher worker, so all
    access goes through a single lock.
    """

    def __init__(
        self,
        window_seconds: int = 60,
        *,
        clock: Callable[[], datetime] = now_utc,
    ) -> None:
        self._window = timedelta(seconds=window_seconds)
        self._clock = clock
        self._entries: dict[str, datetime] = {}
        self._lock = threading.Lock()

    @property
    def window(self) -> timedelta:
        return self._window

    def is_duplicate(self, user_id: str, notification_type: str, tag: str | None) -> bool:
        """Return ``True`` when the key was seen inside the window.

        A miss records the key, so the check and the insertion are atomic.
        """

        key = dedup_key(user_id, notification_type, tag)
        now = self._clock()
        with self._lock:
            seen_at = self._entries.get(key)
            if seen_at is not None and now - seen_at < self._window:
                return True
            self._entries[key] = now
            return False

    def sweep(self) -> int:
        """Drop expired keys and return how many were removed."""

        now = self._clock()
        with self._lock:
            expired = [
                key for key, seen_at in self._entries.items() if now - seen_at >= self._window
            ]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


__all__ = ["DEFAULT_DEDUP_TAG", "DedupCache", "dedup_key"]
