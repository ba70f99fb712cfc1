"""Tests for the short-window deduplication cache."""

from __future__ import annotations

import threading

from fakes import FakeClock
from notification_engine.application.use_cases.notifications import DedupCache
from notification_engine.application.use_cases.notifications.dedup import dedup_key


def test_second_send_within_window_is_a_duplicate():
    """The same key is suppressed inside the window and accepted after it."""

    clock = FakeClock()
    cache = DedupCache(60, clock=clock)

    assert cache.is_duplicate("u1", "daily_reminder", "daily-reminder") is False
    clock.advance(seconds=30)
    assert cache.is_duplicate("u1", "daily_reminder", "daily-reminder") is True
    clock.advance(seconds=31)
    assert cache.is_duplicate("u1", "daily_reminder", "daily-reminder") is False


def test_keys_are_scoped_by_user_type_and_tag():
    """Different users, types or tags never collide."""

    cache = DedupCache(60, clock=FakeClock())

    assert cache.is_duplicate("u1", "race_invite", "race-invite-A") is False
    assert cache.is_duplicate("u2", "race_invite", "race-invite-A") is False
    assert cache.is_duplicate("u1", "race_starting", "race-invite-A") is False
    assert cache.is_duplicate("u1", "race_invite", "race-invite-B") is False


def test_missing_tag_uses_the_default_bucket():
    """Untagged notifications share the ``default`` tag."""

    cache = DedupCache(60, clock=FakeClock())

    assert dedup_key("u1", "tip_of_the_day", None) == "u1:tip_of_the_day:default"
    assert cache.is_duplicate("u1", "tip_of_the_day", None) is False
    assert cache.is_duplicate("u1", "tip_of_the_day", "default") is True


def test_sweep_drops_only_expired_entries():
    """Sweeping keeps the keys that are still inside the window."""

    clock = FakeClock()
    cache = DedupCache(60, clock=clock)
    cache.is_duplicate("u1", "daily_reminder", None)
    clock.advance(seconds=45)
    cache.is_duplicate("u2", "daily_reminder", None)
    clock.advance(seconds=20)

    assert cache.sweep() == 1
    assert len(cache) == 1
    assert cache.is_duplicate("u2", "daily_reminder", None) is True


def test_concurrent_checks_let_exactly_one_through():
    """Check and record happen atomically under contention."""

    cache = DedupCache(60, clock=FakeClock())
    results: list[bool] = []
    lock = threading.Lock()
    barrier = threading.Barrier(8)

    def worker() -> None:
        barrier.wait()
        duplicate = cache.is_duplicate("u1", "achievement_unlock", "achievement-Speedster")
        with lock:
            results.append(duplicate)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert results.count(False) == 1
    assert results.count(True) == 7
