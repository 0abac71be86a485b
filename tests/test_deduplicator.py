from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone

from services.deduplicator import EventDeduplicator

_START = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def test_first_emergency_always_notifies() -> None:
    dedup = EventDeduplicator()

    assert dedup.should_notify("device-1", _START) is True
    assert dedup.last_notified("device-1") == _START


def test_repeat_within_cooldown_is_suppressed_until_window_expires() -> None:
    dedup = EventDeduplicator(cooldown=timedelta(minutes=5))

    assert dedup.should_notify("device-1", _START)
    assert not dedup.should_notify("device-1", _START + timedelta(seconds=10))
    assert not dedup.should_notify("device-1", _START + timedelta(minutes=4, seconds=59))
    assert dedup.should_notify("device-1", _START + timedelta(minutes=5))
    assert dedup.last_notified("device-1") == _START + timedelta(minutes=5)


def test_suppressed_check_does_not_extend_cooldown() -> None:
    dedup = EventDeduplicator(cooldown=timedelta(minutes=5))

    dedup.should_notify("device-1", _START)
    dedup.should_notify("device-1", _START + timedelta(minutes=4))

    assert dedup.last_notified("device-1") == _START


def test_devices_have_independent_cooldowns() -> None:
    dedup = EventDeduplicator()

    assert dedup.should_notify("device-1", _START)
    assert dedup.should_notify("device-2", _START)
    assert not dedup.should_notify("device-1", _START)


def test_uses_clock_when_now_is_omitted() -> None:
    current = [_START]
    dedup = EventDeduplicator(cooldown=timedelta(seconds=30), clock=lambda: current[0])

    assert dedup.should_notify("device-1")
    current[0] = _START + timedelta(seconds=29)
    assert not dedup.should_notify("device-1")
    current[0] = _START + timedelta(seconds=30)
    assert dedup.should_notify("device-1")


def test_concurrent_checks_for_same_device_have_single_winner() -> None:
    dedup = EventDeduplicator()
    workers = 16
    barrier = threading.Barrier(workers)
    results: list[bool] = []
    results_lock = threading.Lock()

    def check() -> None:
        barrier.wait(timeout=5)
        outcome = dedup.should_notify("device-1", _START)
        with results_lock:
            results.append(outcome)

    threads = [threading.Thread(target=check) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=5)

    assert len(results) == workers
    assert results.count(True) == 1
