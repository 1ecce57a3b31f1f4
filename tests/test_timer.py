from datetime import datetime, timedelta, timezone

from assessments import timer

STARTED = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def test_deadline_is_start_plus_duration():
    assert timer.deadline(90, STARTED) == datetime(2026, 3, 1, 10, 30, tzinfo=timezone.utc)


def test_remaining_counts_down_in_whole_seconds():
    now = STARTED + timedelta(minutes=59, seconds=30, milliseconds=400)
    assert timer.remaining(60, STARTED, now) == 29


def test_remaining_never_goes_negative():
    assert timer.remaining(60, STARTED, STARTED + timedelta(hours=3)) == 0


def test_remaining_is_full_duration_at_start():
    assert timer.remaining(45, STARTED, STARTED) == 45 * 60


def test_remaining_is_stable_across_calls_with_same_clock():
    now = STARTED + timedelta(minutes=12)
    assert timer.remaining(60, STARTED, now) == timer.remaining(60, STARTED, now)


def test_past_deadline_only_after_the_deadline():
    deadline = timer.deadline(60, STARTED)
    assert not timer.is_past_deadline(60, STARTED, deadline - timedelta(seconds=1))
    assert not timer.is_past_deadline(60, STARTED, deadline)
    assert timer.is_past_deadline(60, STARTED, deadline + timedelta(microseconds=1))
