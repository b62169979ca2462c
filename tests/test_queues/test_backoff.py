"""Tests for backoff utilities."""

import pytest

from hubrelay.queues.backoff import DelaySchedule, ExponentialBackoff


class TestExponentialBackoff:
    """Tests for ExponentialBackoff delay calculation."""

    def test_first_delay_is_base(self):
        backoff = ExponentialBackoff(base_delay=1.0, max_delay=60.0, jitter_range=0.0)
        assert backoff.next_delay() == 1.0

    def test_delay_doubles_without_jitter(self):
        backoff = ExponentialBackoff(
            base_delay=1.0, max_delay=60.0, multiplier=2.0, jitter_range=0.0
        )
        assert [backoff.next_delay() for _ in range(3)] == [1.0, 2.0, 4.0]

    def test_caps_at_max_delay(self):
        backoff = ExponentialBackoff(
            base_delay=10.0, max_delay=30.0, multiplier=2.0, jitter_range=0.0
        )
        backoff.next_delay()  # 10
        backoff.next_delay()  # 20
        assert backoff.next_delay() == 30.0

    def test_jitter_stays_non_negative(self):
        backoff = ExponentialBackoff(base_delay=0.5, max_delay=60.0, jitter_range=0.5)
        for _ in range(100):
            assert backoff.next_delay() >= 0

    def test_reset_resets_attempt_counter(self):
        backoff = ExponentialBackoff(
            base_delay=1.0, max_delay=60.0, multiplier=2.0, jitter_range=0.0
        )
        for _ in range(3):
            backoff.next_delay()
        assert backoff.attempt == 3
        backoff.reset()
        assert backoff.attempt == 0
        assert backoff.next_delay() == 1.0


class TestDelaySchedule:
    """Tests for the bounded delay table used by hub handshakes."""

    def test_first_attempt_has_no_delay(self):
        schedule = DelaySchedule([1.0, 5.0, 15.0], max_retries=3)
        assert schedule.delay_before(0) == 0.0

    def test_iterates_first_attempt_plus_retries(self):
        schedule = DelaySchedule([1.0, 5.0, 15.0], max_retries=3)
        assert list(schedule) == [(0, 0.0), (1, 1.0), (2, 5.0), (3, 15.0)]
        assert schedule.max_attempts == 4

    def test_short_table_reuses_last_delay(self):
        schedule = DelaySchedule([2.0], max_retries=3)
        assert [delay for _, delay in schedule] == [0.0, 2.0, 2.0, 2.0]

    def test_zero_retries_is_single_attempt(self):
        schedule = DelaySchedule([], max_retries=0)
        assert list(schedule) == [(0, 0.0)]

    def test_rejects_empty_table_with_retries(self):
        with pytest.raises(ValueError):
            DelaySchedule([], max_retries=2)

    def test_rejects_negative_retries(self):
        with pytest.raises(ValueError):
            DelaySchedule([1.0], max_retries=-1)
