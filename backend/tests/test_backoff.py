"""
Tests for scrapers/backoff.py

delay(n) = min(5 min * 2^(n-1), 24 h); paused from 10 failures on.
"""

import math
from datetime import datetime, timedelta

import pytest

from scrapers.backoff import (
    MAX_BACKOFF,
    MAX_FAILURES_BEFORE_PAUSE,
    backoff_delay,
    compute_backoff,
)

NOW = datetime(2026, 3, 1, 12, 0, 0)


class TestBackoffDelay:
    """Raw exponential delay."""

    @pytest.mark.parametrize("failures,minutes", [
        (1, 5),
        (2, 10),
        (3, 20),
        (4, 40),
        (5, 80),
        (8, 640),
        (9, 1280),
    ])
    def test_doubling(self, failures, minutes):
        assert backoff_delay(failures) == timedelta(minutes=minutes)

    def test_capped_at_24_hours(self):
        assert backoff_delay(10) == MAX_BACKOFF
        assert backoff_delay(500) == MAX_BACKOFF

    def test_zero_failures_no_delay(self):
        assert backoff_delay(0) == timedelta(0)

    def test_monotonic(self):
        delays = [backoff_delay(n) for n in range(0, 30)]
        assert delays == sorted(delays)


class TestComputeBackoff:
    """BackoffState for a failure count."""

    def test_healthy(self):
        state = compute_backoff("WY", 0, NOW)

        assert state.paused is False
        assert state.in_backoff is False
        assert state.current_delay_ms == 0
        assert state.next_retry_at == NOW
        assert state.reason == "WY: Healthy. No backoff."

    def test_first_failure(self):
        state = compute_backoff("WY", 1, NOW)

        assert state.in_backoff is True
        assert state.paused is False
        assert state.next_retry_at == NOW + timedelta(minutes=5)
        assert state.current_delay_ms == 5 * 60 * 1000
        assert state.last_failure_at == NOW
        assert "Backing off 5 minutes" in state.reason

    def test_fifth_failure(self):
        state = compute_backoff("WY", 5, NOW)
        assert state.next_retry_at == NOW + timedelta(minutes=80)

    def test_ninth_failure_not_paused(self):
        state = compute_backoff("WY", 9, NOW)
        assert state.paused is False
        assert state.next_retry_at == NOW + timedelta(minutes=1280)

    def test_tenth_failure_pauses(self):
        state = compute_backoff("WY", MAX_FAILURES_BEFORE_PAUSE, NOW)

        assert state.paused is True
        assert state.next_retry_at is None
        assert math.isinf(state.current_delay_ms)
        assert "PAUSED" in state.reason

    def test_stays_paused_past_ten(self):
        assert compute_backoff("WY", 25, NOW).paused is True

    def test_negative_raises(self):
        with pytest.raises(ValueError):
            compute_backoff("WY", -1, NOW)

    def test_to_dict_paused(self):
        data = compute_backoff("WY", 10, NOW).to_dict()

        assert data["next_retry_at"] == "paused"
        assert data["current_delay_ms"] is None
        assert data["paused"] is True

    def test_to_dict_backing_off(self):
        data = compute_backoff("WY", 2, NOW).to_dict()
        assert data["next_retry_at"] == "2026-03-01T12:10:00"
        assert data["current_delay_ms"] == 600000
