"""
Tests for services/crawl_health.py
"""

from datetime import datetime, timedelta

from scrapers.models import CrawlHealth
from services.crawl_health import CrawlHealthService

NOW = datetime(2026, 3, 1, 12, 0, 0)


class TestRecordFailure:
    """Failure counting and pausing."""

    def test_first_failure(self, db_session):
        state = CrawlHealthService(db_session).record_failure("WY", "HTTP 503", now=NOW)

        assert state.consecutive_failures == 1
        assert state.next_retry_at == NOW + timedelta(minutes=5)

        row = db_session.get(CrawlHealth, "WY")
        assert row.consecutive_failures == 1
        assert row.last_error == "HTTP 503"
        assert row.last_failure_at == NOW
        assert row.next_retry_at == NOW + timedelta(minutes=5)
        assert row.paused is False

    def test_failures_accumulate(self, db_session):
        health = CrawlHealthService(db_session)
        for _ in range(3):
            state = health.record_failure("WY", "HTTP 503", now=NOW)

        assert state.consecutive_failures == 3
        assert state.next_retry_at == NOW + timedelta(minutes=20)
        assert health.get_health("WY").last_error == "HTTP 503"

    def test_tenth_failure_pauses(self, db_session):
        health = CrawlHealthService(db_session)
        for i in range(10):
            state = health.record_failure("CO", f"timeout #{i + 1}", now=NOW + timedelta(hours=i))

        row = health.get_health("CO")
        assert state.paused is True
        assert row.paused is True
        assert row.paused_at == NOW + timedelta(hours=9)
        assert row.next_retry_at is None

    def test_pause_time_kept_on_later_failures(self, db_session):
        health = CrawlHealthService(db_session)
        for i in range(11):
            health.record_failure("CO", "timeout", now=NOW + timedelta(hours=i))

        assert health.get_health("CO").paused_at == NOW + timedelta(hours=9)


class TestRecovery:

    def test_success_resets(self, db_session):
        health = CrawlHealthService(db_session)
        health.record_failure("WY", "HTTP 503", now=NOW)
        health.record_failure("WY", "HTTP 503", now=NOW)

        row = health.record_success("WY", now=NOW + timedelta(hours=1))

        assert row.consecutive_failures == 0
        assert row.next_retry_at is None
        assert row.last_success_at == NOW + timedelta(hours=1)
        # The error history stays for the digest
        assert row.last_failure_at == NOW

    def test_success_for_new_state(self, db_session):
        row = CrawlHealthService(db_session).record_success("MT", now=NOW)
        assert row.consecutive_failures == 0
        assert row.last_success_at == NOW

    def test_resume_lifts_pause(self, db_session):
        health = CrawlHealthService(db_session)
        for _ in range(10):
            health.record_failure("CO", "timeout", now=NOW)

        row = health.resume("CO", resumed_by="ops@example.com")

        assert row.paused is False
        assert row.paused_at is None
        assert row.consecutive_failures == 0
        assert health.backoff_states() == {}


class TestBackoffStates:

    def test_only_failing_states(self, db_session):
        health = CrawlHealthService(db_session)
        health.record_failure("WY", "HTTP 503", now=NOW)
        health.record_success("MT", now=NOW)
        for _ in range(10):
            health.record_failure("CO", "timeout", now=NOW)

        states = health.backoff_states()

        assert set(states) == {"CO", "WY"}
        assert states["WY"].in_backoff is True
        assert states["WY"].next_retry_at == NOW + timedelta(minutes=5)
        assert states["CO"].paused is True

    def test_list_health_ordered(self, db_session):
        health = CrawlHealthService(db_session)
        health.record_failure("WY", "HTTP 503", now=NOW)
        health.record_success("CO", now=NOW)

        assert [row.state_id for row in health.list_health()] == ["CO", "WY"]
