"""
Tests for services/weekly_digest.py

Health score: 100 - 15/paused - 5/backing off - 10/awaiting approval
- 5/self-heal, clamped to 0..100.
"""

from datetime import datetime, timedelta

from scrapers.crawl_scheduler import CrawlFrequency, DataCategory, FrequencyChange
from scrapers.models import AirlockQueueEntry, CrawlHealth
from services.weekly_digest import (
    CrawlerFailure,
    CrawlerStatus,
    HealMethod,
    QuarantinedAnomaly,
    SelfHealedBlock,
    SuccessfulUpdate,
    build_weekly_digest,
    collect_weekly_activity,
    compile_weekly_digest,
    compute_health_score,
)

NOW = datetime(2026, 3, 8, 12, 0, 0)


def _update(state_id="WY"):
    return SuccessfulUpdate(state_id, "batch:b1", NOW - timedelta(days=1), "1 passed")


def _anomaly(awaiting=True):
    return QuarantinedAnomaly("CO", "batch:b2", NOW - timedelta(days=2), "1 blocked", awaiting)


def _failure(status, state_id="MT"):
    return CrawlerFailure(state_id, 3, "HTTP 503", status)


def _heal():
    return SelfHealedBlock("WY", "tag_costs.elk", HealMethod.PATTERN_MATCH, 0.92, True, "Re-extracted")


def _queue_entry(batch_id, status, evaluated_at, resolved_at=None, state_id="WY"):
    return AirlockQueueEntry(
        state_id=state_id,
        scrape_batch_id=batch_id,
        snapshot_id=f"staging-{state_id}-{batch_id}",
        status=status,
        overall_verdict="pass" if status == "auto_approved" else "block",
        verdict_json={},
        summary="1 passed" if status == "auto_approved" else "1 blocked",
        evaluated_at=evaluated_at,
        resolved_at=resolved_at,
    )


# =============================================================================
# Health score
# =============================================================================

class TestHealthScore:

    def test_perfect_week(self):
        assert compute_health_score([], [], []) == 100

    def test_penalties(self):
        score = compute_health_score(
            [_anomaly(True), _anomaly(True), _anomaly(False)],
            [
                _failure(CrawlerStatus.PAUSED),
                _failure(CrawlerStatus.BACKING_OFF),
                _failure(CrawlerStatus.RECOVERED),
            ],
            [_heal()],
        )
        assert score == 100 - 15 - 5 - 20 - 5

    def test_clamped_at_zero(self):
        failures = [_failure(CrawlerStatus.PAUSED, state_id=f"S{i}") for i in range(10)]
        assert compute_health_score([], failures, []) == 0

    def test_resolved_quarantine_not_penalised(self):
        assert compute_health_score([_anomaly(False)], [], []) == 100


# =============================================================================
# Compile
# =============================================================================

class TestCompileWeeklyDigest:
    """Digest assembly from already-collected activity."""

    def test_quiet_week(self):
        digest = compile_weekly_digest([], [], [], [], [], now=NOW)

        assert digest.health_score == 100
        assert digest.summary_line == "Weekly Data Ops Digest | 0 updates verified | Health: 100/100"
        assert digest.period_start == NOW - timedelta(days=7)
        assert digest.period_end == NOW
        assert digest.pending_approvals == 0

    def test_busy_week(self):
        digest = compile_weekly_digest(
            [_update(), _update("CO")],
            [_anomaly(True), _anomaly(True), _anomaly(False)],
            [],
            [
                _failure(CrawlerStatus.PAUSED),
                _failure(CrawlerStatus.BACKING_OFF, state_id="NV"),
                _failure(CrawlerStatus.RECOVERED, state_id="UT"),
            ],
            [_heal()],
            now=NOW,
        )

        assert digest.health_score == 55
        assert digest.pending_approvals == 2
        assert digest.summary_line == (
            "Weekly Data Ops Digest | 2 updates verified | 2 state(s) with crawler issues | "
            "2 quarantined item(s) awaiting approval | 1 self-healed block(s) | Health: 55/100"
        )

    def test_custom_window(self):
        digest = compile_weekly_digest([], [], [], [], [], now=NOW, window_days=14)
        assert digest.period_start == NOW - timedelta(days=14)

    def test_to_dict(self):
        change = FrequencyChange(
            "WY", DataCategory.DEADLINES, CrawlFrequency.WEEKLY, CrawlFrequency.DAILY,
            "WY deadline in 20 days. Daily monitoring.",
        )
        data = compile_weekly_digest([_update()], [], [change], [], [_heal()], now=NOW).to_dict()

        assert data["frequency_changes"][0]["new_frequency"] == "daily"
        assert data["self_healed_blocks"][0]["method"] == "pattern_match"
        assert data["successful_updates"][0]["verified_at"] == "2026-03-07T12:00:00"
        assert data["health_score"] == 95


# =============================================================================
# Store readers
# =============================================================================

class TestCollectWeeklyActivity:
    """Activity read from airlock_queue and crawl_health."""

    def test_collects_window(self, db_session, add_rows):
        add_rows(
            _queue_entry("b-auto", "auto_approved", NOW - timedelta(days=3)),
            _queue_entry("b-auto-old", "auto_approved", NOW - timedelta(days=20)),
            _queue_entry("b-approved", "approved", NOW - timedelta(days=20), resolved_at=NOW - timedelta(days=2)),
            _queue_entry("b-waiting", "quarantined", NOW - timedelta(days=40), state_id="CO"),
            _queue_entry("b-rejected", "rejected", NOW - timedelta(days=1)),
            _queue_entry("b-rejected-old", "rejected", NOW - timedelta(days=30)),
        )

        activity = collect_weekly_activity(db_session, now=NOW)

        assert [u.field for u in activity.successful_updates] == ["batch:b-approved", "batch:b-auto"]
        assert activity.successful_updates[0].verified_at == NOW - timedelta(days=2)

        anomalies = {a.field: a for a in activity.quarantined_anomalies}
        assert set(anomalies) == {"batch:b-waiting", "batch:b-rejected"}
        assert anomalies["batch:b-waiting"].awaiting_approval is True
        assert anomalies["batch:b-rejected"].awaiting_approval is False

    def test_crawler_statuses(self, db_session, add_rows):
        add_rows(
            CrawlHealth(state_id="WY", consecutive_failures=3, last_error="HTTP 503",
                        last_failure_at=NOW - timedelta(hours=1)),
            CrawlHealth(state_id="CO", consecutive_failures=10, paused=True, last_error="timeout",
                        last_failure_at=NOW - timedelta(hours=2)),
            CrawlHealth(state_id="MT", consecutive_failures=0, last_failure_at=NOW - timedelta(days=4)),
            CrawlHealth(state_id="UT", consecutive_failures=0, last_failure_at=NOW - timedelta(days=30)),
        )

        failures = {f.state_id: f for f in collect_weekly_activity(db_session, now=NOW).crawler_failures}

        assert set(failures) == {"CO", "MT", "WY"}
        assert failures["CO"].status == CrawlerStatus.PAUSED
        assert failures["WY"].status == CrawlerStatus.BACKING_OFF
        assert failures["WY"].last_error == "HTTP 503"
        assert failures["MT"].status == CrawlerStatus.RECOVERED
        assert failures["MT"].last_error == ""


class TestBuildWeeklyDigest:

    def test_end_to_end(self, db_session, add_rows):
        add_rows(
            _queue_entry("b-auto", "auto_approved", NOW - timedelta(days=3)),
            _queue_entry("b-waiting", "quarantined", NOW - timedelta(days=1)),
            CrawlHealth(state_id="CO", consecutive_failures=12, paused=True,
                        last_failure_at=NOW - timedelta(hours=2)),
        )

        digest = build_weekly_digest(db_session, now=NOW)

        assert len(digest.successful_updates) == 1
        assert digest.pending_approvals == 1
        assert digest.health_score == 100 - 15 - 10
        assert digest.summary_line.endswith("Health: 75/100")

    def test_empty_store(self, db_session):
        digest = build_weekly_digest(db_session, now=NOW)
        assert digest.health_score == 100
        assert digest.crawler_failures == []
