"""
Tests for scrapers/crawl_scheduler.py

Frequency follows deadline proximity; failing states get their backoff
applied; draw odds always wait for a trigger.
"""

from datetime import date, datetime, timedelta

import pytest

from scrapers.backoff import compute_backoff
from scrapers.crawl_scheduler import (
    CrawlFrequency,
    CrawlTask,
    DataCategory,
    StateDeadlineContext,
    build_crawl_schedule,
    build_task,
    compute_optimal_frequency,
    diff_schedules,
    schedule_from_dict,
)

NOW = datetime(2026, 3, 1, 12, 0, 0)


def _context(state_id="WY", days=None, regulatory_url=None):
    closest = NOW.date() + timedelta(days=days) if days is not None else None
    return StateDeadlineContext(
        state_id=state_id,
        fg_url=f"https://{state_id.lower()}.example.gov",
        closest_deadline=closest,
        days_until_deadline=days,
        regulatory_url=regulatory_url,
    )


# =============================================================================
# Frequency rules
# =============================================================================

class TestDeadlineFrequency:
    """Deadline category frequency by days until the closest deadline."""

    @pytest.mark.parametrize("days,frequency,priority", [
        (0, CrawlFrequency.SIX_HOURS, 1),
        (2, CrawlFrequency.SIX_HOURS, 1),
        (3, CrawlFrequency.TWICE_WEEK, 2),
        (7, CrawlFrequency.TWICE_WEEK, 2),
        (8, CrawlFrequency.DAILY, 2),
        (30, CrawlFrequency.DAILY, 2),
        (31, CrawlFrequency.WEEKLY, 4),
        (-1, CrawlFrequency.WEEKLY, 5),
    ])
    def test_bands(self, days, frequency, priority):
        decision = compute_optimal_frequency(_context(days=days), DataCategory.DEADLINES)
        assert decision.frequency == frequency
        assert decision.priority == priority

    def test_no_deadline_data(self):
        decision = compute_optimal_frequency(_context(), DataCategory.DEADLINES)

        assert decision.frequency == CrawlFrequency.WEEKLY
        assert decision.priority == 4
        assert "no deadline data" in decision.reason

    def test_critical_reason(self):
        decision = compute_optimal_frequency(_context(days=1), DataCategory.DEADLINES)
        assert decision.reason == "CRITICAL: WY deadline in 1 day(s). 6-hour monitoring active."

    def test_passed_deadline_reason(self):
        decision = compute_optimal_frequency(_context(days=-12), DataCategory.DEADLINES)
        assert "deadline 12 days ago" in decision.reason


class TestOtherCategories:

    @pytest.mark.parametrize("category", [DataCategory.FEES, DataCategory.REGULATIONS])
    def test_fees_daily_inside_30_days(self, category):
        decision = compute_optimal_frequency(_context(days=10), category)
        assert decision.frequency == CrawlFrequency.DAILY
        assert decision.priority == 2

    @pytest.mark.parametrize("days", [None, 0, 31, -5])
    def test_fees_weekly_otherwise(self, days):
        decision = compute_optimal_frequency(_context(days=days), DataCategory.FEES)
        assert decision.frequency == CrawlFrequency.WEEKLY
        assert decision.priority == 4

    @pytest.mark.parametrize("days", [None, 1, 100])
    def test_draw_odds_always_on_trigger(self, days):
        decision = compute_optimal_frequency(_context(days=days), DataCategory.DRAW_ODDS)
        assert decision.frequency == CrawlFrequency.ON_TRIGGER
        assert decision.priority == 5

    def test_quotas_follow_deadline_rules(self):
        decision = compute_optimal_frequency(_context(days=5), DataCategory.QUOTAS)
        assert decision.frequency == CrawlFrequency.TWICE_WEEK


# =============================================================================
# Tasks
# =============================================================================

class TestBuildTask:
    """One task, with backoff applied."""

    def test_timer_task(self):
        task = build_task(_context(days=10), DataCategory.DEADLINES, NOW)

        assert task.id == "crawl-WY-deadlines"
        assert task.next_crawl_at == NOW + timedelta(days=1)
        assert task.in_backoff is False
        assert task.target_url == "https://wy.example.gov"

    def test_trigger_task_has_no_timer(self):
        task = build_task(_context(days=10), DataCategory.DRAW_ODDS, NOW)

        assert task.next_crawl_at is None
        assert task.has_timer is False
        assert task.to_dict()["next_crawl_at"] == "awaiting_trigger"

    def test_regulations_use_regulatory_url(self):
        context = _context(days=10, regulatory_url="https://wy.example.gov/regs")
        assert build_task(context, DataCategory.REGULATIONS, NOW).target_url == "https://wy.example.gov/regs"
        assert build_task(context, DataCategory.FEES, NOW).target_url == "https://wy.example.gov"

    def test_backoff_overrides_next_crawl(self):
        backoff = compute_backoff("WY", 3, NOW)
        task = build_task(_context(days=10), DataCategory.DEADLINES, NOW, backoff)

        assert task.in_backoff is True
        assert task.consecutive_failures == 3
        assert task.next_crawl_at == NOW + timedelta(minutes=20)
        assert task.frequency == CrawlFrequency.DAILY
        assert "Failure #3" in task.reason

    def test_paused_state(self):
        backoff = compute_backoff("WY", 10, NOW)
        task = build_task(_context(days=1), DataCategory.DEADLINES, NOW, backoff)

        assert task.frequency == CrawlFrequency.PAUSED
        assert task.next_crawl_at is None
        assert task.priority == 1
        assert task.to_dict()["next_crawl_at"] == "paused"

    def test_healthy_backoff_ignored(self):
        backoff = compute_backoff("WY", 0, NOW)
        task = build_task(_context(days=10), DataCategory.DEADLINES, NOW, backoff)

        assert task.in_backoff is False
        assert task.next_crawl_at == NOW + timedelta(days=1)

    def test_trigger_task_stays_on_trigger_in_backoff(self):
        backoff = compute_backoff("WY", 2, NOW)
        task = build_task(_context(days=10), DataCategory.DRAW_ODDS, NOW, backoff)

        assert task.frequency == CrawlFrequency.ON_TRIGGER
        assert task.next_crawl_at is None


# =============================================================================
# Schedule
# =============================================================================

class TestBuildCrawlSchedule:
    """Whole-schedule assembly and ordering."""

    def test_one_task_per_state_and_category(self):
        schedule = build_crawl_schedule([_context("WY", 10), _context("CO", 40)], now=NOW)

        assert len(schedule.tasks) == 8
        assert schedule.generated_at == NOW
        assert schedule.get_task("crawl-CO-draw_odds").frequency == CrawlFrequency.ON_TRIGGER

    def test_sorted_by_priority_then_time(self):
        schedule = build_crawl_schedule([_context("WY", 40), _context("CO", 1)], now=NOW)
        keys = [(t.priority, t.next_crawl_at is None, t.next_crawl_at or datetime.max) for t in schedule.tasks]

        assert keys == sorted(keys)
        assert schedule.tasks[0].id == "crawl-CO-deadlines"
        assert schedule.next_due.id == "crawl-CO-deadlines"

    def test_trigger_tasks_last_within_priority(self):
        schedule = build_crawl_schedule([_context("WY", -3)], now=NOW)
        priority_five = [t for t in schedule.tasks if t.priority == 5]

        assert [t.category for t in priority_five] == [DataCategory.DEADLINES, DataCategory.DRAW_ODDS]

    def test_frequency_distribution(self):
        schedule = build_crawl_schedule([_context("WY", 10)], now=NOW)
        assert schedule.frequency_distribution == {"daily": 3, "on_trigger": 1}

    def test_custom_categories(self):
        schedule = build_crawl_schedule([_context("WY", 10)], categories=[DataCategory.FEES], now=NOW)
        assert [t.id for t in schedule.tasks] == ["crawl-WY-fees"]

    def test_next_due_none_when_everything_waits(self):
        schedule = build_crawl_schedule([_context("WY", 10)], categories=[DataCategory.DRAW_ODDS], now=NOW)
        assert schedule.next_due is None

    def test_backoff_applied_per_state(self):
        schedule = build_crawl_schedule(
            [_context("WY", 10), _context("CO", 10)],
            now=NOW,
            backoff_states={"WY": compute_backoff("WY", 10, NOW)},
        )

        assert schedule.get_task("crawl-WY-fees").frequency == CrawlFrequency.PAUSED
        assert schedule.get_task("crawl-CO-fees").frequency == CrawlFrequency.DAILY

    def test_recomputed_each_run(self):
        context = StateDeadlineContext(
            state_id="WY", fg_url="u", closest_deadline=date(2026, 3, 11), days_until_deadline=10,
        )
        later = StateDeadlineContext(
            state_id="WY", fg_url="u", closest_deadline=date(2026, 3, 11), days_until_deadline=2,
        )
        first = build_crawl_schedule([context], now=NOW)
        second = build_crawl_schedule([later], now=NOW + timedelta(days=8))

        assert first.get_task("crawl-WY-deadlines").frequency == CrawlFrequency.DAILY
        assert second.get_task("crawl-WY-deadlines").frequency == CrawlFrequency.SIX_HOURS


class TestScheduleChanges:
    """Frequency changes between runs, and serialization of a previous run."""

    def test_diff_schedules(self):
        previous = build_crawl_schedule([_context("WY", 40)], now=NOW)
        current = build_crawl_schedule([_context("WY", 5)], now=NOW)
        changes = diff_schedules(previous, current)

        by_category = {c.category: c for c in changes}
        assert set(by_category) == {DataCategory.DEADLINES, DataCategory.FEES, DataCategory.REGULATIONS}
        assert by_category[DataCategory.DEADLINES].old_frequency == CrawlFrequency.WEEKLY
        assert by_category[DataCategory.DEADLINES].new_frequency == CrawlFrequency.TWICE_WEEK

    def test_no_previous_run(self):
        assert diff_schedules(None, build_crawl_schedule([_context("WY", 5)], now=NOW)) == []

    def test_schedule_from_dict(self):
        schedule = build_crawl_schedule(
            [_context("WY", 5), _context("CO", 40)],
            now=NOW,
            backoff_states={"CO": compute_backoff("CO", 12, NOW)},
        )
        restored = schedule_from_dict(schedule.to_dict())

        assert restored.tasks == schedule.tasks
        assert restored.generated_at == NOW
        assert restored.next_due == schedule.next_due
        assert diff_schedules(restored, schedule) == []

    def test_task_from_dict_sentinels(self):
        data = build_task(_context(days=5), DataCategory.DRAW_ODDS, NOW).to_dict()
        assert CrawlTask.from_dict(data).next_crawl_at is None
