"""
Adaptive Crawl Scheduler - how often to re-fetch each state's data.

Frequency follows deadline proximity: the closer an application deadline,
the more often deadlines, fees and regulations are re-crawled. Draw odds
are published once a year and wait for an external trigger instead of a
timer.

The schedule is recomputed on every run (hourly cron). Deadline proximity
changes daily without any external event, so a schedule computed once
goes stale.
"""
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from scrapers.backoff import BackoffState
from utils.normalize import utcnow

logger = logging.getLogger(__name__)


class CrawlFrequency(str, Enum):
    SIX_HOURS = "6_hours"
    DAILY = "daily"
    TWICE_WEEK = "twice_week"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    ON_TRIGGER = "on_trigger"   # wait for press-release signal
    PAUSED = "paused"           # crawler paused after repeated failures


class DataCategory(str, Enum):
    DEADLINES = "deadlines"
    FEES = "fees"
    REGULATIONS = "regulations"
    DRAW_ODDS = "draw_odds"
    QUOTAS = "quotas"
    SPECIES = "species"


DEFAULT_CATEGORIES = (
    DataCategory.DEADLINES,
    DataCategory.FEES,
    DataCategory.REGULATIONS,
    DataCategory.DRAW_ODDS,
)

# None = no timer
FREQUENCY_INTERVALS: Dict[CrawlFrequency, Optional[timedelta]] = {
    CrawlFrequency.SIX_HOURS: timedelta(hours=6),
    CrawlFrequency.DAILY: timedelta(days=1),
    CrawlFrequency.TWICE_WEEK: timedelta(days=3.5),
    CrawlFrequency.WEEKLY: timedelta(days=7),
    CrawlFrequency.BIWEEKLY: timedelta(days=14),
    CrawlFrequency.MONTHLY: timedelta(days=30),
    CrawlFrequency.ON_TRIGGER: None,
    CrawlFrequency.PAUSED: None,
}

AWAITING_TRIGGER = "awaiting_trigger"


@dataclass(frozen=True)
class StateDeadlineContext:
    """Deadline situation of one state, as of the scheduling run."""
    state_id: str
    fg_url: str
    species: Tuple[str, ...] = ()
    closest_deadline: Optional[date] = None
    window_open: bool = False
    days_until_deadline: Optional[int] = None   # negative = deadline passed
    regulatory_url: Optional[str] = None


@dataclass(frozen=True)
class FrequencyDecision:
    frequency: CrawlFrequency
    reason: str
    priority: int   # 1 = critical ... 5 = lowest


@dataclass(frozen=True)
class CrawlTask:
    id: str
    state_id: str
    category: DataCategory
    frequency: CrawlFrequency
    next_crawl_at: Optional[datetime]   # None = no timer (trigger or paused)
    reason: str
    priority: int
    target_url: str
    in_backoff: bool = False
    consecutive_failures: int = 0

    @property
    def has_timer(self) -> bool:
        return self.next_crawl_at is not None

    def to_dict(self) -> Dict[str, Any]:
        if self.next_crawl_at is not None:
            next_crawl = self.next_crawl_at.isoformat()
        elif self.frequency == CrawlFrequency.PAUSED:
            next_crawl = CrawlFrequency.PAUSED.value
        else:
            next_crawl = AWAITING_TRIGGER
        return {
            "id": self.id,
            "state_id": self.state_id,
            "category": self.category.value,
            "frequency": self.frequency.value,
            "next_crawl_at": next_crawl,
            "reason": self.reason,
            "priority": self.priority,
            "target_url": self.target_url,
            "in_backoff": self.in_backoff,
            "consecutive_failures": self.consecutive_failures,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CrawlTask":
        next_crawl = data.get("next_crawl_at")
        if next_crawl in (None, AWAITING_TRIGGER, CrawlFrequency.PAUSED.value):
            next_crawl_at = None
        else:
            next_crawl_at = datetime.fromisoformat(next_crawl)
        return cls(
            id=data["id"],
            state_id=data["state_id"],
            category=DataCategory(data["category"]),
            frequency=CrawlFrequency(data["frequency"]),
            next_crawl_at=next_crawl_at,
            reason=data.get("reason", ""),
            priority=int(data.get("priority", 5)),
            target_url=data.get("target_url", ""),
            in_backoff=bool(data.get("in_backoff", False)),
            consecutive_failures=int(data.get("consecutive_failures", 0)),
        )


@dataclass(frozen=True)
class CrawlSchedule:
    tasks: Tuple[CrawlTask, ...]
    generated_at: datetime
    frequency_distribution: Dict[str, int] = field(default_factory=dict)
    next_due: Optional[CrawlTask] = None

    def get_task(self, task_id: str) -> Optional[CrawlTask]:
        return next((t for t in self.tasks if t.id == task_id), None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "generated_at": self.generated_at.isoformat(),
            "task_count": len(self.tasks),
            "frequency_distribution": dict(self.frequency_distribution),
            "next_due": self.next_due.to_dict() if self.next_due else None,
            "tasks": [t.to_dict() for t in self.tasks],
        }


@dataclass(frozen=True)
class FrequencyChange:
    """A task whose frequency differs between two scheduling runs."""
    state_id: str
    category: DataCategory
    old_frequency: CrawlFrequency
    new_frequency: CrawlFrequency
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state_id": self.state_id,
            "category": self.category.value,
            "old_frequency": self.old_frequency.value,
            "new_frequency": self.new_frequency.value,
            "reason": self.reason,
        }


# =============================================================================
# FREQUENCY RULES
# =============================================================================

def compute_optimal_frequency(context: StateDeadlineContext, category: DataCategory) -> FrequencyDecision:
    """
    Pick frequency, reason and priority for one (state, category) pair.

    draw_odds               -> on_trigger, priority 5
    fees/regulations        -> daily (p2) if deadline in 1..30 days, else weekly (p4)
    deadlines (and others)  -> by days until the closest deadline:
        unknown  weekly  p4
        < 0      weekly  p5
        <= 2     6_hours p1
        <= 7     twice_week p2
        <= 30    daily   p2
        > 30     weekly  p4
    """
    state_id = context.state_id
    days = context.days_until_deadline

    if category == DataCategory.DRAW_ODDS:
        return FrequencyDecision(
            CrawlFrequency.ON_TRIGGER,
            f"{state_id} draw odds drop once yearly. Awaiting press release trigger.",
            5,
        )

    if category in (DataCategory.FEES, DataCategory.REGULATIONS):
        if days is not None and 0 < days <= 30:
            return FrequencyDecision(
                CrawlFrequency.DAILY,
                f"{state_id} deadline in {days} days. Fee/regulation monitoring elevated to daily.",
                2,
            )
        return FrequencyDecision(
            CrawlFrequency.WEEKLY,
            f"{state_id} fees/regulations monitored on weekly legislative cycle.",
            4,
        )

    if days is None or context.closest_deadline is None:
        return FrequencyDecision(
            CrawlFrequency.WEEKLY,
            f"{state_id} no deadline data available. Default weekly monitoring.",
            4,
        )
    if days < 0:
        return FrequencyDecision(
            CrawlFrequency.WEEKLY,
            f"{state_id} application window closed (deadline {abs(days)} days ago). Weekly monitoring.",
            5,
        )
    if days <= 2:
        return FrequencyDecision(
            CrawlFrequency.SIX_HOURS,
            f"CRITICAL: {state_id} deadline in {days} day(s). 6-hour monitoring active.",
            1,
        )
    if days <= 7:
        return FrequencyDecision(
            CrawlFrequency.TWICE_WEEK,
            f"{state_id} deadline in {days} days. Elevated monitoring.",
            2,
        )
    if days <= 30:
        return FrequencyDecision(
            CrawlFrequency.DAILY,
            f"{state_id} deadline in {days} days. Daily monitoring active.",
            2,
        )
    return FrequencyDecision(
        CrawlFrequency.WEEKLY,
        f"{state_id} deadline in {days} days. Standard weekly monitoring.",
        4,
    )


# =============================================================================
# SCHEDULE BUILDER
# =============================================================================

def _target_url(context: StateDeadlineContext, category: DataCategory) -> str:
    if category == DataCategory.REGULATIONS and context.regulatory_url:
        return context.regulatory_url
    return context.fg_url


def build_task(
    context: StateDeadlineContext,
    category: DataCategory,
    now: datetime,
    backoff: Optional[BackoffState] = None,
) -> CrawlTask:
    """Build one task, applying the state's backoff if it is failing."""
    decision = compute_optimal_frequency(context, category)
    frequency = decision.frequency
    reason = decision.reason
    interval = FREQUENCY_INTERVALS[frequency]
    next_crawl_at = now + interval if interval is not None else None

    in_backoff = backoff is not None and backoff.in_backoff
    if in_backoff:
        if backoff.paused:
            frequency = CrawlFrequency.PAUSED
            next_crawl_at = None
            reason = backoff.reason
        elif next_crawl_at is not None:
            next_crawl_at = backoff.next_retry_at
            reason = f"{decision.reason} {backoff.reason}"

    return CrawlTask(
        id=f"crawl-{context.state_id}-{category.value}",
        state_id=context.state_id,
        category=category,
        frequency=frequency,
        next_crawl_at=next_crawl_at,
        reason=reason,
        priority=decision.priority,
        target_url=_target_url(context, category),
        in_backoff=in_backoff,
        consecutive_failures=backoff.consecutive_failures if backoff else 0,
    )


def _sort_key(task: CrawlTask):
    # Tasks without a timer go last within their priority
    return (task.priority, task.next_crawl_at is None, task.next_crawl_at or datetime.max)


def build_crawl_schedule(
    contexts: Iterable[StateDeadlineContext],
    categories: Optional[Sequence[DataCategory]] = None,
    now: Optional[datetime] = None,
    backoff_states: Optional[Mapping[str, BackoffState]] = None,
) -> CrawlSchedule:
    """
    Build the full schedule for every (state, category) pair.

    Args:
        contexts: One deadline context per state
        categories: Categories to plan (defaults to DEFAULT_CATEGORIES)
        now: Scheduling time (defaults to utcnow)
        backoff_states: Current backoff per state id, for failing crawlers

    Returns:
        CrawlSchedule sorted by priority, then next crawl time
    """
    now = now or utcnow()
    categories = tuple(categories) if categories else DEFAULT_CATEGORIES
    backoff_states = backoff_states or {}

    tasks: List[CrawlTask] = []
    for context in contexts:
        backoff = backoff_states.get(context.state_id)
        for category in categories:
            tasks.append(build_task(context, DataCategory(category), now, backoff))

    tasks.sort(key=_sort_key)
    distribution = Counter(task.frequency.value for task in tasks)
    next_due = next((task for task in tasks if task.has_timer), None)

    logger.info(
        f"Built crawl schedule: {len(tasks)} tasks, "
        f"distribution={dict(distribution)}, "
        f"next_due={next_due.id if next_due else None}"
    )
    return CrawlSchedule(
        tasks=tuple(tasks),
        generated_at=now,
        frequency_distribution=dict(distribution),
        next_due=next_due,
    )


def diff_schedules(previous: Optional[CrawlSchedule], current: CrawlSchedule) -> List[FrequencyChange]:
    """Frequency changes between two runs, for the weekly digest."""
    if previous is None:
        return []
    old_by_id = {task.id: task for task in previous.tasks}
    changes = []
    for task in current.tasks:
        old = old_by_id.get(task.id)
        if old is None or old.frequency == task.frequency:
            continue
        changes.append(FrequencyChange(
            state_id=task.state_id,
            category=task.category,
            old_frequency=old.frequency,
            new_frequency=task.frequency,
            reason=task.reason,
        ))
    return changes


def schedule_from_dict(data: Mapping[str, Any]) -> CrawlSchedule:
    """Rebuild a schedule from CrawlSchedule.to_dict() output (e.g. the previous cron run)."""
    tasks = tuple(CrawlTask.from_dict(t) for t in data.get("tasks") or ())
    next_due = data.get("next_due")
    return CrawlSchedule(
        tasks=tasks,
        generated_at=datetime.fromisoformat(data["generated_at"]),
        frequency_distribution=dict(data.get("frequency_distribution") or {}),
        next_due=CrawlTask.from_dict(next_due) if next_due else None,
    )
