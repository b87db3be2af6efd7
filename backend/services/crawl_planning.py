"""
Crawl Planning - Deadline contexts from live baselines, then the schedule.

Runs hourly from scripts/crawl_schedule.py. Deadline proximity is
recomputed from the baselines each run; crawler backoff comes from
crawl_health.
"""

import logging
from datetime import date, datetime
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from constants import REFERENCE_STATES
from scrapers.airlock.types import LiveBaseline
from scrapers.crawl_scheduler import (
    CrawlSchedule,
    DataCategory,
    StateDeadlineContext,
    build_crawl_schedule,
)
from services.airlock_service import AirlockService
from services.crawl_health import CrawlHealthService
from utils.normalize import utcnow

logger = logging.getLogger(__name__)


def build_state_context(baseline: LiveBaseline, today: date) -> StateDeadlineContext:
    """
    Deadline situation of one state on `today`.

    closest_deadline is the earliest close date on or after today; when
    every window has closed it is the most recent past close date.
    """
    windows = baseline.deadlines.application_deadlines
    closes = [w.close for w in windows.values() if w.close is not None]
    upcoming = [c for c in closes if c >= today]

    if upcoming:
        closest = min(upcoming)
    elif closes:
        closest = max(closes)
    else:
        closest = None

    window_open = any(
        w.open is not None and w.close is not None and w.open <= today <= w.close
        for w in windows.values()
    )

    return StateDeadlineContext(
        state_id=baseline.state_id,
        fg_url=baseline.fg_url or "",
        species=tuple(baseline.species.available_species),
        closest_deadline=closest,
        window_open=window_open,
        days_until_deadline=(closest - today).days if closest is not None else None,
        regulatory_url=baseline.regulatory_url,
    )


def build_state_contexts(baselines: Iterable[LiveBaseline], today: date) -> List[StateDeadlineContext]:
    return [build_state_context(baseline, today) for baseline in baselines]


def plan_crawls(
    db_session,
    now: Optional[datetime] = None,
    categories: Optional[Sequence[DataCategory]] = None,
    reference_states: Optional[Mapping[str, Mapping[str, Any]]] = None,
) -> CrawlSchedule:
    """
    Build the crawl schedule for every reference state.

    Baselines include approved scraped deadlines, so a promoted deadline
    change moves the schedule on the next run.
    """
    now = now or utcnow()
    states = REFERENCE_STATES if reference_states is None else reference_states

    airlock = AirlockService(db_session, reference_states=states)
    baselines = [airlock.load_live_baseline(state_id) for state_id in states]
    contexts = build_state_contexts(baselines, now.date())

    backoff_states = CrawlHealthService(db_session).backoff_states()
    if backoff_states:
        logger.info(f"Crawl planning: {len(backoff_states)} states in backoff: {sorted(backoff_states)}")

    return build_crawl_schedule(contexts, categories=categories, now=now, backoff_states=backoff_states)
