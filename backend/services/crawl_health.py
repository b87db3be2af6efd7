"""
Crawl Health Service - Persists crawler failures and derives backoff state.

The backoff controller (scrapers.backoff) is a pure function of the
failure count. This service owns the count: crawlers report every
failure and success here, and the scheduler reads backoff_states().

Usage:
    from services.crawl_health import CrawlHealthService

    health = CrawlHealthService(db.session)
    state = health.record_failure('WY', 'HTTP 503 from wgfd.wyo.gov')
    if state.paused:
        ...  # crawler stays off until health.resume('WY')
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from scrapers.backoff import BackoffState, compute_backoff
from scrapers.models import CrawlHealth
from utils.normalize import utcnow

logger = logging.getLogger(__name__)


class CrawlHealthService:
    """Failure bookkeeping for per-state crawlers."""

    def __init__(self, db_session):
        self.db_session = db_session

    def _get_or_create(self, state_id: str) -> CrawlHealth:
        row = self.db_session.get(CrawlHealth, state_id)
        if row is None:
            row = CrawlHealth(state_id=state_id, consecutive_failures=0, paused=False)
            self.db_session.add(row)
        return row

    def get_health(self, state_id: str) -> Optional[CrawlHealth]:
        return self.db_session.get(CrawlHealth, state_id)

    def list_health(self) -> List[CrawlHealth]:
        return self.db_session.query(CrawlHealth).order_by(CrawlHealth.state_id).all()

    def record_failure(self, state_id: str, error: str, now: Optional[datetime] = None) -> BackoffState:
        """
        Count one crawl failure and reschedule the next attempt.

        Returns:
            The BackoffState after this failure
        """
        now = now or utcnow()
        row = self._get_or_create(state_id)
        failures = (row.consecutive_failures or 0) + 1
        state = compute_backoff(state_id, failures, now)

        row.consecutive_failures = failures
        row.last_error = error
        row.last_failure_at = now
        row.next_retry_at = state.next_retry_at
        if state.paused and not row.paused:
            row.paused = True
            row.paused_at = now
            logger.critical(f"[P1] {state.reason} Last error: {error}")
        elif not state.paused:
            logger.warning(f"{state.reason} Error: {error}")

        self.db_session.commit()
        return state

    def record_success(self, state_id: str, now: Optional[datetime] = None) -> CrawlHealth:
        """A successful crawl resets the failure count."""
        now = now or utcnow()
        row = self._get_or_create(state_id)
        if row.consecutive_failures:
            logger.info(f"{state_id}: crawl recovered after {row.consecutive_failures} failures")
        row.consecutive_failures = 0
        row.next_retry_at = None
        row.paused = False
        row.paused_at = None
        row.last_success_at = now
        self.db_session.commit()
        return row

    def resume(self, state_id: str, resumed_by: str = "system") -> CrawlHealth:
        """Manually lift a pause after investigation."""
        row = self._get_or_create(state_id)
        was_paused = row.paused
        row.consecutive_failures = 0
        row.next_retry_at = None
        row.paused = False
        row.paused_at = None
        self.db_session.commit()
        if was_paused:
            logger.info(f"{state_id}: crawling resumed by {resumed_by}")
        return row

    def backoff_states(self) -> Dict[str, BackoffState]:
        """BackoffState for every state with at least one outstanding failure."""
        rows = (
            self.db_session.query(CrawlHealth)
            .filter(CrawlHealth.consecutive_failures > 0)
            .all()
        )
        return {
            row.state_id: compute_backoff(row.state_id, row.consecutive_failures, row.last_failure_at)
            for row in rows
        }
