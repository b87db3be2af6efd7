"""
Crawl Backoff - exponential retry delay per state after crawl failures.

delay(n) = min(5 min * 2^(n-1), 24 h)

At 10 consecutive failures the state is paused: no retry time, infinite
delay, and a human has to investigate before crawling resumes. The
controller is stateless; callers persist the failure count and reset it
to zero on the first success (see services.crawl_health).
"""
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from utils.normalize import utcnow

BASE_BACKOFF = timedelta(minutes=5)
MAX_BACKOFF = timedelta(hours=24)
MAX_FAILURES_BEFORE_PAUSE = 10

PAUSED_SENTINEL = "paused"


@dataclass(frozen=True)
class BackoffState:
    state_id: str
    consecutive_failures: int
    last_failure_at: Optional[datetime]
    next_retry_at: Optional[datetime]   # None when paused
    current_delay_ms: float             # math.inf when paused
    paused: bool
    reason: str

    @property
    def in_backoff(self) -> bool:
        return self.consecutive_failures > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state_id": self.state_id,
            "consecutive_failures": self.consecutive_failures,
            "last_failure_at": self.last_failure_at.isoformat() if self.last_failure_at else None,
            "next_retry_at": (
                PAUSED_SENTINEL if self.paused
                else self.next_retry_at.isoformat() if self.next_retry_at else None
            ),
            # JSON has no infinity
            "current_delay_ms": None if math.isinf(self.current_delay_ms) else self.current_delay_ms,
            "paused": self.paused,
            "reason": self.reason,
        }


def backoff_delay(consecutive_failures: int) -> timedelta:
    """Raw exponential delay, capped at MAX_BACKOFF. Zero failures means no delay."""
    if consecutive_failures <= 0:
        return timedelta(0)
    # 2^9 * 5 min already exceeds the cap; clamp the exponent to avoid huge ints
    exponent = min(consecutive_failures - 1, 16)
    return min(BASE_BACKOFF * (2 ** exponent), MAX_BACKOFF)


def compute_backoff(state_id: str, consecutive_failures: int, now: Optional[datetime] = None) -> BackoffState:
    """
    Compute the retry schedule after a run of consecutive failures.

    Args:
        state_id: State whose crawler failed
        consecutive_failures: Failures since the last success (>= 0)
        now: Time of the latest failure (defaults to utcnow)

    Returns:
        BackoffState; paused once failures reach MAX_FAILURES_BEFORE_PAUSE

    Raises:
        ValueError: If consecutive_failures is negative
    """
    if consecutive_failures < 0:
        raise ValueError(f"consecutive_failures must be >= 0, got {consecutive_failures}")
    now = now or utcnow()

    if consecutive_failures == 0:
        return BackoffState(
            state_id=state_id,
            consecutive_failures=0,
            last_failure_at=None,
            next_retry_at=now,
            current_delay_ms=0.0,
            paused=False,
            reason=f"{state_id}: Healthy. No backoff.",
        )

    if consecutive_failures >= MAX_FAILURES_BEFORE_PAUSE:
        return BackoffState(
            state_id=state_id,
            consecutive_failures=consecutive_failures,
            last_failure_at=now,
            next_retry_at=None,
            current_delay_ms=math.inf,
            paused=True,
            reason=(
                f"{state_id}: {consecutive_failures} consecutive failures. "
                f"Crawling PAUSED. Requires manual investigation."
            ),
        )

    delay = backoff_delay(consecutive_failures)
    next_retry = now + delay
    return BackoffState(
        state_id=state_id,
        consecutive_failures=consecutive_failures,
        last_failure_at=now,
        next_retry_at=next_retry,
        current_delay_ms=delay.total_seconds() * 1000,
        paused=False,
        reason=(
            f"{state_id}: Failure #{consecutive_failures}. "
            f"Backing off {round(delay.total_seconds() / 60)} minutes. "
            f"Next retry: {next_retry.isoformat()}."
        ),
    )
