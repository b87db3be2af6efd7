"""
Weekly Data Ops Digest - One health report per week of pipeline activity.

Health score starts at 100:
    -15 per paused crawler
    -5  per crawler backing off
    -10 per quarantined item awaiting approval
    -5  per self-healed block
clamped to 0..100.

Delivery (Slack, email) is the caller's job; this module only compiles.

Usage:
    from services.weekly_digest import build_weekly_digest

    digest = build_weekly_digest(db.session, frequency_changes=changes)
    print(digest.summary_line)
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import or_

from scrapers.crawl_scheduler import FrequencyChange
from scrapers.models import AirlockQueueEntry, CrawlHealth
from services.airlock_config import DIGEST_WINDOW_DAYS
from utils.normalize import utcnow

logger = logging.getLogger(__name__)

PAUSED_PENALTY = 15
BACKING_OFF_PENALTY = 5
AWAITING_APPROVAL_PENALTY = 10
SELF_HEAL_PENALTY = 5


class CrawlerStatus(str, Enum):
    BACKING_OFF = "backing_off"
    PAUSED = "paused"
    RECOVERED = "recovered"


class HealMethod(str, Enum):
    LLM_VISION = "llm_vision"
    PATTERN_MATCH = "pattern_match"


# =============================================================================
# Activity records
# =============================================================================

@dataclass(frozen=True)
class SuccessfulUpdate:
    state_id: str
    field: str
    verified_at: datetime
    summary: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state_id": self.state_id,
            "field": self.field,
            "verified_at": self.verified_at.isoformat(),
            "summary": self.summary,
        }


@dataclass(frozen=True)
class QuarantinedAnomaly:
    state_id: str
    field: str
    detected_at: datetime
    summary: str
    awaiting_approval: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state_id": self.state_id,
            "field": self.field,
            "detected_at": self.detected_at.isoformat(),
            "summary": self.summary,
            "awaiting_approval": self.awaiting_approval,
        }


@dataclass(frozen=True)
class CrawlerFailure:
    state_id: str
    failure_count: int
    last_error: str
    status: CrawlerStatus

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state_id": self.state_id,
            "failure_count": self.failure_count,
            "last_error": self.last_error,
            "status": self.status.value,
        }


@dataclass(frozen=True)
class SelfHealedBlock:
    """A blocked field recovered by an automated re-extraction; still needs review."""
    state_id: str
    field: str
    method: HealMethod
    confidence: float
    awaiting_approval: bool
    summary: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state_id": self.state_id,
            "field": self.field,
            "method": self.method.value,
            "confidence": self.confidence,
            "awaiting_approval": self.awaiting_approval,
            "summary": self.summary,
        }


@dataclass(frozen=True)
class WeeklyDigest:
    generated_at: datetime
    period_start: datetime
    period_end: datetime
    successful_updates: List[SuccessfulUpdate]
    quarantined_anomalies: List[QuarantinedAnomaly]
    frequency_changes: List[FrequencyChange]
    crawler_failures: List[CrawlerFailure]
    self_healed_blocks: List[SelfHealedBlock]
    health_score: int
    summary_line: str

    @property
    def pending_approvals(self) -> int:
        return sum(1 for a in self.quarantined_anomalies if a.awaiting_approval)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "generated_at": self.generated_at.isoformat(),
            "period_start": self.period_start.isoformat(),
            "period_end": self.period_end.isoformat(),
            "successful_updates": [u.to_dict() for u in self.successful_updates],
            "quarantined_anomalies": [a.to_dict() for a in self.quarantined_anomalies],
            "frequency_changes": [c.to_dict() for c in self.frequency_changes],
            "crawler_failures": [f.to_dict() for f in self.crawler_failures],
            "self_healed_blocks": [b.to_dict() for b in self.self_healed_blocks],
            "health_score": self.health_score,
            "summary_line": self.summary_line,
        }


@dataclass
class WeeklyActivity:
    """Activity read from the store for one digest window."""
    successful_updates: List[SuccessfulUpdate] = field(default_factory=list)
    quarantined_anomalies: List[QuarantinedAnomaly] = field(default_factory=list)
    crawler_failures: List[CrawlerFailure] = field(default_factory=list)


# =============================================================================
# Compiler
# =============================================================================

def compute_health_score(
    quarantined_anomalies: Sequence[QuarantinedAnomaly],
    crawler_failures: Sequence[CrawlerFailure],
    self_healed_blocks: Sequence[SelfHealedBlock],
) -> int:
    score = 100
    score -= sum(1 for f in crawler_failures if f.status == CrawlerStatus.PAUSED) * PAUSED_PENALTY
    score -= sum(1 for f in crawler_failures if f.status == CrawlerStatus.BACKING_OFF) * BACKING_OFF_PENALTY
    score -= sum(1 for a in quarantined_anomalies if a.awaiting_approval) * AWAITING_APPROVAL_PENALTY
    score -= len(self_healed_blocks) * SELF_HEAL_PENALTY
    return max(0, min(100, score))


def compile_weekly_digest(
    successful_updates: Sequence[SuccessfulUpdate],
    quarantined_anomalies: Sequence[QuarantinedAnomaly],
    frequency_changes: Sequence[FrequencyChange],
    crawler_failures: Sequence[CrawlerFailure],
    self_healed_blocks: Sequence[SelfHealedBlock],
    now: Optional[datetime] = None,
    window_days: int = DIGEST_WINDOW_DAYS,
) -> WeeklyDigest:
    """Aggregate one window of pipeline activity into a digest."""
    now = now or utcnow()
    health_score = compute_health_score(quarantined_anomalies, crawler_failures, self_healed_blocks)

    failed_states = sum(1 for f in crawler_failures if f.status != CrawlerStatus.RECOVERED)
    pending = sum(1 for a in quarantined_anomalies if a.awaiting_approval)

    parts = ["Weekly Data Ops Digest", f"{len(successful_updates)} updates verified"]
    if failed_states:
        parts.append(f"{failed_states} state(s) with crawler issues")
    if pending:
        parts.append(f"{pending} quarantined item(s) awaiting approval")
    if self_healed_blocks:
        parts.append(f"{len(self_healed_blocks)} self-healed block(s)")
    parts.append(f"Health: {health_score}/100")

    return WeeklyDigest(
        generated_at=now,
        period_start=now - timedelta(days=window_days),
        period_end=now,
        successful_updates=list(successful_updates),
        quarantined_anomalies=list(quarantined_anomalies),
        frequency_changes=list(frequency_changes),
        crawler_failures=list(crawler_failures),
        self_healed_blocks=list(self_healed_blocks),
        health_score=health_score,
        summary_line=" | ".join(parts),
    )


# =============================================================================
# Store readers
# =============================================================================

def _batch_field(entry: AirlockQueueEntry) -> str:
    return f"batch:{entry.scrape_batch_id}"


def collect_weekly_activity(
    db_session,
    now: Optional[datetime] = None,
    window_days: int = DIGEST_WINDOW_DAYS,
) -> WeeklyActivity:
    """
    Read successes, quarantines and crawler failures for the digest window.

    Entries still awaiting approval are included regardless of age.
    """
    now = now or utcnow()
    start = now - timedelta(days=window_days)
    activity = WeeklyActivity()

    promoted = (
        db_session.query(AirlockQueueEntry)
        .filter(or_(
            (AirlockQueueEntry.status == "auto_approved") & (AirlockQueueEntry.evaluated_at >= start),
            (AirlockQueueEntry.status == "approved") & (AirlockQueueEntry.resolved_at >= start),
        ))
        .order_by(AirlockQueueEntry.evaluated_at)
        .all()
    )
    for entry in promoted:
        verified_at = entry.resolved_at if entry.status == "approved" else entry.evaluated_at
        activity.successful_updates.append(SuccessfulUpdate(
            state_id=entry.state_id,
            field=_batch_field(entry),
            verified_at=verified_at,
            summary=entry.summary,
        ))

    quarantined = (
        db_session.query(AirlockQueueEntry)
        .filter(
            AirlockQueueEntry.status.in_(("quarantined", "approved", "rejected")),
            or_(AirlockQueueEntry.evaluated_at >= start, AirlockQueueEntry.status == "quarantined"),
        )
        .order_by(AirlockQueueEntry.evaluated_at)
        .all()
    )
    for entry in quarantined:
        activity.quarantined_anomalies.append(QuarantinedAnomaly(
            state_id=entry.state_id,
            field=_batch_field(entry),
            detected_at=entry.evaluated_at,
            summary=entry.summary,
            awaiting_approval=entry.is_awaiting_review,
        ))

    health_rows = (
        db_session.query(CrawlHealth)
        .filter(or_(CrawlHealth.consecutive_failures > 0, CrawlHealth.last_failure_at >= start))
        .order_by(CrawlHealth.state_id)
        .all()
    )
    for row in health_rows:
        if row.paused:
            status = CrawlerStatus.PAUSED
        elif row.consecutive_failures > 0:
            status = CrawlerStatus.BACKING_OFF
        else:
            status = CrawlerStatus.RECOVERED
        activity.crawler_failures.append(CrawlerFailure(
            state_id=row.state_id,
            failure_count=row.consecutive_failures,
            last_error=row.last_error or "",
            status=status,
        ))

    return activity


def build_weekly_digest(
    db_session,
    now: Optional[datetime] = None,
    frequency_changes: Sequence[FrequencyChange] = (),
    self_healed_blocks: Sequence[SelfHealedBlock] = (),
    window_days: int = DIGEST_WINDOW_DAYS,
) -> WeeklyDigest:
    """Collect activity from the store and compile the digest."""
    now = now or utcnow()
    activity = collect_weekly_activity(db_session, now, window_days)
    digest = compile_weekly_digest(
        activity.successful_updates,
        activity.quarantined_anomalies,
        frequency_changes,
        activity.crawler_failures,
        self_healed_blocks,
        now=now,
        window_days=window_days,
    )
    logger.info(digest.summary_line)
    return digest
