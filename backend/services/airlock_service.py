"""
Airlock Service - Verdict and promotion orchestration for scrape batches.

Workflow per batch:
1. Skip if the batch already has a queue entry (webhook/sweep race)
2. Load the batch's staging rows (fees + deadlines)
3. Build the live baseline (reference data + previously approved rows)
4. Build the StagingSnapshot and evaluate it under the tolerances
5. Fold sanity-bound violations into the verdict as blocking diffs, and
   fees out of line with their approved history as warnings
6. Insert the airlock_queue row (UNIQUE scrape_batch_id)
7. pass + auto-promote enabled -> promote rows, project ref_states, audit
   otherwise                   -> quarantine for human review
8. Commit

Usage:
    from services.airlock_service import AirlockService

    service = AirlockService(db.session)
    result = service.evaluate_batch('WY', 'batch-2026-03-01-0001')
    result.queue_entry.status  # 'auto_approved' or 'quarantined'

    service.run_reconciliation_sweep()
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from scrapers.airlock.anomaly import anomaly_diffs, detect_fee_anomalies, fee_history
from scrapers.airlock.baseline import (
    merge_approved_deadlines,
    merge_approved_fees,
    reference_baseline,
)
from scrapers.airlock.errors import (
    AirlockError,
    BatchNotFoundError,
    BatchStateMismatchError,
    InvalidQueueTransitionError,
    InvalidScrapedRowError,
    QueueEntryNotFoundError,
    UnknownStateError,
)
from scrapers.airlock.evaluator import build_verdict, evaluate_snapshot
from scrapers.airlock.sanity import sanity_violation_diffs, validate_sanity_constraints
from scrapers.airlock.snapshot_builder import build_snapshot
from scrapers.airlock.tolerances import AirlockTolerances
from scrapers.airlock.types import AirlockVerdict, LiveBaseline, StagingSnapshot
from scrapers.models import AirlockAuditLog, AirlockQueueEntry, ScrapedDeadline, ScrapedFee
from scrapers.promoters import RefStatePromoter
from services.airlock_config import (
    get_anomaly_threshold_sigma,
    get_sweep_batch_limit,
    get_tolerances,
    is_anomaly_checks_enabled,
    is_auto_promote_enabled,
    is_sanity_checks_enabled,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Result Types
# =============================================================================

@dataclass
class EvaluationResult:
    """Outcome of evaluating one batch."""
    queue_entry: AirlockQueueEntry
    verdict: AirlockVerdict
    snapshot: Optional[StagingSnapshot] = None
    promoted: bool = False
    already_evaluated: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "queue_id": self.queue_entry.id,
            "state_id": self.queue_entry.state_id,
            "scrape_batch_id": self.queue_entry.scrape_batch_id,
            "status": self.queue_entry.status,
            "promoted": self.promoted,
            "already_evaluated": self.already_evaluated,
            "verdict": self.verdict.to_dict(),
        }


@dataclass
class SweepResult:
    """Counters for one reconciliation sweep."""
    evaluated: int = 0
    promoted: int = 0
    quarantined: int = 0
    skipped: int = 0
    failed: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.failed == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "evaluated": self.evaluated,
            "promoted": self.promoted,
            "quarantined": self.quarantined,
            "skipped": self.skipped,
            "failed": self.failed,
            "errors": self.errors,
        }


# =============================================================================
# Service
# =============================================================================

class AirlockService:
    """
    Evaluates scrape batches and applies the promote/quarantine decision.

    Example:
        service = AirlockService(db.session)
        result = service.evaluate_batch('CO', batch_id)
        if result.queue_entry.is_awaiting_review:
            service.promote_batch(result.queue_entry.id, resolved_by='ops@example.com')
    """

    def __init__(
        self,
        db_session,
        tolerances: Optional[AirlockTolerances] = None,
        reference_states: Optional[Mapping[str, Mapping[str, Any]]] = None,
    ):
        self.db_session = db_session
        self.tolerances = tolerances or get_tolerances()
        self.reference_states = reference_states
        self.promoter = RefStatePromoter(db_session)

    # -------------------------------------------------------------------------
    # Baseline
    # -------------------------------------------------------------------------

    def _approved_fee_rows(self, state_id: str) -> List[ScrapedFee]:
        return (
            self.db_session.query(ScrapedFee)
            .filter(ScrapedFee.state_id == state_id, ScrapedFee.status == "approved")
            .order_by(ScrapedFee.source_pulled_at, ScrapedFee.id)
            .all()
        )

    def load_live_baseline(self, state_id: str) -> LiveBaseline:
        """
        Reference data for the state with every approved scraped row overlaid.

        Raises:
            UnknownStateError: no reference data for state_id
        """
        baseline = reference_baseline(state_id, self.reference_states)
        if baseline is None:
            raise UnknownStateError(state_id)

        approved_fees = self._approved_fee_rows(state_id)
        approved_deadlines = (
            self.db_session.query(ScrapedDeadline)
            .filter(ScrapedDeadline.state_id == state_id, ScrapedDeadline.status == "approved")
            .order_by(ScrapedDeadline.source_pulled_at, ScrapedDeadline.id)
            .all()
        )
        baseline = merge_approved_fees(baseline, approved_fees)
        return merge_approved_deadlines(baseline, approved_deadlines)

    # -------------------------------------------------------------------------
    # Evaluation
    # -------------------------------------------------------------------------

    def _find_entry_for_batch(self, batch_id: str) -> Optional[AirlockQueueEntry]:
        return (
            self.db_session.query(AirlockQueueEntry)
            .filter(AirlockQueueEntry.scrape_batch_id == batch_id)
            .first()
        )

    def _already_evaluated(self, entry: AirlockQueueEntry) -> EvaluationResult:
        logger.info(
            f"{entry.state_id} batch {entry.scrape_batch_id} already evaluated "
            f"({entry.status}); skipping"
        )
        return EvaluationResult(
            queue_entry=entry,
            verdict=AirlockVerdict.from_dict(entry.verdict_json),
            already_evaluated=True,
        )

    def _load_staging_rows(self, state_id: str, batch_id: str) -> Tuple[List[ScrapedFee], List[ScrapedDeadline]]:
        fee_rows = (
            self.db_session.query(ScrapedFee)
            .filter(ScrapedFee.scrape_batch_id == batch_id, ScrapedFee.status == "staging")
            .order_by(ScrapedFee.source_pulled_at, ScrapedFee.id)
            .all()
        )
        deadline_rows = (
            self.db_session.query(ScrapedDeadline)
            .filter(ScrapedDeadline.scrape_batch_id == batch_id, ScrapedDeadline.status == "staging")
            .order_by(ScrapedDeadline.source_pulled_at, ScrapedDeadline.id)
            .all()
        )
        if not fee_rows and not deadline_rows:
            raise BatchNotFoundError(batch_id)

        other_states = {
            row.state_id for row in fee_rows + deadline_rows if row.state_id != state_id
        }
        if other_states:
            raise BatchStateMismatchError(batch_id, expected=state_id, found=other_states)
        return fee_rows, deadline_rows

    def _apply_sanity_checks(self, snapshot: StagingSnapshot, verdict: AirlockVerdict) -> AirlockVerdict:
        if not is_sanity_checks_enabled():
            return verdict
        violations = validate_sanity_constraints(snapshot.state_id, snapshot.fees)
        if not violations:
            return verdict
        for violation in violations:
            logger.error(f"{snapshot.state_id} sanity violation in {snapshot.id}: {violation.message}")
        return build_verdict(
            snapshot,
            list(verdict.diffs) + sanity_violation_diffs(snapshot, violations),
            verdict.evaluated_at,
        )

    def _apply_anomaly_checks(self, snapshot: StagingSnapshot, verdict: AirlockVerdict) -> AirlockVerdict:
        if not is_anomaly_checks_enabled():
            return verdict
        history = fee_history(self._approved_fee_rows(snapshot.state_id))
        anomalies = detect_fee_anomalies(snapshot.fees, history, get_anomaly_threshold_sigma())
        if not anomalies:
            return verdict
        for anomaly in anomalies:
            logger.warning(f"{snapshot.state_id} anomaly in {snapshot.id}: {anomaly.explanation}")
        return build_verdict(
            snapshot,
            list(verdict.diffs) + anomaly_diffs(snapshot, anomalies),
            verdict.evaluated_at,
        )

    def evaluate_batch(
        self,
        state_id: str,
        batch_id: str,
        evaluated_at: Optional[datetime] = None,
    ) -> EvaluationResult:
        """
        Evaluate one staging batch and promote or quarantine it.

        A batch is evaluated at most once; repeated calls return the
        existing queue entry with already_evaluated=True.

        Raises:
            BatchNotFoundError: no staging rows for batch_id
            BatchStateMismatchError: rows belong to another state
            UnknownStateError: no reference data for state_id
            InvalidScrapedRowError: a row could not be parsed
        """
        existing = self._find_entry_for_batch(batch_id)
        if existing is not None:
            return self._already_evaluated(existing)

        fee_rows, deadline_rows = self._load_staging_rows(state_id, batch_id)
        baseline = self.load_live_baseline(state_id)

        captured_at = max(
            (row.source_pulled_at for row in fee_rows + deadline_rows if row.source_pulled_at),
            default=None,
        )
        try:
            snapshot = build_snapshot(batch_id, baseline, fee_rows, deadline_rows, captured_at=captured_at)
        except InvalidScrapedRowError as e:
            e.batch_id = batch_id
            logger.warning(f"{state_id} batch {batch_id} left in staging: {e}")
            raise

        verdict = evaluate_snapshot(snapshot, baseline, self.tolerances, evaluated_at)
        verdict = self._apply_sanity_checks(snapshot, verdict)
        verdict = self._apply_anomaly_checks(snapshot, verdict)

        auto_promote = verdict.can_auto_promote and is_auto_promote_enabled()
        entry = AirlockQueueEntry(
            state_id=state_id,
            scrape_batch_id=batch_id,
            snapshot_id=snapshot.id,
            status="auto_approved" if auto_promote else "quarantined",
            overall_verdict=verdict.overall_verdict.value,
            verdict_json=verdict.to_dict(),
            snapshot_json=snapshot.to_dict(),
            block_count=verdict.block_count,
            warn_count=verdict.warn_count,
            pass_count=verdict.pass_count,
            summary=verdict.summary,
            evaluated_at=verdict.evaluated_at,
        )
        self.db_session.add(entry)
        try:
            self.db_session.flush()
        except IntegrityError:
            # Another worker inserted the entry for this batch first.
            self.db_session.rollback()
            existing = self._find_entry_for_batch(batch_id)
            if existing is None:
                raise
            return self._already_evaluated(existing)

        try:
            if auto_promote:
                self.promoter.promote_batch(batch_id, state_id)
                self._audit(entry, "auto_promote", diffs=verdict_json_diffs(entry))
                logger.info(f"{state_id} batch {batch_id} auto-promoted: {verdict.summary}")
            else:
                reason = verdict.summary if not verdict.can_auto_promote else "auto-promotion disabled"
                logger.info(f"{state_id} batch {batch_id} quarantined: {reason}")
            self.db_session.commit()
        except SQLAlchemyError:
            self.db_session.rollback()
            logger.exception(f"{state_id} batch {batch_id}: failed to record verdict")
            raise

        return EvaluationResult(
            queue_entry=entry,
            verdict=verdict,
            snapshot=snapshot,
            promoted=auto_promote,
        )

    # -------------------------------------------------------------------------
    # Review actions
    # -------------------------------------------------------------------------

    def get_entry(self, queue_id: str) -> AirlockQueueEntry:
        entry = self.db_session.get(AirlockQueueEntry, queue_id)
        if entry is None:
            raise QueueEntryNotFoundError(queue_id)
        return entry

    def _audit(
        self,
        entry: AirlockQueueEntry,
        action: str,
        diffs: Optional[List[Dict[str, Any]]] = None,
        performed_by: str = "system",
        notes: Optional[str] = None,
    ) -> AirlockAuditLog:
        log = AirlockAuditLog(
            queue_id=entry.id,
            state_id=entry.state_id,
            action=action,
            diffs_promoted=diffs or [],
            performed_by=performed_by,
            notes=notes,
        )
        self.db_session.add(log)
        return log

    def _claim(self, queue_id: str, status: str, action: str, resolved_by: str, notes: Optional[str]):
        """
        Resolve a quarantined entry to status.

        Returns (entry, claimed). claimed is False when the entry already
        has the target status, so the caller does nothing.

        Raises:
            QueueEntryNotFoundError: unknown queue_id
            InvalidQueueTransitionError: entry is not quarantined
        """
        entry = self.get_entry(queue_id)
        if entry.status == status:
            logger.info(f"Queue entry {queue_id} already {status}; nothing to do")
            return entry, False
        if entry.status != "quarantined":
            raise InvalidQueueTransitionError(queue_id, entry.status, action)

        claimed = AirlockQueueEntry.claim_resolution(self.db_session, queue_id, status, resolved_by, notes)
        self.db_session.refresh(entry)
        if claimed:
            return entry, True

        # Another reviewer resolved it after we loaded it.
        logger.warning(f"Queue entry {queue_id} was resolved concurrently ({entry.status})")
        if entry.status == status:
            return entry, False
        raise InvalidQueueTransitionError(queue_id, entry.status, action)

    def promote_batch(self, queue_id: str, resolved_by: str, notes: Optional[str] = None) -> AirlockQueueEntry:
        """
        Approve a quarantined batch: promote its rows and project ref_states.

        Approving an already-approved entry is a no-op.

        Raises:
            QueueEntryNotFoundError: unknown queue_id
            InvalidQueueTransitionError: entry is not quarantined
        """
        try:
            entry, claimed = self._claim(queue_id, "approved", "approve", resolved_by, notes)
            if not claimed:
                return entry
            self.promoter.promote_batch(entry.scrape_batch_id, entry.state_id)
            self._audit(
                entry, "manual_approve",
                diffs=verdict_json_diffs(entry), performed_by=resolved_by, notes=notes,
            )
            self.db_session.commit()
        except SQLAlchemyError:
            self.db_session.rollback()
            logger.exception(f"Failed to approve queue entry {queue_id}")
            raise

        logger.info(
            f"{entry.state_id} batch {entry.scrape_batch_id} approved by {resolved_by} "
            f"({entry.block_count} blocked, {entry.warn_count} warnings overridden)"
        )
        return entry

    def reject_batch(self, queue_id: str, resolved_by: str, notes: Optional[str] = None) -> AirlockQueueEntry:
        """
        Reject a quarantined batch. Its staging rows become 'rejected'.

        Rejecting an already-rejected entry is a no-op.

        Raises:
            QueueEntryNotFoundError: unknown queue_id
            InvalidQueueTransitionError: entry is not quarantined
        """
        try:
            entry, claimed = self._claim(queue_id, "rejected", "reject", resolved_by, notes)
            if not claimed:
                return entry
            self.promoter.reject_rows(entry.scrape_batch_id, entry.state_id)
            self._audit(entry, "reject", performed_by=resolved_by, notes=notes)
            self.db_session.commit()
        except SQLAlchemyError:
            self.db_session.rollback()
            logger.exception(f"Failed to reject queue entry {queue_id}")
            raise

        logger.info(f"{entry.state_id} batch {entry.scrape_batch_id} rejected by {resolved_by}")
        return entry

    def list_queue(
        self,
        status: Optional[str] = None,
        state_id: Optional[str] = None,
        limit: int = 50,
    ) -> List[AirlockQueueEntry]:
        """Queue entries, newest evaluation first."""
        query = self.db_session.query(AirlockQueueEntry)
        if status:
            query = query.filter(AirlockQueueEntry.status == status)
        if state_id:
            query = query.filter(AirlockQueueEntry.state_id == state_id)
        return query.order_by(AirlockQueueEntry.evaluated_at.desc()).limit(limit).all()

    # -------------------------------------------------------------------------
    # Reconciliation sweep
    # -------------------------------------------------------------------------

    def find_unevaluated_batches(self, limit: Optional[int] = None) -> List[Tuple[str, str]]:
        """
        (state_id, batch_id) pairs with staging rows and no queue entry, oldest first.

        A batch whose rows span several states is returned once per state so
        evaluation reports the mismatch.
        """
        limit = limit or get_sweep_batch_limit()
        queued = select(AirlockQueueEntry.scrape_batch_id)

        first_seen: Dict[Tuple[str, str], datetime] = {}
        for model in (ScrapedFee, ScrapedDeadline):
            rows = (
                self.db_session.query(model.state_id, model.scrape_batch_id, func.min(model.created_at))
                .filter(model.status == "staging", ~model.scrape_batch_id.in_(queued))
                .group_by(model.state_id, model.scrape_batch_id)
                .all()
            )
            for state_id, batch_id, created_at in rows:
                key = (state_id, batch_id)
                if key not in first_seen or created_at < first_seen[key]:
                    first_seen[key] = created_at

        ordered = sorted(first_seen, key=lambda key: (first_seen[key], key[1], key[0]))
        return ordered[:limit]

    def run_reconciliation_sweep(self, limit: Optional[int] = None) -> SweepResult:
        """
        Evaluate every staging batch that has no queue entry yet.

        Catches up on batches whose webhook was lost. A failing batch is
        rolled back, logged and skipped; the sweep continues.
        """
        result = SweepResult()
        batches = self.find_unevaluated_batches(limit)
        logger.info(f"Airlock sweep: {len(batches)} unevaluated batches")

        for state_id, batch_id in batches:
            try:
                outcome = self.evaluate_batch(state_id, batch_id)
            except (AirlockError, SQLAlchemyError) as e:
                self.db_session.rollback()
                result.failed += 1
                result.errors.append({"state_id": state_id, "batch_id": batch_id, "error": str(e)})
                logger.error(f"Airlock sweep: {state_id} batch {batch_id} failed: {e}")
                continue

            if outcome.already_evaluated:
                result.skipped += 1
            elif outcome.promoted:
                result.evaluated += 1
                result.promoted += 1
            else:
                result.evaluated += 1
                result.quarantined += 1

        logger.info(
            f"Airlock sweep done: {result.evaluated} evaluated, {result.promoted} promoted, "
            f"{result.quarantined} quarantined, {result.skipped} skipped, {result.failed} failed"
        )
        return result


def verdict_json_diffs(entry: AirlockQueueEntry) -> List[Dict[str, Any]]:
    """Diffs recorded on a queue entry, for the audit log."""
    return list((entry.verdict_json or {}).get("diffs") or [])
