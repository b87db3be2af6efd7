"""
Airlock Queue Model - One row per evaluated scrape batch.

Status machine:
    (evaluation) -> auto_approved | quarantined
    quarantined  -> approved | rejected   (human decision only)

scrape_batch_id is UNIQUE: a batch is evaluated at most once, even when a
webhook and the reconciliation sweep race for it.
"""
from typing import Any, Dict, Optional
from uuid import uuid4

from sqlalchemy import update

from models.database import db
from utils.normalize import utcnow

QUEUE_STATUSES = ("auto_approved", "quarantined", "approved", "rejected")
AUDIT_ACTIONS = ("auto_promote", "manual_approve", "reject")


class AirlockQueueEntry(db.Model):
    """Verdict record for a scrape batch."""

    __tablename__ = "airlock_queue"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid4()))

    # ==========================================================================
    # BATCH IDENTIFICATION
    # ==========================================================================
    state_id = db.Column(db.String(2), nullable=False, index=True)
    scrape_batch_id = db.Column(db.String(64), nullable=False, unique=True)
    snapshot_id = db.Column(db.String(128), nullable=False)

    # ==========================================================================
    # VERDICT
    # ==========================================================================
    status = db.Column(db.String(20), nullable=False, index=True)
    overall_verdict = db.Column(db.String(10), nullable=False)  # pass, warn, block
    verdict_json = db.Column(db.JSON, nullable=False)
    snapshot_json = db.Column(db.JSON)
    block_count = db.Column(db.Integer, nullable=False, default=0)
    warn_count = db.Column(db.Integer, nullable=False, default=0)
    pass_count = db.Column(db.Integer, nullable=False, default=0)
    summary = db.Column(db.Text, nullable=False)
    evaluated_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    # ==========================================================================
    # RESOLUTION
    # ==========================================================================
    resolved_at = db.Column(db.DateTime)
    resolved_by = db.Column(db.String(100))
    resolution_notes = db.Column(db.Text)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        db.Index("ix_airlock_queue_state_status", "state_id", "status"),
        db.Index("ix_airlock_queue_evaluated", "evaluated_at"),
        db.CheckConstraint(
            "status IN ('auto_approved', 'quarantined', 'approved', 'rejected')",
            name="airlock_queue_status_check",
        ),
        db.CheckConstraint(
            "overall_verdict IN ('pass', 'warn', 'block')",
            name="airlock_queue_verdict_check",
        ),
    )

    # ==========================================================================
    # HELPER METHODS
    # ==========================================================================

    @property
    def is_awaiting_review(self) -> bool:
        return self.status == "quarantined"

    @property
    def was_quarantined(self) -> bool:
        """True if the batch needed review at evaluation time."""
        return self.status in ("quarantined", "approved", "rejected")

    @classmethod
    def claim_resolution(
        cls,
        session,
        queue_id: str,
        status: str,
        resolved_by: str,
        notes: Optional[str] = None,
    ) -> bool:
        """
        Move a quarantined entry to approved/rejected in one statement.

        The status check is part of the UPDATE, so two reviewers racing on
        the same entry cannot both win. Returns False if the entry was not
        quarantined when the statement ran.
        """
        result = session.execute(
            update(cls)
            .where(cls.id == queue_id, cls.status == "quarantined")
            .values(
                status=status,
                resolved_by=resolved_by,
                resolved_at=utcnow(),
                resolution_notes=notes,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "state_id": self.state_id,
            "scrape_batch_id": self.scrape_batch_id,
            "snapshot_id": self.snapshot_id,
            "status": self.status,
            "overall_verdict": self.overall_verdict,
            "verdict": self.verdict_json,
            "block_count": self.block_count,
            "warn_count": self.warn_count,
            "pass_count": self.pass_count,
            "summary": self.summary,
            "evaluated_at": self.evaluated_at.isoformat() if self.evaluated_at else None,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
            "resolved_by": self.resolved_by,
            "resolution_notes": self.resolution_notes,
        }

    def to_summary_dict(self) -> Dict[str, Any]:
        """Convert to summary dictionary for list views."""
        return {
            "id": self.id,
            "state_id": self.state_id,
            "scrape_batch_id": self.scrape_batch_id,
            "status": self.status,
            "overall_verdict": self.overall_verdict,
            "block_count": self.block_count,
            "warn_count": self.warn_count,
            "summary": self.summary,
            "evaluated_at": self.evaluated_at.isoformat() if self.evaluated_at else None,
        }

    def __repr__(self):
        return f"<AirlockQueueEntry {self.state_id} batch={self.scrape_batch_id} {self.status}>"


class AirlockAuditLog(db.Model):
    """Append-only record of every promotion and rejection."""

    __tablename__ = "airlock_audit_log"

    id = db.Column(db.Integer, primary_key=True)
    queue_id = db.Column(
        db.String(36), db.ForeignKey("airlock_queue.id"), nullable=False, index=True
    )
    state_id = db.Column(db.String(2), nullable=False, index=True)
    action = db.Column(db.String(20), nullable=False)
    # auto_promote, manual_approve, reject
    diffs_promoted = db.Column(db.JSON, nullable=False, default=list)
    performed_by = db.Column(db.String(100), nullable=False, default="system")
    notes = db.Column(db.Text)
    performed_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    queue_entry = db.relationship("AirlockQueueEntry", backref=db.backref("audit_log", lazy="dynamic"))

    __table_args__ = (
        db.CheckConstraint(
            "action IN ('auto_promote', 'manual_approve', 'reject')",
            name="airlock_audit_log_action_check",
        ),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "queue_id": self.queue_id,
            "state_id": self.state_id,
            "action": self.action,
            "diffs_promoted": self.diffs_promoted,
            "performed_by": self.performed_by,
            "notes": self.notes,
            "performed_at": self.performed_at.isoformat() if self.performed_at else None,
        }

    def __repr__(self):
        return f"<AirlockAuditLog {self.state_id} {self.action} queue={self.queue_id}>"
