"""
Crawl Health Model - Persisted backoff inputs per state.

The backoff controller is stateless; this row is what it is computed
from. A success resets consecutive_failures to zero. A paused row stays
paused until someone resumes it by hand.
"""
from models.database import db
from utils.normalize import utcnow


class CrawlHealth(db.Model):
    """Failure counter and pause flag for one state's crawler."""

    __tablename__ = "crawl_health"

    state_id = db.Column(db.String(2), primary_key=True)
    consecutive_failures = db.Column(db.Integer, nullable=False, default=0)
    last_error = db.Column(db.Text)
    last_failure_at = db.Column(db.DateTime)
    next_retry_at = db.Column(db.DateTime)
    paused = db.Column(db.Boolean, nullable=False, default=False)
    paused_at = db.Column(db.DateTime)
    last_success_at = db.Column(db.DateTime)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        db.CheckConstraint("consecutive_failures >= 0", name="crawl_health_failures_check"),
    )

    def to_dict(self) -> dict:
        return {
            "state_id": self.state_id,
            "consecutive_failures": self.consecutive_failures,
            "last_error": self.last_error,
            "last_failure_at": self.last_failure_at.isoformat() if self.last_failure_at else None,
            "next_retry_at": self.next_retry_at.isoformat() if self.next_retry_at else None,
            "paused": self.paused,
            "paused_at": self.paused_at.isoformat() if self.paused_at else None,
            "last_success_at": self.last_success_at.isoformat() if self.last_success_at else None,
        }

    def __repr__(self):
        return f"<CrawlHealth {self.state_id} failures={self.consecutive_failures} paused={self.paused}>"
