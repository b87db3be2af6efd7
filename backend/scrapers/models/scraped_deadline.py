"""
Scraped Deadline Model - Staging rows for application/draw dates.

deadline_type is one of application_open, application_close or
draw_results; other types are stored but ignored by the airlock.
"""
from uuid import uuid4

from models.database import db
from utils.normalize import utcnow


class ScrapedDeadline(db.Model):
    """One dated event extracted from a state's deadline page."""

    __tablename__ = "scraped_deadlines"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid4()))

    state_id = db.Column(db.String(2), nullable=False, index=True)
    species_id = db.Column(db.String(50), nullable=False)
    deadline_type = db.Column(db.String(30), nullable=False)
    date = db.Column(db.Date, nullable=False)
    year = db.Column(db.Integer)
    notes = db.Column(db.Text)

    # Provenance
    source_url = db.Column(db.Text)
    source_pulled_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    scrape_batch_id = db.Column(db.String(64), nullable=False, index=True)

    status = db.Column(db.String(20), nullable=False, default="staging", index=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        db.Index("ix_scraped_deadlines_batch_status", "scrape_batch_id", "status"),
        db.CheckConstraint(
            "status IN ('staging', 'approved', 'rejected')",
            name="scraped_deadlines_status_check",
        ),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "state_id": self.state_id,
            "species_id": self.species_id,
            "deadline_type": self.deadline_type,
            "date": self.date.isoformat() if self.date else None,
            "year": self.year,
            "notes": self.notes,
            "source_url": self.source_url,
            "scrape_batch_id": self.scrape_batch_id,
            "status": self.status,
        }

    def __repr__(self):
        return f"<ScrapedDeadline {self.state_id} {self.species_id} {self.deadline_type} {self.date}>"
