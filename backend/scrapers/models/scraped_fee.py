"""
Scraped Fee Model - Staging rows for fees extracted by the crawlers.

Rows arrive as 'staging' grouped by scrape_batch_id and only move to
'approved' or 'rejected' through the airlock. Approved rows are part of
the live baseline the next batch is compared against.
"""
from uuid import uuid4

from models.database import db
from utils.normalize import utcnow


class ScrapedFee(db.Model):
    """One fee line extracted from a state's fee page."""

    __tablename__ = "scraped_fees"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid4()))

    state_id = db.Column(db.String(2), nullable=False, index=True)
    fee_name = db.Column(db.String(255), nullable=False)
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    residency = db.Column(db.String(20), nullable=False, default="nonresident")
    # resident, nonresident, both
    species_id = db.Column(db.String(50))  # NULL = license-level fee
    frequency = db.Column(db.String(20), nullable=False, default="annual")
    notes = db.Column(db.Text)

    # Provenance
    source_url = db.Column(db.Text)
    source_pulled_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    scrape_batch_id = db.Column(db.String(64), nullable=False, index=True)

    status = db.Column(db.String(20), nullable=False, default="staging", index=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        db.Index("ix_scraped_fees_batch_status", "scrape_batch_id", "status"),
        db.Index("ix_scraped_fees_state_status", "state_id", "status"),
        db.CheckConstraint(
            "status IN ('staging', 'approved', 'rejected')",
            name="scraped_fees_status_check",
        ),
        db.CheckConstraint(
            "residency IN ('resident', 'nonresident', 'both')",
            name="scraped_fees_residency_check",
        ),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "state_id": self.state_id,
            "fee_name": self.fee_name,
            "amount": float(self.amount) if self.amount is not None else None,
            "residency": self.residency,
            "species_id": self.species_id,
            "frequency": self.frequency,
            "notes": self.notes,
            "source_url": self.source_url,
            "source_pulled_at": self.source_pulled_at.isoformat() if self.source_pulled_at else None,
            "scrape_batch_id": self.scrape_batch_id,
            "status": self.status,
        }

    def __repr__(self):
        return f"<ScrapedFee {self.state_id} {self.fee_name!r} {self.amount} {self.status}>"
