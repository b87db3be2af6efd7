"""
Reference State Model - Production fee baseline per state

Written only by the airlock promoter. Downstream cost and odds
calculations read fees from here; the hardcoded constants in
constants.REFERENCE_STATES are the fallback for anything not yet
promoted.

The JSON columns hold the merged fee payload: every promotion overlays
the batch's approved values onto what is already stored.
"""
from models.database import db
from utils.normalize import utcnow


class RefState(db.Model):
    __tablename__ = 'ref_states'

    id = db.Column(db.String(2), primary_key=True)  # state code, e.g. 'WY'
    name = db.Column(db.String(100))

    # Fee payload (non-resident)
    license_fees = db.Column(db.JSON, nullable=False, default=dict)
    tag_costs = db.Column(db.JSON, nullable=False, default=dict)
    point_cost = db.Column(db.JSON, nullable=False, default=dict)

    # Fee payload (resident)
    resident_license_fees = db.Column(db.JSON)
    resident_tag_costs = db.Column(db.JSON)
    resident_point_cost = db.Column(db.JSON)

    # Provenance
    source_pulled_at = db.Column(db.DateTime)
    last_batch_id = db.Column(db.String(64))
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'license_fees': self.license_fees,
            'tag_costs': self.tag_costs,
            'point_cost': self.point_cost,
            'resident_license_fees': self.resident_license_fees,
            'resident_tag_costs': self.resident_tag_costs,
            'resident_point_cost': self.resident_point_cost,
            'source_pulled_at': self.source_pulled_at.isoformat() if self.source_pulled_at else None,
            'last_batch_id': self.last_batch_id,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<RefState {self.id} batch={self.last_batch_id}>"
