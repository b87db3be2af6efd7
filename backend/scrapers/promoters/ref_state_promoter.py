"""
RefState Promoter - Projects approved fee rows to the ref_states table.
"""
import logging
from typing import Any, Dict, Optional

from constants import REFERENCE_STATES
from models.ref_state import RefState
from scrapers.airlock.snapshot_builder import build_fee_data
from scrapers.airlock.types import FeeData
from utils.normalize import utcnow

from .base import BasePromoter

logger = logging.getLogger(__name__)

_NONRESIDENT_COLUMNS = ("license_fees", "tag_costs", "point_cost")
_RESIDENT_COLUMNS = ("resident_license_fees", "resident_tag_costs", "resident_point_cost")


class RefStatePromoter(BasePromoter):
    """Projects approved scraped_fees of one batch -> ref_states"""

    TARGET_TABLE = "ref_states"

    def project_to_domain(self, state_id: str, batch_id: str) -> Optional[RefState]:
        rows = self.approved_fee_rows(batch_id, state_id)
        if not rows:
            logger.info(f"{state_id} batch {batch_id}: no approved fee rows to project")
            return None

        mapped = self.map_fields(build_fee_data(rows))

        ref_state = self.db_session.get(RefState, state_id)
        if ref_state is None:
            ref_state = self._seed(state_id)
            self.db_session.add(ref_state)
            logger.debug(f"Created ref state: {state_id}")

        for column, values in mapped.items():
            if not values:
                continue
            current = dict(getattr(ref_state, column) or {})
            current.update(values)
            # Reassign so the JSON column is flagged dirty.
            setattr(ref_state, column, current)

        ref_state.source_pulled_at = max(
            (row.source_pulled_at for row in rows if row.source_pulled_at),
            default=utcnow(),
        )
        ref_state.last_batch_id = batch_id
        logger.info(f"Projected {len(rows)} fee rows of batch {batch_id} onto ref_states.{state_id}")
        return ref_state

    def map_fields(self, section_data: FeeData) -> Dict[str, Dict[str, float]]:
        """Map a FeeData to RefState JSON columns, dropping absent values."""
        data = section_data.to_dict()
        mapped = {}
        for column in _NONRESIDENT_COLUMNS + _RESIDENT_COLUMNS:
            values = data.get(column) or {}
            mapped[column] = {key: value for key, value in values.items() if value is not None}
        return mapped

    def _seed(self, state_id: str) -> RefState:
        """New RefState row starting from the hardcoded reference fees."""
        reference: Dict[str, Any] = REFERENCE_STATES.get(state_id, {})
        seed = FeeData.from_dict(reference).to_dict()
        return RefState(
            id=state_id,
            name=reference.get("name", state_id),
            license_fees=seed["license_fees"],
            tag_costs=seed["tag_costs"],
            point_cost=seed["point_cost"],
            resident_license_fees=seed["resident_license_fees"],
            resident_tag_costs=seed["resident_tag_costs"],
            resident_point_cost=seed["resident_point_cost"],
        )
