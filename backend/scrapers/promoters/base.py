"""
Base Promoter - Moves an evaluated scrape batch out of staging.

Promoters handle the final step of the airlock: staging rows -> approved
(or rejected), then projection of the approved values onto the
production table that downstream calculations read.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from scrapers.models import ScrapedDeadline, ScrapedFee

logger = logging.getLogger(__name__)

STAGING = "staging"
APPROVED = "approved"
REJECTED = "rejected"


class BasePromoter(ABC):
    """
    Abstract base for batch promoters.

    Subclasses must implement:
    - project_to_domain(): Project a batch's approved rows to the target table
    - map_fields(): Map built section data to target table columns
    """

    TARGET_TABLE: str = ""

    def __init__(self, db_session):
        """
        Initialize promoter.

        Args:
            db_session: SQLAlchemy database session
        """
        self.db_session = db_session

    # -------------------------------------------------------------------------
    # Row status transitions
    # -------------------------------------------------------------------------

    def _transition_rows(self, batch_id: str, state_id: str, new_status: str) -> Dict[str, int]:
        """Move every staging row of the batch to new_status. Caller commits."""
        counts = {}
        for model in (ScrapedFee, ScrapedDeadline):
            counts[model.__tablename__] = (
                self.db_session.query(model)
                .filter(
                    model.scrape_batch_id == batch_id,
                    model.state_id == state_id,
                    model.status == STAGING,
                )
                .update({model.status: new_status}, synchronize_session=False)
            )
        logger.info(
            f"{state_id} batch {batch_id}: {new_status} "
            f"{counts['scraped_fees']} fee rows, {counts['scraped_deadlines']} deadline rows"
        )
        return counts

    def approve_rows(self, batch_id: str, state_id: str) -> Dict[str, int]:
        return self._transition_rows(batch_id, state_id, APPROVED)

    def reject_rows(self, batch_id: str, state_id: str) -> Dict[str, int]:
        return self._transition_rows(batch_id, state_id, REJECTED)

    def approved_fee_rows(self, batch_id: str, state_id: str) -> List[ScrapedFee]:
        return (
            self.db_session.query(ScrapedFee)
            .filter(
                ScrapedFee.scrape_batch_id == batch_id,
                ScrapedFee.state_id == state_id,
                ScrapedFee.status == APPROVED,
            )
            .order_by(ScrapedFee.source_pulled_at, ScrapedFee.id)
            .all()
        )

    # -------------------------------------------------------------------------
    # Projection
    # -------------------------------------------------------------------------

    def promote_batch(self, batch_id: str, state_id: str) -> Optional[Any]:
        """
        Approve the batch's staging rows and project them to the target table.

        Does not commit; the caller owns the transaction.
        """
        self.approve_rows(batch_id, state_id)
        return self.project_to_domain(state_id, batch_id)

    @abstractmethod
    def project_to_domain(self, state_id: str, batch_id: str) -> Optional[Any]:
        """
        Project a batch's approved rows to the target table.

        Returns:
            The domain model instance or None if nothing was projected
        """
        pass

    @abstractmethod
    def map_fields(self, section_data: Any) -> Dict[str, Any]:
        """
        Map built section data to target table columns.

        Returns:
            Dict with keys matching target table columns
        """
        pass
