"""Promoters - Move evaluated batches out of staging into production tables."""

from .base import BasePromoter
from .ref_state_promoter import RefStatePromoter

__all__ = ["BasePromoter", "RefStatePromoter"]
