"""
Pydantic models for /airlock/* endpoints.

Endpoints:
- airlock/evaluate
- airlock/sweep
- airlock/queue
- airlock/queue/<id>/approve, airlock/queue/<id>/reject
- airlock/digest
- airlock/schedule
"""

from typing import List, Literal, Optional

from pydantic import Field, field_validator

from .base import BaseParamsModel

QueueStatus = Literal["auto_approved", "quarantined", "approved", "rejected"]


class EvaluateBatchParams(BaseParamsModel):
    """Body for the scraper webhook: one finished scrape batch."""

    state_id: str = Field(
        min_length=2,
        max_length=2,
        description="Two-letter state code the batch was scraped for"
    )
    scrape_batch_id: str = Field(
        min_length=1,
        max_length=64,
        alias="batch_id",
        description="Batch id shared by the batch's staging rows"
    )


class SweepParams(BaseParamsModel):
    """Body for the reconciliation sweep cron."""

    limit: Optional[int] = Field(
        default=None,
        ge=1,
        le=1000,
        description="Max batches to evaluate (default AIRLOCK_SWEEP_BATCH_LIMIT)"
    )


class QueueListParams(BaseParamsModel):
    """Query params for the review queue listing."""

    status: Optional[QueueStatus] = Field(
        default=None,
        description="Filter by queue status"
    )
    state_id: Optional[str] = Field(
        default=None,
        description="Filter by state"
    )
    limit: int = Field(
        default=50,
        ge=1,
        le=500,
        description="Max results to return"
    )


class ResolveParams(BaseParamsModel):
    """Body for approve/reject of a quarantined batch."""

    resolved_by: str = Field(
        min_length=1,
        max_length=100,
        description="Reviewer identity recorded in the audit log"
    )
    notes: Optional[str] = Field(
        default=None,
        description="Free-text reason"
    )


class DigestParams(BaseParamsModel):
    window_days: int = Field(default=7, ge=1, le=31)


class ScheduleParams(BaseParamsModel):
    """Query params for the crawl schedule preview."""

    categories: Optional[List[str]] = Field(
        default=None,
        description="Comma-separated data categories (default: deadlines,fees,regulations,draw_odds)"
    )

    @field_validator('categories', mode='before')
    @classmethod
    def split_categories(cls, v):
        if v is None or v == '':
            return None
        if isinstance(v, str):
            return [item.strip() for item in v.split(',') if item.strip()] or None
        return v
