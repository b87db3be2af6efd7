"""
Regulatory Data Ingestion Package

Decides when to crawl and whether crawled data is safe to publish:
- Adaptive crawl scheduling by deadline proximity
- Exponential backoff and pause for failing crawlers
- Staging-to-promotion airlock with tolerance-based diffing
"""

from .backoff import BackoffState, compute_backoff
from .crawl_scheduler import (
    CrawlFrequency,
    CrawlSchedule,
    CrawlTask,
    DataCategory,
    StateDeadlineContext,
    build_crawl_schedule,
    compute_optimal_frequency,
)

__all__ = [
    "BackoffState",
    "compute_backoff",
    "CrawlFrequency",
    "CrawlSchedule",
    "CrawlTask",
    "DataCategory",
    "StateDeadlineContext",
    "build_crawl_schedule",
    "compute_optimal_frequency",
]
