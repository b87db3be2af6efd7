"""Scraper/Ingestion SQLAlchemy Models."""

from .scraped_fee import ScrapedFee
from .scraped_deadline import ScrapedDeadline
from .airlock_queue import AirlockQueueEntry, AirlockAuditLog, QUEUE_STATUSES, AUDIT_ACTIONS
from .crawl_health import CrawlHealth

__all__ = [
    "ScrapedFee",
    "ScrapedDeadline",
    "AirlockQueueEntry",
    "AirlockAuditLog",
    "QUEUE_STATUSES",
    "AUDIT_ACTIONS",
    "CrawlHealth",
]
