"""
Data Airlock - staging, diff and quarantine for scraped regulatory data.

Scraped rows become an immutable StagingSnapshot, the snapshot is diffed
against the live baseline under AirlockTolerances, and the resulting
AirlockVerdict decides between auto-promotion and quarantine.
"""

from .errors import (
    AirlockError,
    BatchNotFoundError,
    BatchStateMismatchError,
    InvalidQueueTransitionError,
    InvalidScrapedRowError,
    QueueEntryNotFoundError,
    UnknownStateError,
)
from .evaluator import diff_snapshots, evaluate_snapshot, promote_snapshot
from .snapshot_builder import FeeKind, build_deadline_data, build_fee_data, build_snapshot
from .tolerances import DEFAULT_TOLERANCES, AirlockTolerances
from .types import AirlockVerdict, DiffEntry, DiffSeverity, LiveBaseline, StagingSnapshot

__all__ = [
    "AirlockError",
    "BatchNotFoundError",
    "BatchStateMismatchError",
    "InvalidQueueTransitionError",
    "InvalidScrapedRowError",
    "QueueEntryNotFoundError",
    "UnknownStateError",
    "evaluate_snapshot",
    "diff_snapshots",
    "promote_snapshot",
    "FeeKind",
    "build_fee_data",
    "build_deadline_data",
    "build_snapshot",
    "AirlockTolerances",
    "DEFAULT_TOLERANCES",
    "AirlockVerdict",
    "DiffEntry",
    "DiffSeverity",
    "LiveBaseline",
    "StagingSnapshot",
]
