"""
Airlock exceptions.

Tolerance violations are never raised: they become DiffEntries in the
verdict. These exceptions cover inputs the pipeline cannot evaluate at all
and review actions that are not allowed. Each carries the HTTP status the
admin/webhook blueprint answers with.
"""
from typing import Optional


class AirlockError(Exception):
    """Base class for airlock failures."""

    status_code = 500
    code = "AIRLOCK_ERROR"

    def __init__(self, message: str, batch_id: Optional[str] = None):
        super().__init__(message)
        self.batch_id = batch_id


class UnknownStateError(AirlockError):
    """No reference baseline exists for the state being evaluated."""

    status_code = 422
    code = "UNKNOWN_STATE"

    def __init__(self, state_id: str, batch_id: Optional[str] = None):
        super().__init__(f"No reference baseline for state {state_id!r}", batch_id)
        self.state_id = state_id


class BatchNotFoundError(AirlockError):
    """No staging rows exist for the batch."""

    status_code = 404
    code = "BATCH_NOT_FOUND"

    def __init__(self, batch_id: str):
        super().__init__(f"No staging rows for batch {batch_id!r}", batch_id)


class BatchStateMismatchError(AirlockError):
    """Staging rows of the batch belong to a different state."""

    status_code = 422
    code = "BATCH_STATE_MISMATCH"

    def __init__(self, batch_id: str, expected: str, found):
        found_list = ", ".join(sorted(found))
        super().__init__(
            f"Batch {batch_id!r} was evaluated for {expected} but holds rows for {found_list}",
            batch_id,
        )
        self.expected = expected
        self.found = set(found)


class InvalidScrapedRowError(AirlockError):
    """A scraped row carries a value the snapshot builder cannot parse."""

    status_code = 422
    code = "INVALID_SCRAPED_ROW"

    def __init__(self, message: str, row_id=None, field: Optional[str] = None, batch_id: Optional[str] = None):
        super().__init__(message, batch_id)
        self.row_id = row_id
        self.field = field


class QueueEntryNotFoundError(AirlockError):
    status_code = 404
    code = "QUEUE_ENTRY_NOT_FOUND"

    def __init__(self, queue_id: str):
        super().__init__(f"Airlock queue entry {queue_id!r} not found")
        self.queue_id = queue_id


class InvalidQueueTransitionError(AirlockError):
    """Approve/reject requested on an entry that is not awaiting review."""

    status_code = 409
    code = "INVALID_QUEUE_TRANSITION"

    def __init__(self, queue_id: str, current_status: str, requested: str):
        super().__init__(
            f"Cannot {requested} queue entry {queue_id!r}: status is {current_status!r}, expected 'quarantined'"
        )
        self.queue_id = queue_id
        self.current_status = current_status
        self.requested = requested
