"""Status bucket counting for the job table."""
from typing import Iterable, Optional

from ..models.job import AggregateSummary, JobRecord, JobStatus


PENDING_BUCKET = "pending"
COMPLETED_BUCKET = "completed"
FAILED_BUCKET = "failed"

STATUS_BUCKETS = {
    JobStatus.PENDING: PENDING_BUCKET,
    JobStatus.PROCESSING: PENDING_BUCKET,
    JobStatus.COMPLETED: COMPLETED_BUCKET,
    JobStatus.FAILED: FAILED_BUCKET,
}


def bucket_for(status: JobStatus) -> str:
    """Return the summary bucket a status counts toward."""
    return STATUS_BUCKETS[status]


def aggregate(records: Iterable[JobRecord]) -> AggregateSummary:
    """Count records per status bucket from scratch."""
    counts = {PENDING_BUCKET: 0, COMPLETED_BUCKET: 0, FAILED_BUCKET: 0}
    total = 0
    for record in records:
        total += 1
        counts[bucket_for(record.status)] += 1
    return AggregateSummary(total=total, **counts)


class AggregateTracker:
    """
    Incrementally maintained AggregateSummary.

    After any sequence of ``reset``/``record_upsert``/``record_removal``
    calls mirroring the table's mutations, ``summary`` equals
    ``aggregate(table)``.
    """

    def __init__(self):
        self._total = 0
        self._counts = {PENDING_BUCKET: 0, COMPLETED_BUCKET: 0, FAILED_BUCKET: 0}

    @property
    def summary(self) -> AggregateSummary:
        return AggregateSummary(total=self._total, **self._counts)

    def reset(self, records: Iterable[JobRecord]):
        """Recompute from a full record set."""
        fresh = aggregate(records)
        self._total = fresh.total
        self._counts = {
            PENDING_BUCKET: fresh.pending,
            COMPLETED_BUCKET: fresh.completed,
            FAILED_BUCKET: fresh.failed,
        }

    def record_upsert(self, old_status: Optional[JobStatus], new_status: JobStatus):
        """Move one record between buckets; ``old_status`` is None on insert."""
        if old_status is None:
            self._total += 1
        else:
            self._decrement(bucket_for(old_status))
        self._counts[bucket_for(new_status)] += 1

    def record_removal(self, statuses: Iterable[JobStatus]):
        """Drop removed records from their buckets and from the total."""
        for status in statuses:
            self._decrement(bucket_for(status))
            self._total = max(0, self._total - 1)

    def _decrement(self, bucket: str):
        # Floor at zero; a caller feeding statuses the table never held must not go negative
        self._counts[bucket] = max(0, self._counts[bucket] - 1)
