"""
In-memory job table kept in sync with the remote system of record.

The store is the only place JobRecords are created from raw payloads and
the only thing that mutates the table. All mutations run to completion
synchronously on the caller's event loop, so they never interleave.
"""
from typing import Any, Callable, Dict, Iterable, List, Optional

from ..core.config import settings
from ..core.exceptions import RecordValidationError
from ..core.logging import logger
from ..models.job import AggregateSummary, JobRecord, StoreSnapshot
from .aggregate import AggregateTracker
from .normalizer import normalize


SnapshotListener = Callable[[StoreSnapshot], Any]


def validate_record(record: JobRecord, raw: Any = None) -> JobRecord:
    """Reject records that cannot be keyed."""
    if record.id is None:
        raise RecordValidationError("missing id", payload=raw)
    return record


def merge_records(existing: JobRecord, incoming: JobRecord) -> JobRecord:
    """
    Overlay the fields ``incoming`` actually carried onto ``existing``.

    Metrics merge per sub-field so a delta with only ``internal_links``
    keeps the other counts. A full payload replaces everything.
    """
    values = {field: getattr(existing, field) for field in JobRecord.model_fields}
    values.update({field: getattr(incoming, field) for field in incoming.model_fields_set})

    if "metrics" in incoming.model_fields_set:
        metrics = incoming.metrics
        values["metrics"] = existing.metrics.model_copy(
            update={field: getattr(metrics, field) for field in metrics.model_fields_set}
        )

    # Both sides are already validated; construct keeps the union of supplied fields
    return JobRecord.model_construct(
        _fields_set=existing.model_fields_set | incoming.model_fields_set,
        **values
    )


class JobStore:
    """
    Authoritative table of canonical crawl jobs plus their status summary.

    Construct one per session and hand it to whoever needs it; there is no
    module-level instance.
    """

    def __init__(self, resolve_conflicts_by_timestamp: Optional[bool] = None):
        if resolve_conflicts_by_timestamp is None:
            resolve_conflicts_by_timestamp = settings.RESOLVE_CONFLICTS_BY_TIMESTAMP
        self.resolve_conflicts_by_timestamp = resolve_conflicts_by_timestamp
        self._records: Dict[int, JobRecord] = {}
        self._tracker = AggregateTracker()
        self._listeners: List[SnapshotListener] = []

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._records

    # ==================== Reads ====================

    @property
    def summary(self) -> AggregateSummary:
        return self._tracker.summary

    def get(self, job_id: int) -> Optional[JobRecord]:
        """Get a record by id."""
        return self._records.get(job_id)

    def snapshot(self) -> StoreSnapshot:
        """Return the current table and summary. Records are immutable."""
        return StoreSnapshot(records=tuple(self._records.values()), summary=self._tracker.summary)

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """
        Register a callback invoked with a fresh snapshot after each change.

        Returns a function that unregisters the listener.
        """
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ==================== Mutations ====================

    def replace_all(self, raw_records: Iterable[Any]) -> int:
        """
        Replace the whole table with the given raw payloads.

        Used for bulk loads. Duplicate ids resolve to the last occurrence;
        rows without an id are skipped. Returns the number of records stored.
        """
        table: Dict[int, JobRecord] = {}
        skipped = 0

        for raw in raw_records:
            try:
                record = validate_record(normalize(raw), raw)
            except RecordValidationError as e:
                skipped += 1
                logger.warning(f"Skipping bulk record: {e.message}")
                continue

            if self.resolve_conflicts_by_timestamp:
                current = self._records.get(record.id)
                if current is not None and self._is_stale(record, current):
                    logger.debug(f"Keeping newer local state for crawl {record.id} over bulk row")
                    record = current

            table[record.id] = record

        self._records = table
        self._tracker.reset(table.values())

        if skipped:
            logger.warning(f"Bulk load skipped {skipped} invalid record(s)")
        logger.info(f"Job table replaced with {len(table)} record(s)")

        self._notify()
        return len(table)

    def upsert(self, raw_record: Any) -> Optional[JobRecord]:
        """
        Insert or update one job from a raw payload.

        Returns the stored record, or None if the payload was rejected or
        was older than what is stored (timestamp resolution only).
        """
        try:
            incoming = validate_record(normalize(raw_record), raw_record)
        except RecordValidationError as e:
            logger.warning(f"Dropping job update: {e.message}")
            return None

        current = self._records.get(incoming.id)

        if current is None:
            record = incoming
            self._tracker.record_upsert(None, record.status)
            logger.debug(f"Inserted crawl {record.id} ({record.status.value})")
        else:
            if self.resolve_conflicts_by_timestamp and self._is_stale(incoming, current):
                logger.debug(f"Ignoring stale update for crawl {incoming.id}")
                return None
            record = merge_records(current, incoming)
            if record == current:
                return current
            self._tracker.record_upsert(current.status, record.status)
            logger.debug(
                f"Updated crawl {record.id} ({current.status.value} -> {record.status.value})"
            )

        self._records[record.id] = record
        self._notify()
        return record

    def remove(self, ids: Iterable[int]) -> int:
        """
        Delete records by id. Unknown ids are ignored.

        Returns the number of records removed.
        """
        removed = []
        for job_id in set(ids):
            record = self._records.pop(job_id, None)
            if record is not None:
                removed.append(record)

        if not removed:
            return 0

        self._tracker.record_removal(record.status for record in removed)
        logger.info(f"Removed {len(removed)} crawl(s) from job table")

        self._notify()
        return len(removed)

    # ==================== Internals ====================

    @staticmethod
    def _is_stale(incoming: JobRecord, current: JobRecord) -> bool:
        """True when both carry updated_at and incoming is strictly older."""
        if incoming.updated_at is None or current.updated_at is None:
            return False
        try:
            return incoming.updated_at < current.updated_at
        except TypeError:
            # naive vs aware timestamps; no basis for ordering
            return False

    def _notify(self):
        if not self._listeners:
            return
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Job store listener failed")
