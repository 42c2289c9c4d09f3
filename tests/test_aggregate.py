"""Unit tests for status aggregation."""

from crawl_sync.models.job import AggregateSummary, JobStatus
from crawl_sync.sync.aggregate import AggregateTracker, aggregate, bucket_for
from crawl_sync.sync.normalizer import normalize


def make(job_id, status):
    return normalize({"id": job_id, "status": status})


def test_aggregate_empty():
    assert aggregate([]) == AggregateSummary(total=0, pending=0, completed=0, failed=0)


def test_processing_counts_as_pending():
    assert bucket_for(JobStatus.PROCESSING) == bucket_for(JobStatus.PENDING) == "pending"


def test_aggregate_counts_buckets():
    records = [
        make(1, "PENDING"),
        make(2, "PROCESSING"),
        make(3, "COMPLETED"),
        make(4, "COMPLETED"),
        make(5, "FAILED"),
    ]

    summary = aggregate(records)

    assert summary == AggregateSummary(total=5, pending=2, completed=2, failed=1)
    assert summary.total == summary.pending + summary.completed + summary.failed


class TestAggregateTracker:
    """Incremental maintenance of the summary."""

    def test_insert_then_transition(self):
        tracker = AggregateTracker()

        tracker.record_upsert(None, JobStatus.PENDING)
        tracker.record_upsert(JobStatus.PENDING, JobStatus.COMPLETED)

        assert tracker.summary == AggregateSummary(total=1, pending=0, completed=1, failed=0)

    def test_removal(self):
        tracker = AggregateTracker()
        tracker.reset([make(1, "FAILED"), make(2, "PENDING")])

        tracker.record_removal([JobStatus.FAILED])

        assert tracker.summary == AggregateSummary(total=1, pending=1, completed=0, failed=0)

    def test_never_negative(self):
        tracker = AggregateTracker()

        tracker.record_removal([JobStatus.COMPLETED, JobStatus.FAILED])

        summary = tracker.summary
        assert min(summary.total, summary.pending, summary.completed, summary.failed) == 0

    def test_reset_matches_full_recount(self):
        records = [make(1, "PROCESSING"), make(2, "FAILED")]
        tracker = AggregateTracker()
        tracker.record_upsert(None, JobStatus.COMPLETED)

        tracker.reset(records)

        assert tracker.summary == aggregate(records)
