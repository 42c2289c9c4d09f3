"""Canonical crawl job models."""
from enum import Enum
from datetime import datetime
from types import MappingProxyType
from typing import Dict, Mapping, NamedTuple, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator


class JobStatus(str, Enum):
    """Crawl job status enumeration."""
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class BrokenLink(BaseModel):
    """A link that failed to resolve during a crawl."""
    model_config = ConfigDict(frozen=True)

    url: str = ""
    status_code: int = 0
    error_message: str = ""


class CrawlMetrics(BaseModel):
    """Link and heading counts; zeroed until the crawl completes."""
    model_config = ConfigDict(frozen=True)

    internal_links: int = 0
    external_links: int = 0
    broken_links: int = 0
    total_links: int = 0
    heading_counts: Mapping[str, int] = Field(
        default_factory=dict,
        validate_default=True,
        description="Heading tag histogram, e.g. {'h1': 2}; read-only",
    )

    @field_validator("heading_counts", mode="after")
    @classmethod
    def freeze_heading_counts(cls, value: Mapping[str, int]) -> Mapping[str, int]:
        """Copy into a read-only view so no caller can edit a stored record."""
        return MappingProxyType(dict(value))

    @field_serializer("heading_counts")
    def serialize_heading_counts(self, value: Mapping[str, int]) -> Dict[str, int]:
        return dict(value)


class JobRecord(BaseModel):
    """
    Canonical representation of one crawl job.

    Built only by the normalizer. ``model_fields_set`` holds the fields the
    source payload actually carried, which is what partial updates merge.
    """
    model_config = ConfigDict(frozen=True)

    id: Optional[int] = Field(default=None, description="Remote primary key; None fails validation")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    user_id: int = 0
    url: str = ""
    status: JobStatus = JobStatus.PENDING
    html_version: str = ""
    title: str = ""
    metrics: CrawlMetrics = Field(default_factory=CrawlMetrics)
    broken_link_detail: Optional[Tuple[BrokenLink, ...]] = Field(
        default=None,
        description="None when the payload carried no detail; distinct from an empty tuple"
    )
    has_login_form: bool = False
    processing_time_ms: float = 0.0
    error_message: str = ""


class AggregateSummary(BaseModel):
    """Counts per status bucket. ``pending`` includes PROCESSING."""
    model_config = ConfigDict(frozen=True)

    total: int = 0
    pending: int = 0
    completed: int = 0
    failed: int = 0


class StoreSnapshot(NamedTuple):
    """Read-only view of the job table and its summary."""
    records: Tuple[JobRecord, ...]
    summary: AggregateSummary
