"""
Record normalizer.

Turns raw job payloads from either producer (PascalCase from the Go entity
serializer, snake_case from its JSON tags, camelCase from older clients)
into canonical ``JobRecord`` objects. Never raises: anything it cannot make
sense of falls back to the field default.
"""
import re
from collections.abc import Mapping
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Sequence

from pydantic import TypeAdapter, ValidationError

from ..core.config import settings
from ..models.job import BrokenLink, CrawlMetrics, JobRecord, JobStatus


# Candidate keys per canonical field, in lookup order.
FIELD_ALIASES: Dict[str, Sequence[str]] = {
    "id": ("ID", "id", "Id"),
    "created_at": ("CreatedAt", "created_at", "createdAt"),
    "updated_at": ("UpdatedAt", "updated_at", "updatedAt"),
    "user_id": ("UserID", "user_id", "userId"),
    "url": ("URL", "url", "Url"),
    "status": ("Status", "status"),
    "html_version": ("HTMLVersion", "html_version", "htmlVersion"),
    "title": ("Title", "title"),
    "broken_link_detail": ("BrokenLinkDetail", "broken_link_detail", "brokenLinkDetail"),
    "has_login_form": ("HasLoginForm", "has_login_form", "hasLoginForm"),
    "processing_time": (
        "ProcessingTimeMs",
        "processing_time_ms",
        "ProcessingTime",
        "processing_time",
        "processingTimeMs",
    ),
    "error_message": ("ErrorMessage", "error_message", "errorMessage"),
    "metrics": ("Metrics", "metrics"),
}

METRIC_ALIASES: Dict[str, Sequence[str]] = {
    "internal_links": ("InternalLinks", "internal_links", "internalLinks"),
    "external_links": ("ExternalLinks", "external_links", "externalLinks"),
    "broken_links": ("BrokenLinks", "broken_links", "brokenLinks"),
    "total_links": ("TotalLinks", "total_links", "totalLinks"),
    "heading_counts": ("HeadingCounts", "heading_counts", "headingCounts"),
}

BROKEN_LINK_ALIASES: Dict[str, Sequence[str]] = {
    "url": ("URL", "url", "Url"),
    "status_code": ("StatusCode", "status_code", "statusCode"),
    "error_message": ("ErrorMessage", "error_message", "errorMessage"),
}

# Go time.Duration.String() style: "1.5s", "150ms", "500000ns", "3µs"
DURATION_PATTERN = re.compile(r"^(\d+(?:\.\d+)?)(ns|µs|μs|ms|s)$")

DURATION_SCALE_TO_MS = {
    "ns": 1e-6,
    "µs": 1e-3,  # micro sign U+00B5, what Go emits
    "μs": 1e-3,  # greek mu U+03BC
    "ms": 1.0,
    "s": 1e3,
}

_MISSING = object()
_datetime_adapter = TypeAdapter(datetime)


def resolve_field(raw: Mapping, candidates: Sequence[str], default: Any = _MISSING) -> Any:
    """Return the first candidate key whose value is present and not None."""
    for key in candidates:
        value = raw.get(key)
        if value is not None:
            return value
    return default


def resolve_coerced(raw: Mapping, candidates: Sequence[str], coerce: Callable[[Any], Any]) -> Any:
    """
    Return the first candidate value that survives ``coerce``, else None.

    A value of the wrong shape under one name does not hide a usable value
    under an alternate name.
    """
    for key in candidates:
        value = raw.get(key)
        if value is None:
            continue
        value = coerce(value)
        if value is not None:
            return value
    return None


def parse_duration_ms(value: Any, ns_threshold: Optional[int] = None) -> float:
    """
    Convert a wire duration to milliseconds.

    Strings must be a number plus a unit suffix (ns, µs, ms, s); anything
    else is 0. Numbers above ``ns_threshold`` are taken as nanoseconds,
    the rest as milliseconds already. The threshold is a heuristic: a real
    millisecond value above it is misread as nanoseconds.
    """
    if ns_threshold is None:
        ns_threshold = settings.DURATION_NS_THRESHOLD

    if isinstance(value, str):
        match = DURATION_PATTERN.match(value.strip())
        if not match:
            return 0.0
        magnitude, unit = match.groups()
        return float(magnitude) * DURATION_SCALE_TO_MS[unit]

    if isinstance(value, bool):
        return 0.0

    if isinstance(value, (int, float)):
        if value != value:  # NaN
            return 0.0
        if value > ns_threshold:
            return value / 1e6
        return float(value)

    return 0.0


def _coerce_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _coerce_str(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def _coerce_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes"):
            return True
        if lowered in ("false", "0", "no"):
            return False
    if isinstance(value, int):
        return bool(value)
    return None


def _coerce_datetime(value: Any) -> Optional[datetime]:
    try:
        return _datetime_adapter.validate_python(value)
    except ValidationError:
        return None


def _coerce_status(value: Any) -> Optional[JobStatus]:
    if isinstance(value, str):
        try:
            return JobStatus(value.strip().upper())
        except ValueError:
            return None
    return None


def _coerce_heading_counts(value: Any) -> Optional[Dict[str, int]]:
    if not isinstance(value, Mapping):
        return None
    counts = {}
    for tag, count in value.items():
        count = _coerce_int(count)
        if count is not None:
            counts[str(tag)] = count
    return counts


def normalize_broken_link(raw: Any) -> BrokenLink:
    """Normalize one nested broken-link entry."""
    if not isinstance(raw, Mapping):
        return BrokenLink()

    return BrokenLink(
        url=resolve_coerced(raw, BROKEN_LINK_ALIASES["url"], _coerce_str) or "",
        status_code=resolve_coerced(raw, BROKEN_LINK_ALIASES["status_code"], _coerce_int) or 0,
        error_message=resolve_coerced(raw, BROKEN_LINK_ALIASES["error_message"], _coerce_str) or "",
    )


def _normalize_metrics(raw: Mapping) -> Optional[CrawlMetrics]:
    """Collect metrics from the top level and from a nested metrics object."""
    nested = resolve_field(raw, FIELD_ALIASES["metrics"], None)
    sources = [raw]
    if isinstance(nested, Mapping):
        # Flat keys win over the nested object
        sources.append(nested)

    values: Dict[str, Any] = {}
    for field, candidates in METRIC_ALIASES.items():
        coerce = _coerce_heading_counts if field == "heading_counts" else _coerce_int
        for source in sources:
            value = resolve_coerced(source, candidates, coerce)
            if value is not None:
                values[field] = value
                break

    if not values:
        return None
    return CrawlMetrics(**values)


def normalize(raw: Any) -> JobRecord:
    """
    Convert one raw job payload to a canonical JobRecord.

    Only fields that resolved are passed to the model, so absent ones take
    their defaults and stay out of ``model_fields_set``. A payload without a
    usable id yields ``id=None``; callers reject those.
    """
    if not isinstance(raw, Mapping):
        return JobRecord()

    values: Dict[str, Any] = {}

    simple_fields = {
        "id": _coerce_int,
        "user_id": _coerce_int,
        "created_at": _coerce_datetime,
        "updated_at": _coerce_datetime,
        "url": _coerce_str,
        "html_version": _coerce_str,
        "title": _coerce_str,
        "has_login_form": _coerce_bool,
        "error_message": _coerce_str,
    }
    for field, coerce in simple_fields.items():
        value = resolve_coerced(raw, FIELD_ALIASES[field], coerce)
        if value is not None:
            values[field] = value

    status = resolve_coerced(raw, FIELD_ALIASES["status"], _coerce_status)
    if status is not None:
        values["status"] = status
    elif resolve_field(raw, FIELD_ALIASES["status"]) is not _MISSING:
        # Present but unrecognised
        values["status"] = JobStatus.PENDING

    duration = resolve_field(raw, FIELD_ALIASES["processing_time"])
    if duration is not _MISSING:
        values["processing_time_ms"] = parse_duration_ms(duration)

    detail = resolve_field(raw, FIELD_ALIASES["broken_link_detail"])
    if isinstance(detail, (list, tuple)):
        values["broken_link_detail"] = tuple(normalize_broken_link(entry) for entry in detail)

    metrics = _normalize_metrics(raw)
    if metrics is not None:
        values["metrics"] = metrics

    return JobRecord(**values)
