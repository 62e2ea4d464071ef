"""Core data models for the span ledger."""

from .manifest import DEFAULT_SLOW_MS, Manifest
from .results import BatchReport, BootOutcome, Identity, TimelinePage
from .span import (
    INTEGRITY_FIELDS,
    JSON_FIELDS,
    REQUIRED_FIELDS,
    Span,
    Visibility,
    format_timestamp,
    to_jsonable,
    utc_now,
)

__all__ = [
    # Span
    "Span",
    "Visibility",
    "INTEGRITY_FIELDS",
    "JSON_FIELDS",
    "REQUIRED_FIELDS",
    "format_timestamp",
    "to_jsonable",
    "utc_now",
    # Policy
    "Manifest",
    "DEFAULT_SLOW_MS",
    # Results
    "Identity",
    "BootOutcome",
    "BatchReport",
    "TimelinePage",
]
