"""Signed append-only span ledger with trust-gated bootstrap."""

from .app import Application, IApplication
from .config import LedgerSettings
from .errors import (
    DuplicateSpan,
    ExecutionError,
    ExecutionTimeout,
    IntegrityError,
    LedgerError,
    NotAuthorized,
    NotFound,
    StoreError,
    ValidationError,
)
from .models import BootOutcome, Identity, Manifest, Span, TimelinePage

__all__ = [
    "Application",
    "IApplication",
    "LedgerSettings",
    "Span",
    "Manifest",
    "Identity",
    "BootOutcome",
    "TimelinePage",
    "LedgerError",
    "NotAuthorized",
    "NotFound",
    "IntegrityError",
    "ValidationError",
    "ExecutionError",
    "ExecutionTimeout",
    "StoreError",
    "DuplicateSpan",
]
