"""Error taxonomy shared by the ledger, the bootstrap flow and the workers."""

from typing import Any


class LedgerError(Exception):
    """Base exception for ledger operations."""

    kind = "LedgerError"

    def __init__(self, message: str, detail: Any = None):
        self.message = message
        self.detail = detail
        super().__init__(message)

    def to_dict(self) -> dict:
        """Structured failure: kind + message, detail only when present."""
        data = {"kind": self.kind, "message": self.message}
        if self.detail is not None:
            data["detail"] = self.detail
        return data


class NotAuthorized(LedgerError):
    """Raised when a function id is absent from the manifest allowlist."""

    kind = "NotAuthorized"


class NotFound(LedgerError):
    """Raised when no function span exists for the requested id."""

    kind = "NotFound"


class IntegrityError(LedgerError):
    """Raised on a digest mismatch, a bad signature or an untrusted signer."""

    kind = "IntegrityError"


class ValidationError(LedgerError):
    """Raised when a span is rejected at the ingest boundary."""

    kind = "ValidationError"

    def __init__(self, message: str, missing: list[str] | None = None, detail: Any = None):
        self.missing = list(missing or [])
        super().__init__(message, detail=detail)

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.missing:
            data["missing"] = self.missing
        return data


class ExecutionError(LedgerError):
    """Raised when loaded code raises or returns an error payload."""

    kind = "ExecutionError"


class ExecutionTimeout(ExecutionError):
    """Raised when loaded code does not finish within the allotted time."""

    kind = "ExecutionTimeout"


class StoreError(LedgerError):
    """Raised when the datastore fails."""

    kind = "StoreError"


class DuplicateSpan(StoreError):
    """Raised when an (id, seq) revision is already in the ledger."""

    kind = "DuplicateSpan"

    def __init__(self, span_id: str, seq: int):
        self.span_id = span_id
        self.seq = seq
        super().__init__(f"Span {span_id} already has revision {seq}")
