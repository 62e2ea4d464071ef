"""Span record schema."""

import json
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, field_validator

Visibility = Literal["public", "private", "shared"]

# Never part of the digest: the digest itself and what is derived from it.
INTEGRITY_FIELDS = frozenset({"curr_hash", "signature", "public_key"})

REQUIRED_FIELDS = ("entity_type", "who", "this")

# Columns stored as JSON text.
JSON_FIELDS = ("input", "output", "error", "metadata", "related_to")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Fixed-width UTC ISO form; storage and canonical encoding both use it."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


class Span(BaseModel):
    """One immutable fact in the ledger.

    Content fields are everything except ``curr_hash``, ``signature`` and
    ``public_key``. A correction is a new Span with the same ``id`` and a
    higher ``seq``; rows are never rewritten.
    """

    model_config = ConfigDict(extra="ignore")

    # Identity
    id: str | None = None
    seq: int | None = None

    # Classification
    entity_type: str | None = None
    who: str | None = None
    did: str | None = None
    this: str | None = None

    at: datetime | None = None

    # Function spans
    name: str | None = None
    code: str | None = None

    # Payload
    input: Any = None
    output: Any = None
    error: Any = None
    metadata: dict[str, Any] | None = None
    duration_ms: int | None = None

    # Provenance
    owner_id: str | None = None
    tenant_id: str | None = None
    visibility: Visibility | None = None
    parent_id: str | None = None
    related_to: list[str] | None = None
    status: str | None = None

    # Integrity
    curr_hash: str | None = None
    signature: str | None = None
    public_key: str | None = None

    @field_validator("at")
    @classmethod
    def _normalise_at(cls, value: datetime | None) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @property
    def is_signed(self) -> bool:
        return bool(self.signature and self.public_key)

    def missing_fields(self) -> list[str]:
        """Mandatory classification fields that are absent or blank."""
        missing = []
        for name in REQUIRED_FIELDS:
            value = getattr(self, name)
            if value is None or not str(value).strip():
                missing.append(name)
        return missing

    def content(self) -> dict[str, Any]:
        """Content fields with a value; absent and null are the same fact."""
        return self.model_dump(exclude=set(INTEGRITY_FIELDS), exclude_none=True)

    def strip_integrity(self) -> None:
        self.curr_hash = None
        self.signature = None
        self.public_key = None

    def revision(self, **changes: Any) -> "Span":
        """Next revision of this span: same id, seq + 1, unsigned."""
        update = {
            "seq": (self.seq or 0) + 1,
            "at": None,
            "curr_hash": None,
            "signature": None,
            "public_key": None,
        }
        update.update(changes)
        return self.model_copy(update=update, deep=True)

    def to_record(self) -> dict[str, Any]:
        """JSON-ready mapping for callers."""
        record = self.model_dump(mode="json", exclude_none=True)
        if self.at is not None:
            record["at"] = format_timestamp(self.at)
        return record


def to_jsonable(value: Any) -> Any:
    """Plain JSON types only; unknown objects become their str()."""
    return json.loads(json.dumps(value, default=str))
