"""Result models returned by the entry points and workers."""

from dataclasses import dataclass, field
from typing import Any

from .span import Span


@dataclass(frozen=True)
class Identity:
    """Actor and tenant a datastore session is bound to."""

    user_id: str
    tenant_id: str | None = None


@dataclass
class BootOutcome:
    """Result of one bootstrap attempt (success or structured failure)."""

    success: bool
    function_id: str | None
    result: Any = None
    error: dict | None = None  # {"kind": ..., "message": ..., "detail"?: ...}
    boot_event_id: str | None = None

    def to_dict(self) -> dict:
        data: dict[str, Any] = {
            "success": self.success,
            "function_id": self.function_id,
        }
        if self.success:
            data["result"] = self.result
        else:
            data["error"] = self.error
        if self.boot_event_id:
            data["boot_event_id"] = self.boot_event_id
        return data


@dataclass
class BatchReport:
    """Summary of one polling pass."""

    worker: str
    selected: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    result_ids: list[str] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return self.succeeded + self.failed + self.skipped


@dataclass
class TimelinePage:
    """Newest-first page of visible spans."""

    spans: list[Span]
    limit: int

    @property
    def count(self) -> int:
        return len(self.spans)

    @property
    def has_more(self) -> bool:
        return self.count == self.limit

    def to_dict(self) -> dict:
        return {
            "spans": [span.to_record() for span in self.spans],
            "count": self.count,
            "has_more": self.has_more,
        }
