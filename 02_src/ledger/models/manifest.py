"""Manifest policy model."""

from dataclasses import dataclass, field
from typing import Any

from .span import Span

DEFAULT_SLOW_MS = 5000


@dataclass(frozen=True)
class Manifest:
    """Operational policy read from the latest ``manifest`` span.

    The payload lives in the span's ``metadata``::

        {"allowed_boot_ids": ["observer_bot"],
         "policy": {"slow_ms": 5000, "require_signature": true,
                    "trusted_public_keys": ["<hex>"]}}
    """

    allowed_boot_ids: frozenset[str] = frozenset()
    policy: dict[str, Any] = field(default_factory=dict)
    span: Span | None = None

    @classmethod
    def empty(cls) -> "Manifest":
        return cls()

    @classmethod
    def from_span(cls, span: Span) -> "Manifest":
        metadata = span.metadata or {}
        allowed = metadata.get("allowed_boot_ids") or []
        if isinstance(allowed, str):
            allowed = [allowed]
        policy = metadata.get("policy") or {}
        return cls(
            allowed_boot_ids=frozenset(str(item) for item in allowed),
            policy=dict(policy),
            span=span,
        )

    def is_allowed(self, function_id: str) -> bool:
        return function_id in self.allowed_boot_ids

    @property
    def slow_ms(self) -> int:
        try:
            return int(self.policy.get("slow_ms", DEFAULT_SLOW_MS))
        except (TypeError, ValueError):
            return DEFAULT_SLOW_MS

    @property
    def require_signature(self) -> bool:
        return bool(self.policy.get("require_signature", False))

    @property
    def trusted_public_keys(self) -> frozenset[str]:
        keys = self.policy.get("trusted_public_keys") or []
        return frozenset(str(key).lower() for key in keys)
