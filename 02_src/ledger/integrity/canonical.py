"""Canonical span encoding and content digests.

Pure deterministic helpers:
- canonical JSON bytes over a span's content fields
- sha256 content digest, lowercase hex
"""

import json
import math
from collections.abc import Mapping
from datetime import datetime
from hashlib import sha256
from typing import Any

from ..models import INTEGRITY_FIELDS, Span, format_timestamp


def canonical_bytes(span: Span | Mapping[str, Any]) -> bytes:
    """Deterministic UTF-8 JSON of the content fields, keys sorted.

    ``curr_hash``, ``signature`` and ``public_key`` are excluded, and a
    top-level null is treated like an absent field. Raises ``TypeError`` for
    values with no canonical form.
    """
    if isinstance(span, Span):
        content = span.content()
    else:
        content = {
            key: value
            for key, value in span.items()
            if key not in INTEGRITY_FIELDS and value is not None
        }

    rendered = json.dumps(
        _canonical_value(content),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )
    return rendered.encode("utf-8")


def content_hash(data: bytes) -> str:
    return sha256(data).hexdigest()


def span_digest(span: Span | Mapping[str, Any]) -> str:
    """Content address of a span."""
    return content_hash(canonical_bytes(span))


def _canonical_value(value: Any) -> Any:
    if value is None or isinstance(value, (str, bool, int)):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            raise TypeError("non-finite float has no canonical form")
        return value
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, Mapping):
        for key in value:
            if not isinstance(key, str):
                raise TypeError(f"mapping key {key!r} is not a string")
        return {key: _canonical_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_canonical_value(item) for item in value]
    raise TypeError(f"{type(value).__name__} has no canonical form")
