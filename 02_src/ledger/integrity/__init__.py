"""Canonical encoding, digests, signing and verification."""

from .canonical import canonical_bytes, content_hash, span_digest
from .signing import (
    Signer,
    generate_signing_key_hex,
    verify_signature,
    verify_span,
)

__all__ = [
    "canonical_bytes",
    "content_hash",
    "span_digest",
    "Signer",
    "verify_span",
    "verify_signature",
    "generate_signing_key_hex",
]
