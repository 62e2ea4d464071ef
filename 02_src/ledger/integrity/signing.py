"""Ed25519 span signing and verification."""

from nacl.encoding import HexEncoder
from nacl.exceptions import BadSignatureError
from nacl.signing import SigningKey, VerifyKey

from ..config import LedgerSettings
from ..errors import IntegrityError
from ..models import Span
from .canonical import span_digest


def generate_signing_key_hex() -> str:
    """New random Ed25519 seed, hex encoded (SIGNING_KEY_HEX format)."""
    return SigningKey.generate().encode(encoder=HexEncoder).decode("ascii")


def verify_signature(signature_hex: str, message: bytes, public_key_hex: str) -> bool:
    """Check a detached hex signature; malformed input is just invalid."""
    try:
        verify_key = VerifyKey(bytes.fromhex(public_key_hex))
        verify_key.verify(message, bytes.fromhex(signature_hex))
        return True
    except (BadSignatureError, ValueError, TypeError):
        return False


class Signer:
    """Signs span digests with the configured key; a no-op without one."""

    def __init__(self, signing_key_hex: str | None = None):
        self._signing_key: SigningKey | None = None
        if signing_key_hex:
            self._signing_key = SigningKey(
                signing_key_hex.strip().encode("ascii"), encoder=HexEncoder
            )

    @classmethod
    def from_settings(cls, settings: LedgerSettings) -> "Signer":
        return cls(settings.signing_key_hex)

    @property
    def enabled(self) -> bool:
        return self._signing_key is not None

    @property
    def public_key_hex(self) -> str | None:
        if self._signing_key is None:
            return None
        return self._signing_key.verify_key.encode(encoder=HexEncoder).decode("ascii")

    def sign(self, span: Span) -> Span:
        """Attach curr_hash, signature and public_key to ``span`` in place.

        Old integrity fields are dropped first so a re-sign never hashes a
        previous digest.
        """
        if self._signing_key is None:
            return span

        span.strip_integrity()
        digest = span_digest(span)
        signed = self._signing_key.sign(bytes.fromhex(digest))

        span.curr_hash = digest
        span.signature = signed.signature.hex()
        span.public_key = self.public_key_hex
        return span

    def sign_bytes(self, message: bytes) -> str:
        """Detached hex signature over arbitrary bytes."""
        if self._signing_key is None:
            raise RuntimeError("Signing key not configured")
        return self._signing_key.sign(message).signature.hex()


def verify_span(span: Span) -> str:
    """Recompute the digest and check it against the stored integrity fields.

    Returns the recomputed digest. A span carrying neither a digest nor a
    signature passes; callers that require signing check ``is_signed``.
    """
    digest = span_digest(span)

    if span.curr_hash and span.curr_hash.lower() != digest:
        raise IntegrityError(
            f"Hash mismatch for span {span.id}",
            detail={"expected": span.curr_hash, "computed": digest},
        )

    if span.signature and span.public_key:
        if not verify_signature(span.signature, bytes.fromhex(digest), span.public_key):
            raise IntegrityError(f"Invalid signature for span {span.id}")

    return digest
