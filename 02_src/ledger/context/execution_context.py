"""Capability surface handed to loaded code."""

import secrets
import uuid
from collections.abc import Mapping
from copy import deepcopy
from datetime import datetime
from typing import Any, Callable, Sequence

from ..integrity import Signer, content_hash, verify_signature
from ..models import Identity, Span, utc_now
from ..storage import IStorage, SpanQuery


class CryptoToolkit:
    """Hashing, signing and encoding primitives; the private key stays inside."""

    def __init__(self, signer: Signer):
        self._signer = signer

    def hash(self, data: bytes | str) -> str:
        if isinstance(data, str):
            data = data.encode("utf-8")
        return content_hash(data)

    @property
    def public_key(self) -> str | None:
        return self._signer.public_key_hex

    def sign(self, message: bytes) -> str:
        return self._signer.sign_bytes(message)

    def verify(self, signature_hex: str, message: bytes, public_key_hex: str) -> bool:
        return verify_signature(signature_hex, message, public_key_hex)

    @staticmethod
    def hex(data: bytes) -> str:
        return data.hex()

    @staticmethod
    def unhex(text: str) -> bytes:
        return bytes.fromhex(text)

    @staticmethod
    def random_id() -> str:
        return str(uuid.uuid4())

    @staticmethod
    def random_bytes(size: int = 32) -> bytes:
        return secrets.token_bytes(size)


class ExecutionContext:
    """Everything a bootstrapped function or worker item may touch.

    Ledger access is bound to the session identity of the store. Loaded code
    gets no settings, no signing key and no connection handle.
    """

    def __init__(
        self,
        storage: IStorage,
        signer: Signer,
        identity: Identity,
        event: Mapping[str, Any] | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._storage = storage
        self._signer = signer
        self._identity = identity
        self._event = dict(event or {})
        self._clock = clock
        self.crypto = CryptoToolkit(signer)

    @property
    def identity(self) -> Identity:
        return self._identity

    @property
    def event(self) -> dict:
        """Copy of the invocation payload."""
        return deepcopy(self._event)

    def now(self) -> datetime:
        return self._clock()

    async def query(self, query: SpanQuery | None = None, **filters: Any) -> list[Span]:
        """Visible spans; pass a SpanQuery or its fields as keywords."""
        if query is None:
            query = SpanQuery(**filters)
        return await self._storage.query(query)

    async def fetch(self, sql: str, params: Sequence[Any] = ()) -> list[dict]:
        """Parameterised read against ``visible_timeline``."""
        return await self._storage.fetch(sql, params)

    async def insert_span(self, span: Span | Mapping[str, Any]) -> Span:
        """Append a span owned by the session identity."""
        return await self._storage.insert(self._owned(span))

    def sign_span(self, span: Span | Mapping[str, Any]) -> Span:
        """Fill the insert defaults, then sign, so the span stays insertable."""
        span = self._owned(span)
        self._storage.apply_defaults(span)
        return self._signer.sign(span)

    def _owned(self, span: Span | Mapping[str, Any]) -> Span:
        if not isinstance(span, Span):
            span = Span.model_validate(dict(span))
        if span.owner_id is None:
            span.owner_id = self._identity.user_id
        if span.tenant_id is None:
            span.tenant_id = self._identity.tenant_id
        return span
