"""SQLite ledger store."""

import json
import sqlite3
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol, Sequence

import aiosqlite

from ..config import DEFAULT_USER_ID, resolve_db_path
from ..errors import DuplicateSpan, IntegrityError, StoreError, ValidationError
from ..integrity import Signer, verify_span
from ..logging_config import get_logger, log_context
from ..models import JSON_FIELDS, Identity, Span, format_timestamp, utc_now
from .query import SpanQuery

logger = get_logger(__name__)

SPAN_COLUMNS = tuple(Span.model_fields)

_READ_PREFIXES = ("select", "with")


class IStorage(Protocol):
    """Append-only span persistence (SQLite)."""

    async def init(self) -> None:
        """Open the database, create tables and bind the session."""
        ...

    async def close(self) -> None:
        """Close database connection."""
        ...

    async def bind_session(self, identity: Identity) -> None:
        """Bind the connection to an actor/tenant for visibility scoping."""
        ...

    def apply_defaults(self, span: Span) -> None:
        """Fill id, seq, at and the session owner/tenant/visibility in place."""
        ...

    async def insert(self, span: Span) -> Span:
        """Append exactly one row and return it as persisted."""
        ...

    async def query(self, query: SpanQuery) -> list[Span]:
        """Visible spans matching the predicate, in the requested order."""
        ...

    async def fetch(self, sql: str, params: Sequence[Any] = ()) -> list[dict]:
        """Read-only parameterised SELECT against the visible timeline."""
        ...


class LedgerStore:
    """SQLite storage implementation of the span ledger."""

    def __init__(
        self,
        db_path: str | Path | None = None,
        identity: Identity | None = None,
        signer: Signer | None = None,
    ):
        if db_path is None:
            self._db_path = resolve_db_path()
        else:
            self._db_path = resolve_db_path(db_path)
        self._identity = identity or Identity(user_id=DEFAULT_USER_ID)
        self._signer = signer or Signer()
        self._conn: aiosqlite.Connection | None = None
        self._bound = False

    @property
    def identity(self) -> Identity:
        return self._identity

    @property
    def signer(self) -> Signer:
        return self._signer

    async def init(self) -> None:
        """Open the database, create tables and bind the session."""
        self._conn = await aiosqlite.connect(self._db_path)
        self._conn.row_factory = sqlite3.Row

        base = Path(__file__).parent
        for script in ("schema.sql", "session.sql"):
            with open(base / script, "r", encoding="utf-8") as f:
                await self._conn.executescript(f.read())
        await self._conn.commit()

        await self.bind_session(self._identity)

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None
            self._bound = False

    async def bind_session(self, identity: Identity) -> None:
        """Bind the connection to an actor/tenant for visibility scoping."""
        if not self._conn:
            raise RuntimeError("Storage not initialized")

        await self._conn.execute(
            """
            INSERT OR REPLACE INTO session_context (singleton, user_id, tenant_id)
            VALUES (1, ?, ?)
            """,
            (identity.user_id, identity.tenant_id),
        )
        await self._conn.commit()
        self._identity = identity
        self._bound = True

    async def insert(self, span: Span) -> Span:
        """Append exactly one row and return it as persisted.

        Fills id/seq/at and the session's owner/tenant/visibility defaults,
        then signs when a key is configured and the span is not signed yet.
        A span that arrives with a digest or signature must still verify
        after the defaults are filled; otherwise IntegrityError, nothing
        written.
        """
        conn = self._session()

        missing = span.missing_fields()
        if missing:
            raise ValidationError(
                f"Missing required fields: {', '.join(missing)}", missing=missing
            )

        self.apply_defaults(span)
        if span.signature:
            self._check_presigned(span)
        elif self._signer.enabled:
            self._signer.sign(span)
        elif span.curr_hash:
            self._check_presigned(span)

        columns = ", ".join(f'"{name}"' for name in SPAN_COLUMNS)
        placeholders = ", ".join("?" * len(SPAN_COLUMNS))

        try:
            cursor = await conn.execute(
                f"""
                INSERT INTO universal_registry ({columns})
                VALUES ({placeholders})
                RETURNING *
                """,
                self._to_row(span),
            )
            row = await cursor.fetchone()
            await cursor.close()
            await conn.commit()
        except sqlite3.IntegrityError as e:
            await conn.rollback()
            if "UNIQUE" in str(e):
                raise DuplicateSpan(span.id, span.seq) from e
            raise StoreError(f"Insert rejected: {e}") from e
        except sqlite3.Error as e:
            await conn.rollback()
            raise StoreError(f"Insert failed: {e}") from e

        logger.debug(
            "Span appended",
            extra=log_context(
                span_id=span.id, seq=span.seq, entity_type=span.entity_type
            ),
        )
        return self._from_row(row)

    async def query(self, query: SpanQuery) -> list[Span]:
        """Visible spans matching the predicate, in the requested order."""
        sql, params = query.compile()
        rows = await self._read(sql, params)
        return [self._from_row(row) for row in rows]

    async def fetch(self, sql: str, params: Sequence[Any] = ()) -> list[dict]:
        """Read-only parameterised SELECT against the visible timeline."""
        if not sql.lstrip().lower().startswith(_READ_PREFIXES):
            raise ValueError("Only SELECT statements may be fetched")
        rows = await self._read(sql, list(params))
        return [dict(row) for row in rows]

    async def _read(self, sql: str, params: list) -> list:
        conn = self._session()
        try:
            cursor = await conn.execute(sql, params)
            rows = await cursor.fetchall()
            await cursor.close()
        except sqlite3.Error as e:
            raise StoreError(f"Query failed: {e}") from e
        return list(rows)

    @staticmethod
    def _check_presigned(span: Span) -> None:
        # Defaults are content; a digest taken before they were filled no
        # longer matches.
        try:
            verify_span(span)
        except IntegrityError as e:
            raise IntegrityError(
                f"Span {span.id} was hashed over different content",
                detail=e.detail,
            ) from e

    def _session(self) -> aiosqlite.Connection:
        if not self._conn:
            raise RuntimeError("Storage not initialized")
        if not self._bound:
            raise RuntimeError("Storage session not bound to an identity")
        return self._conn

    def apply_defaults(self, span: Span) -> None:
        """Fill id, seq, at and the session owner/tenant/visibility in place."""
        if not span.id:
            span.id = str(uuid.uuid4())
        if span.seq is None:
            span.seq = 0
        if span.at is None:
            span.at = utc_now()
        if span.owner_id is None:
            span.owner_id = self._identity.user_id
        if span.tenant_id is None:
            span.tenant_id = self._identity.tenant_id
        if span.visibility is None:
            span.visibility = "private"

    @staticmethod
    def _to_row(span: Span) -> tuple:
        values = []
        for name in SPAN_COLUMNS:
            value = getattr(span, name)
            if value is None:
                values.append(None)
            elif name in JSON_FIELDS:
                values.append(json.dumps(value))
            elif name == "at":
                values.append(format_timestamp(value))
            else:
                values.append(value)
        return tuple(values)

    @staticmethod
    def _from_row(row) -> Span:
        data = dict(row)
        data.pop("is_deleted", None)
        for name in JSON_FIELDS:
            if data.get(name) is not None:
                data[name] = json.loads(data[name])
        if data.get("at"):
            data["at"] = datetime.fromisoformat(data["at"])
        return Span.model_validate(data)
