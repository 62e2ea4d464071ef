"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest
import pytest_asyncio

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from ledger.integrity import Signer, generate_signing_key_hex  # noqa: E402
from ledger.models import Identity, Span  # noqa: E402


@pytest.fixture
def identity():
    """Session identity used by most stores."""
    return Identity(user_id="user:alice", tenant_id="tenant:acme")


@pytest.fixture
def signing_key_hex():
    return generate_signing_key_hex()


@pytest.fixture
def signer(signing_key_hex):
    return Signer(signing_key_hex)


@pytest_asyncio.fixture
async def storage(identity):
    """Create in-memory storage without a signing key."""
    from ledger.storage import LedgerStore

    st = LedgerStore(":memory:", identity=identity)
    await st.init()
    yield st
    await st.close()


@pytest_asyncio.fixture
async def signed_storage(identity, signer):
    """Create in-memory storage that signs every appended span."""
    from ledger.storage import LedgerStore

    st = LedgerStore(":memory:", identity=identity, signer=signer)
    await st.init()
    yield st
    await st.close()


@pytest.fixture
def make_span():
    """Factory for spans carrying the mandatory fields."""

    def _make(**fields) -> Span:
        data = {
            "entity_type": "note",
            "who": "user:alice",
            "did": "wrote",
            "this": "something",
        }
        data.update(fields)
        return Span(**data)

    return _make


async def publish_function(store, function_id, code, **fields):
    """Append a function span the loader can fetch."""
    return await store.insert(
        Span(
            id=function_id,
            entity_type="function",
            who="user:alice",
            did="defined",
            this=function_id,
            code=code,
            **fields,
        )
    )


async def publish_manifest(store, allowed, **policy):
    """Append a manifest span allowing ``allowed``."""
    return await store.insert(
        Span(
            entity_type="manifest",
            who="user:alice",
            did="published",
            this="manifest",
            metadata={"allowed_boot_ids": list(allowed), "policy": policy},
        )
    )


async def write_row(store, span):
    """Store ``span`` byte for byte, the way a row tampered at rest looks."""
    from ledger.storage.storage import SPAN_COLUMNS

    columns = ", ".join(f'"{name}"' for name in SPAN_COLUMNS)
    placeholders = ", ".join("?" * len(SPAN_COLUMNS))
    await store._conn.execute(
        f"INSERT INTO universal_registry ({columns}) VALUES ({placeholders})",
        store._to_row(span),
    )
    await store._conn.commit()
