"""Tests for ExecutionContext."""

from datetime import datetime, timezone

import pytest

from ledger.context import ExecutionContext
from ledger.integrity import Signer, verify_span
from ledger.models import Identity, Span
from ledger.storage import SpanQuery


@pytest.fixture
def fixed_now():
    return datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def ctx(signed_storage, signer, identity, fixed_now):
    return ExecutionContext(
        storage=signed_storage,
        signer=signer,
        identity=identity,
        event={"payload": {"n": 1}},
        clock=lambda: fixed_now,
    )


class TestExecutionContext:
    """Tests for the capability surface."""

    async def test_insert_mapping_defaults_to_identity(self, ctx, identity):
        span = await ctx.insert_span(
            {"entity_type": "note", "who": "fn", "this": "x", "input": {"a": 1}}
        )
        assert span.owner_id == identity.user_id
        assert span.tenant_id == identity.tenant_id
        assert span.is_signed

    async def test_query_by_keywords(self, ctx):
        await ctx.insert_span(Span(entity_type="note", who="fn", this="x"))
        await ctx.insert_span(Span(entity_type="other", who="fn", this="y"))

        spans = await ctx.query(entity_type="note")
        assert [s.this for s in spans] == ["x"]
        assert await ctx.query(SpanQuery(entity_type="other"))

    async def test_fetch(self, ctx):
        await ctx.insert_span(Span(entity_type="note", who="fn", this="x"))
        rows = await ctx.fetch("SELECT COUNT(*) AS n FROM visible_timeline")
        assert rows == [{"n": 1}]

    def test_event_is_a_copy(self, ctx):
        event = ctx.event
        event["payload"]["n"] = 99
        assert ctx.event == {"payload": {"n": 1}}

    def test_clock(self, ctx, fixed_now):
        assert ctx.now() == fixed_now

    def test_sign_span(self, ctx):
        span = ctx.sign_span(Span(entity_type="note", who="fn", this="x"))
        assert verify_span(span) == span.curr_hash

    def test_sign_span_fills_insert_defaults(self, ctx, identity):
        span = ctx.sign_span({"entity_type": "note", "who": "fn", "this": "x"})
        assert span.id
        assert span.seq == 0
        assert span.at is not None
        assert span.owner_id == identity.user_id
        assert span.visibility == "private"

    async def test_signed_span_inserted_and_read_back_verifies(self, ctx):
        signed = ctx.sign_span(Span(entity_type="note", who="fn", this="x"))
        stored = await ctx.insert_span(signed)

        [loaded] = await ctx.query(id=stored.id)
        assert loaded.curr_hash == signed.curr_hash
        assert verify_span(loaded) == signed.curr_hash

    def test_no_settings_exposed(self, ctx):
        public = {name for name in dir(ctx) if not name.startswith("_")}
        assert public == {
            "crypto",
            "event",
            "fetch",
            "identity",
            "insert_span",
            "now",
            "query",
            "sign_span",
        }


class TestCryptoToolkit:
    def test_hash_str_and_bytes(self, ctx):
        assert ctx.crypto.hash("abc") == ctx.crypto.hash(b"abc")

    def test_sign_and_verify(self, ctx, signer):
        signature = ctx.crypto.sign(b"message")
        assert ctx.crypto.verify(signature, b"message", ctx.crypto.public_key)
        assert not ctx.crypto.verify(signature, b"other", ctx.crypto.public_key)

    def test_hex_roundtrip_and_random(self, ctx):
        data = ctx.crypto.random_bytes(8)
        assert len(data) == 8
        assert ctx.crypto.unhex(ctx.crypto.hex(data)) == data
        assert ctx.crypto.random_id() != ctx.crypto.random_id()

    def test_sign_without_key_raises(self, storage):
        ctx = ExecutionContext(
            storage=storage, signer=Signer(), identity=Identity(user_id="u")
        )
        assert ctx.crypto.public_key is None
        with pytest.raises(RuntimeError):
            ctx.crypto.sign(b"message")
