"""Tests for ManifestResolver."""

from datetime import datetime, timezone

import pytest

from conftest import publish_manifest, write_row
from ledger.errors import IntegrityError
from ledger.manifest import ManifestResolver
from ledger.models import Span


class TestManifestResolver:
    """Tests for ManifestResolver.latest()."""

    async def test_empty_when_no_manifest(self, storage):
        manifest = await ManifestResolver(storage).latest()
        assert manifest.allowed_boot_ids == frozenset()
        assert manifest.span is None

    async def test_reads_allowlist_and_policy(self, storage):
        await publish_manifest(storage, ["fn-a"], slow_ms=100)
        manifest = await ManifestResolver(storage).latest()

        assert manifest.is_allowed("fn-a")
        assert manifest.slow_ms == 100

    async def test_newest_manifest_wins_without_caching(self, storage):
        resolver = ManifestResolver(storage)
        await publish_manifest(storage, ["fn-a"])
        assert (await resolver.latest()).is_allowed("fn-a")

        await publish_manifest(storage, ["fn-b"])
        manifest = await resolver.latest()
        assert manifest.is_allowed("fn-b")
        assert not manifest.is_allowed("fn-a")

    async def test_tampered_manifest_rejected(self, storage, signer):
        span = Span(
            id="manifest-1",
            seq=0,
            at=datetime(2024, 1, 1, tzinfo=timezone.utc),
            owner_id="user:alice",
            tenant_id="tenant:acme",
            visibility="private",
            entity_type="manifest",
            who="user:alice",
            this="manifest",
            metadata={"allowed_boot_ids": ["fn-a"]},
        )
        signer.sign(span)
        # Widen the allowlist after signing
        span.metadata = {"allowed_boot_ids": ["fn-a", "fn-evil"]}
        await write_row(storage, span)

        with pytest.raises(IntegrityError):
            await ManifestResolver(storage).latest()

    async def test_signed_manifest_accepted(self, signed_storage):
        await publish_manifest(signed_storage, ["fn-a"])
        manifest = await ManifestResolver(signed_storage).latest()

        assert manifest.span.is_signed
        assert manifest.is_allowed("fn-a")
