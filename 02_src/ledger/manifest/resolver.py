"""Manifest resolution from the ledger."""

from typing import Protocol

from ..integrity import verify_span
from ..logging_config import get_logger, log_context
from ..models import Manifest
from ..storage import IStorage, SpanQuery

logger = get_logger(__name__)

MANIFEST_KIND = "manifest"


class IManifestResolver(Protocol):
    """Source of the current operational policy."""

    async def latest(self) -> Manifest:
        """Most recent manifest, or an empty policy when none exists."""
        ...


class ManifestResolver:
    """Reads the newest ``manifest`` span on every call; nothing is cached."""

    def __init__(self, storage: IStorage):
        self._storage = storage

    async def latest(self) -> Manifest:
        """Most recent manifest, or an empty policy when none exists.

        The manifest span is verified before its allowlist is trusted.
        """
        spans = await self._storage.query(
            SpanQuery(entity_type=MANIFEST_KIND, order="at_desc", limit=1)
        )
        if not spans:
            logger.info("No manifest found, using empty policy")
            return Manifest.empty()

        span = spans[0]
        verify_span(span)
        manifest = Manifest.from_span(span)
        logger.debug(
            "Manifest resolved",
            extra=log_context(
                manifest_id=span.id,
                seq=span.seq,
                allowed=sorted(manifest.allowed_boot_ids),
            ),
        )
        return manifest
