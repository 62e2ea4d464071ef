"""Seeder - publishes a manifest, kernel functions and demo requests."""

import asyncio
import random
import sys
from pathlib import Path
from typing import Any, Iterable, Protocol

from dotenv import load_dotenv

from ledger.bootstrap import entry_point_source
from ledger.config import LedgerSettings
from ledger.integrity import Signer, generate_signing_key_hex
from ledger.kernels import BUILTIN_KERNELS
from ledger.logging_config import get_logger, log_context, setup_logging
from ledger.models import Identity, Span
from ledger.storage import IStorage, LedgerStore

logger = get_logger(__name__)

SEED_ACTOR = "sim:seeder"

# Kernels that are safe to allow on a fresh database.
DEFAULT_ALLOWED = ("observer_bot", "policy_agent", "provider_exec")

DEMO_REQUESTS = [
    {"action": "summarize", "topic": "daily activity"},
    {"action": "check", "topic": "slow executions"},
    {"action": "status", "topic": "providers"},
]


class ISeeder(Protocol):
    """Populate a ledger so it can boot."""

    async def seed(self, include_requests: bool = False) -> dict:
        """Publish manifest, kernels and optional demo data."""
        ...


class Seeder:
    """Seeds a fresh database through the normal append path."""

    def __init__(self, storage: IStorage, actor: str = SEED_ACTOR):
        self._storage = storage
        self._actor = actor

    async def publish_manifest(
        self,
        allowed_boot_ids: Iterable[str],
        policy: dict[str, Any] | None = None,
        visibility: str = "private",
    ) -> Span:
        """Append a new manifest; the newest one wins."""
        allowed = sorted(set(allowed_boot_ids))
        span = await self._storage.insert(
            Span(
                entity_type="manifest",
                who=self._actor,
                did="published",
                this="manifest",
                status="active",
                metadata={"allowed_boot_ids": allowed, "policy": dict(policy or {})},
                visibility=visibility,
            )
        )
        logger.info(
            "Manifest published",
            extra=log_context(manifest_id=span.id, allowed=allowed),
        )
        return span

    async def publish_function(
        self,
        function_id: str,
        code: str,
        name: str | None = None,
        visibility: str = "private",
    ) -> Span:
        """Append a function span (signed when the store has a key)."""
        return await self._storage.insert(
            Span(
                id=function_id,
                entity_type="function",
                who=self._actor,
                did="defined",
                this=function_id,
                name=name or function_id,
                code=code,
                status="active",
                visibility=visibility,
            )
        )

    async def publish_kernels(self) -> list[Span]:
        """One function span per built-in kernel; the digest covers its source."""
        spans = []
        for function_id, entry in BUILTIN_KERNELS.items():
            spans.append(
                await self.publish_function(function_id, entry_point_source(entry))
            )
        return spans

    async def seed_requests(self, count: int = 3) -> list[Span]:
        """Pending ``request`` spans for the request worker."""
        spans = []
        for i in range(count):
            payload = dict(random.choice(DEMO_REQUESTS))
            spans.append(
                await self._storage.insert(
                    Span(
                        entity_type="request",
                        who=self._actor,
                        did="requested",
                        this=payload["action"],
                        status="pending",
                        input={**payload, "n": i},
                    )
                )
            )
        return spans

    async def seed(
        self,
        include_requests: bool = False,
        allowed_boot_ids: Iterable[str] = DEFAULT_ALLOWED,
        policy: dict[str, Any] | None = None,
    ) -> dict:
        """Publish kernels, then the manifest allowing them."""
        functions = await self.publish_kernels()
        manifest = await self.publish_manifest(allowed_boot_ids, policy)
        requests = await self.seed_requests() if include_requests else []

        summary = {
            "manifest_id": manifest.id,
            "functions": [span.id for span in functions],
            "requests": [span.id for span in requests],
        }
        logger.info("Seed complete", extra=log_context(**summary))
        return summary


async def _run(settings: LedgerSettings, include_requests: bool) -> dict:
    store = LedgerStore(
        settings.db_path,
        identity=Identity(settings.user_id, settings.tenant_id),
        signer=Signer.from_settings(settings),
    )
    await store.init()
    try:
        return await Seeder(store).seed(include_requests=include_requests)
    finally:
        await store.close()


def main():
    """Seed the configured database.

    ``python -m sim.seed keygen`` prints a new SIGNING_KEY_HEX instead.
    """
    load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")
    setup_logging(console_only=True)

    args = sys.argv[1:]
    if args and args[0] == "keygen":
        print(generate_signing_key_hex())
        return

    settings = LedgerSettings.from_env()
    if not settings.signing_enabled:
        logger.warning("SIGNING_KEY_HEX not set, functions will be unsigned")
    summary = asyncio.run(_run(settings, include_requests="--requests" in args))
    print(summary)


if __name__ == "__main__":
    main()
