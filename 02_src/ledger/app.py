"""Application bootstrap and lifecycle management."""

from collections.abc import Mapping
from dataclasses import replace
from datetime import datetime
from typing import Any, Protocol

from pydantic import ValidationError as PydanticValidationError

from .bootstrap import BootstrapLoader, PythonSourceExecutor, RegistryExecutor
from .config import LedgerSettings, resolve_db_path
from .errors import LedgerError, StoreError, ValidationError
from .integrity import Signer
from .kernels import BUILTIN_KERNELS
from .logging_config import get_logger, log_context
from .manifest import ManifestResolver
from .models import BootOutcome, Identity, Span, TimelinePage
from .storage import IStorage, LedgerStore, SpanQuery
from .workers import RequestWorker, WorkerLayer

logger = get_logger(__name__)

DEFAULT_TIMELINE_LIMIT = 100
MAX_TIMELINE_LIMIT = 1000


class IApplication(Protocol):
    """Bootstrap, ingest and timeline entry points."""

    async def start(self) -> None:
        """Initialize components in dependency order."""
        ...

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        ...

    async def boot(
        self, function_id: str | None = None, event: Mapping[str, Any] | None = None
    ) -> BootOutcome:
        """Bootstrap a function from the ledger."""
        ...

    async def ingest(self, payload: Mapping[str, Any]) -> Span:
        """Append a caller-supplied partial span."""
        ...


class Application:
    """Main application bootstrap."""

    def __init__(
        self,
        settings: LedgerSettings | None = None,
        db_path: str | None = None,
    ):
        settings = settings or LedgerSettings()
        if db_path is not None:
            settings = replace(settings, db_path=resolve_db_path(db_path))
        self._settings = settings

        # Components (will be initialized in start())
        self._signer: Signer | None = None
        self._storage: LedgerStore | None = None
        self._manifests: ManifestResolver | None = None
        self._executor: RegistryExecutor | None = None
        self._loader: BootstrapLoader | None = None
        self._worker_layer: WorkerLayer | None = None

    async def start(self) -> None:
        """Initialize components in dependency order."""
        logger.info("Starting application")
        identity = Identity(
            user_id=self._settings.user_id, tenant_id=self._settings.tenant_id
        )

        # 1. Signer (settings only)
        self._signer = Signer.from_settings(self._settings)
        if not self._signer.enabled:
            logger.info("No signing key configured, spans are stored unsigned")

        # 2. Storage (bound to the process identity)
        self._storage = LedgerStore(
            self._settings.db_path, identity=identity, signer=self._signer
        )
        await self._storage.init()
        logger.info("Storage initialized")

        # 3. Manifest + executors + loader
        self._manifests = ManifestResolver(self._storage)
        self._executor = RegistryExecutor(
            BUILTIN_KERNELS, fallback=PythonSourceExecutor()
        )
        self._loader = BootstrapLoader(
            storage=self._storage,
            signer=self._signer,
            identity=identity,
            manifests=self._manifests,
            executor=self._executor,
            timeout=self._settings.boot_timeout_seconds,
        )

        # 4. Workers
        self._worker_layer = WorkerLayer()
        self._worker_layer.register_worker(
            RequestWorker(
                self._storage,
                self._signer,
                identity,
                batch_size=self._settings.worker_batch_size,
            )
        )
        logger.info("All components initialized successfully")

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        if self._worker_layer:
            await self._worker_layer.stop()
        if self._storage:
            await self._storage.close()
            logger.info("Storage closed")

    async def boot(
        self, function_id: str | None = None, event: Mapping[str, Any] | None = None
    ) -> BootOutcome:
        """Bootstrap a function and report the outcome.

        Refusals and execution failures come back as a failed BootOutcome.
        A StoreError propagates: the attempt could not be audited.
        """
        event = dict(event or {})
        function_id = (
            function_id
            or event.get("boot_function_id")
            or self._settings.boot_function_id
        )
        if not function_id:
            return BootOutcome(
                success=False,
                function_id=None,
                error=ValidationError(
                    "No function id given", missing=["boot_function_id"]
                ).to_dict(),
            )

        try:
            result = await self.loader.boot(function_id, event)
        except StoreError:
            raise
        except LedgerError as e:
            attempt = self.loader.last_attempt
            boot_event = attempt.boot_event if attempt else None
            logger.info(
                "Boot of %s failed",
                function_id,
                extra=log_context(function_id=function_id, kind=e.kind),
            )
            return BootOutcome(
                success=False,
                function_id=function_id,
                error=e.to_dict(),
                boot_event_id=boot_event.id if boot_event else None,
            )

        return BootOutcome(
            success=True,
            function_id=function_id,
            result=result.result,
            boot_event_id=result.boot_event.id,
        )

    async def ingest(self, payload: Mapping[str, Any]) -> Span:
        """Validate a partial span and append it.

        Defaults (id, seq, at, owner, tenant, visibility) are filled by the
        store; nothing is persisted when validation fails.
        """
        try:
            span = Span.model_validate(dict(payload))
        except PydanticValidationError as e:
            fields = sorted({str(err["loc"][0]) for err in e.errors() if err["loc"]})
            raise ValidationError(
                f"Invalid span: {', '.join(fields) or 'payload'}",
                detail=fields,
            ) from e
        return await self.storage.insert(span)

    async def timeline(
        self,
        entity_type: str | None = None,
        owner_id: str | None = None,
        tenant_id: str | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int = DEFAULT_TIMELINE_LIMIT,
    ) -> TimelinePage:
        """Newest-first page of the spans this session may see."""
        limit = max(1, min(int(limit), MAX_TIMELINE_LIMIT))
        spans = await self.storage.query(
            SpanQuery(
                entity_type=entity_type,
                owner_id=owner_id,
                tenant_id=tenant_id,
                since=since,
                until=until,
                order="at_desc",
                limit=limit,
            )
        )
        return TimelinePage(spans=spans, limit=limit)

    @property
    def settings(self) -> LedgerSettings:
        return self._settings

    @property
    def storage(self) -> IStorage:
        """Get storage instance."""
        if not self._storage:
            raise RuntimeError("Application not started")
        return self._storage

    @property
    def signer(self) -> Signer:
        if not self._signer:
            raise RuntimeError("Application not started")
        return self._signer

    @property
    def loader(self) -> BootstrapLoader:
        """Get bootstrap loader instance."""
        if not self._loader:
            raise RuntimeError("Application not started")
        return self._loader

    @property
    def executor(self) -> RegistryExecutor:
        if not self._executor:
            raise RuntimeError("Application not started")
        return self._executor

    @property
    def worker_layer(self) -> WorkerLayer:
        """Get worker layer instance."""
        if not self._worker_layer:
            raise RuntimeError("Application not started")
        return self._worker_layer
