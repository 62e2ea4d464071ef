"""Trust-gated bootstrap: allowlist, fetch, verify, execute, record."""

import asyncio
import time
import traceback
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..context import ExecutionContext
from ..errors import (
    ExecutionError,
    ExecutionTimeout,
    IntegrityError,
    LedgerError,
    NotAuthorized,
    NotFound,
    StoreError,
)
from ..integrity import Signer, verify_span
from ..logging_config import get_logger, log_context
from ..manifest import IManifestResolver
from ..models import Identity, Manifest, Span, to_jsonable
from ..storage import IStorage, SpanQuery
from .executors import ICodeExecutor

logger = get_logger(__name__)

FUNCTION_KIND = "function"
BOOT_EVENT_KIND = "boot_event"
BOOT_ACTOR = "edge:stage0"


class BootState(str, Enum):
    """Bootstrap state machine."""

    RESOLVING_MANIFEST = "resolving_manifest"
    CHECKING_ALLOWLIST = "checking_allowlist"
    FETCHING_FUNCTION = "fetching_function"
    VERIFYING = "verifying"
    EXECUTING = "executing"
    RECORDING = "recording"
    DONE = "done"
    FAILED = "failed"


@dataclass
class BootAttempt:
    """State trail of one bootstrap attempt."""

    function_id: str
    state: BootState = BootState.RESOLVING_MANIFEST
    transitions: list[BootState] = field(
        default_factory=lambda: [BootState.RESOLVING_MANIFEST]
    )
    boot_event: Span | None = None

    def advance(self, state: BootState) -> None:
        self.state = state
        self.transitions.append(state)
        logger.debug(
            "Boot state %s",
            state.value,
            extra=log_context(function_id=self.function_id),
        )

    def fail(self) -> None:
        self.advance(BootState.FAILED)

    def reached(self, state: BootState) -> bool:
        return state in self.transitions


@dataclass
class BootResult:
    """Successful bootstrap."""

    function_id: str
    result: Any
    boot_event: Span
    attempt: BootAttempt


class BootstrapLoader:
    """Runs a function from the ledger only after it is allowed and verified."""

    def __init__(
        self,
        storage: IStorage,
        signer: Signer,
        identity: Identity,
        manifests: IManifestResolver,
        executor: ICodeExecutor,
        timeout: float | None = None,
    ):
        self._storage = storage
        self._signer = signer
        self._identity = identity
        self._manifests = manifests
        self._executor = executor
        self._timeout = timeout
        self.last_attempt: BootAttempt | None = None

    async def boot(
        self,
        function_id: str,
        event: Mapping[str, Any] | None = None,
        timeout: float | None = None,
    ) -> BootResult:
        """Boot ``function_id`` with ``event`` as the invocation payload.

        Raises NotAuthorized, NotFound or IntegrityError before any code runs.
        Execution failures are recorded in a boot event and then raised as
        ExecutionError / ExecutionTimeout. A StoreError while recording
        propagates unchanged.
        """
        attempt = BootAttempt(function_id)
        self.last_attempt = attempt
        event = dict(event or {})

        try:
            manifest = await self._manifests.latest()

            attempt.advance(BootState.CHECKING_ALLOWLIST)
            if not manifest.is_allowed(function_id):
                raise NotAuthorized(
                    f"Function {function_id} not in manifest allowlist"
                )

            attempt.advance(BootState.FETCHING_FUNCTION)
            function = await self._fetch_function(function_id)

            attempt.advance(BootState.VERIFYING)
            self._verify(function, manifest)
        except LedgerError as e:
            attempt.fail()
            logger.warning(
                "Boot refused: %s",
                e.message,
                extra=log_context(function_id=function_id, kind=e.kind),
            )
            raise

        attempt.advance(BootState.EXECUTING)
        logger.info(
            "Executing function %s",
            function.name or function_id,
            extra=log_context(function_id=function_id, seq=function.seq),
        )
        result, error, duration_ms = await self._execute(
            function, event, self._timeout if timeout is None else timeout
        )

        attempt.advance(BootState.RECORDING)
        try:
            boot_event = await self._record(function, event, result, error, duration_ms)
            attempt.boot_event = boot_event
        except StoreError:
            attempt.fail()
            logger.error(
                "Boot event could not be recorded",
                exc_info=True,
                extra=log_context(function_id=function_id),
            )
            raise

        if error is not None:
            attempt.fail()
            logger.error(
                "Function %s failed: %s",
                function_id,
                error.message,
                extra=log_context(function_id=function_id, kind=error.kind),
            )
            raise error

        attempt.advance(BootState.DONE)
        logger.info(
            "Execution complete",
            extra=log_context(function_id=function_id, duration_ms=duration_ms),
        )
        return BootResult(
            function_id=function_id,
            result=result,
            boot_event=boot_event,
            attempt=attempt,
        )

    async def _fetch_function(self, function_id: str) -> Span:
        spans = await self._storage.query(
            SpanQuery(
                id=function_id,
                entity_type=FUNCTION_KIND,
                order="seq_desc",
                limit=1,
            )
        )
        if not spans:
            raise NotFound(f"Function {function_id} not found")
        return spans[0]

    @staticmethod
    def _verify(function: Span, manifest: Manifest) -> None:
        verify_span(function)

        if manifest.require_signature and not function.is_signed:
            raise IntegrityError(f"Function {function.id} is not signed")

        trusted = manifest.trusted_public_keys
        if trusted and (function.public_key or "").lower() not in trusted:
            raise IntegrityError(
                f"Function {function.id} is signed by an untrusted key"
            )

    async def _execute(
        self, function: Span, event: dict, timeout: float | None
    ) -> tuple[Any, ExecutionError | None, int]:
        ctx = ExecutionContext(
            storage=self._storage,
            signer=self._signer,
            identity=self._identity,
            event=event,
        )
        result: Any = None
        error: ExecutionError | None = None
        started = time.monotonic()

        try:
            result = await asyncio.wait_for(
                self._executor.execute(function, ctx), timeout
            )
            if isinstance(result, Mapping) and result.get("success") is False:
                error = ExecutionError(
                    str(result.get("error") or f"Function {function.id} reported failure"),
                    detail=to_jsonable(result),
                )
        except asyncio.TimeoutError:
            error = ExecutionTimeout(
                f"Function {function.id} exceeded {timeout}s",
                detail={"timeout_seconds": timeout},
            )
        except ExecutionError as e:
            error = e
        except Exception as e:
            error = ExecutionError(
                f"{type(e).__name__}: {e}", detail=traceback.format_exc()
            )

        duration_ms = int((time.monotonic() - started) * 1000)
        return result, error, duration_ms

    async def _record(
        self,
        function: Span,
        event: dict,
        result: Any,
        error: ExecutionError | None,
        duration_ms: int,
    ) -> Span:
        boot_event = Span(
            entity_type=BOOT_EVENT_KIND,
            who=BOOT_ACTOR,
            did="booted" if error is None else "boot_failed",
            this=function.id,
            status="complete" if error is None else "error",
            input={
                "boot_id": function.id,
                "function_seq": function.seq,
                "function_hash": function.curr_hash,
                "event": to_jsonable(event),
                "env": {
                    "user": self._identity.user_id,
                    "tenant": self._identity.tenant_id,
                },
            },
            output=to_jsonable(result) if error is None else None,
            error=to_jsonable(error.to_dict()) if error is not None else None,
            duration_ms=duration_ms,
            owner_id=function.owner_id,
            tenant_id=function.tenant_id,
            visibility=function.visibility or "private",
            related_to=[function.id],
        )
        return await self._storage.insert(boot_event)
