"""Polling worker: select pending spans, process each, append one result each."""

import time
from typing import Any, Protocol

from ..context import ExecutionContext
from ..errors import DuplicateSpan, LedgerError
from ..integrity import Signer
from ..logging_config import get_logger, log_context
from ..models import BatchReport, Identity, Span, to_jsonable
from ..storage import IStorage, SpanQuery

logger = get_logger(__name__)

DEFAULT_BATCH_SIZE = 10


class IWorker(Protocol):
    """A recurring task over the ledger."""

    @property
    def name(self) -> str:
        """Worker identifier."""
        ...

    async def run_once(self) -> BatchReport:
        """Run one polling pass."""
        ...


class PollingWorker:
    """Base class for workers over pending spans.

    Subclasses set ``entity_type`` (and optionally ``status``) and implement
    ``process``. Each selected item gets exactly one result revision: same
    id, ``seq + 1``, ``status`` complete or error. One item failing never
    stops the batch.

    Delivery is at-least-once. Two passes that select the same item before
    either result lands both run ``process``; the ledger keeps the first
    result for that revision and the second pass counts the item as
    skipped.
    """

    entity_type: str | None = None
    status: str = "pending"

    def __init__(
        self,
        name: str,
        storage: IStorage,
        signer: Signer,
        identity: Identity,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        self._name = name
        self._storage = storage
        self._signer = signer
        self._identity = identity
        self._batch_size = batch_size

    @property
    def name(self) -> str:
        return self._name

    @property
    def actor(self) -> str:
        return f"worker:{self._name}"

    async def select_batch(self) -> list[Span]:
        """Oldest pending items whose newest revision is still pending."""
        return await self._storage.query(
            SpanQuery(
                entity_type=self.entity_type,
                status=self.status,
                order="at_asc",
                limit=self._batch_size,
                latest_only=True,
            )
        )

    async def process(self, item: Span, ctx: ExecutionContext) -> Any:
        """Domain logic for one item; the return value becomes ``output``."""
        raise NotImplementedError

    async def run_once(self) -> BatchReport:
        """Run one polling pass.

        A StoreError while appending a result propagates; a dropped result
        would be an unaudited item.
        """
        report = BatchReport(worker=self._name)
        items = await self.select_batch()
        report.selected = len(items)

        for item in items:
            ctx = ExecutionContext(
                storage=self._storage,
                signer=self._signer,
                identity=self._identity,
                event={"item": item.to_record()},
            )
            started = time.monotonic()
            try:
                output = await self.process(item, ctx)
            except Exception as e:
                logger.warning(
                    "Item %s failed: %s",
                    item.id,
                    e,
                    exc_info=True,
                    extra=log_context(worker=self._name, span_id=item.id),
                )
                result = self._result_span(item, started, error=self._describe(e))
            else:
                result = self._result_span(item, started, output=output)

            try:
                recorded = await self._storage.insert(result)
            except DuplicateSpan:
                logger.warning(
                    "Item %s already has a result for seq %s, skipping",
                    item.id,
                    result.seq,
                    extra=log_context(worker=self._name, span_id=item.id),
                )
                report.skipped += 1
                continue

            if recorded.status == "error":
                report.failed += 1
            else:
                report.succeeded += 1
            report.result_ids.append(recorded.id)

        logger.info(
            "Worker %s processed %s items",
            self._name,
            report.processed,
            extra=log_context(
                worker=self._name,
                succeeded=report.succeeded,
                failed=report.failed,
                skipped=report.skipped,
            ),
        )
        return report

    def _result_span(
        self,
        item: Span,
        started: float,
        output: Any = None,
        error: dict | None = None,
    ) -> Span:
        return item.revision(
            who=self.actor,
            did="failed" if error else "processed",
            status="error" if error else "complete",
            output=None if error else to_jsonable(output),
            error=error,
            duration_ms=int((time.monotonic() - started) * 1000),
            related_to=[item.id],
        )

    @staticmethod
    def _describe(error: Exception) -> dict:
        if isinstance(error, LedgerError):
            return to_jsonable(error.to_dict())
        return {"kind": "ExecutionError", "message": f"{type(error).__name__}: {error}"}
