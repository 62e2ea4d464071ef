"""Worker over pending ``request`` spans."""

from typing import Any, Awaitable, Callable

from ..context import ExecutionContext
from ..integrity import Signer
from ..models import Identity, Span, format_timestamp
from ..storage import IStorage
from .base import DEFAULT_BATCH_SIZE, PollingWorker

RequestHandler = Callable[[Span, ExecutionContext], Awaitable[Any]]


class RequestWorker(PollingWorker):
    """Acknowledges pending requests, or hands them to a domain handler."""

    entity_type = "request"

    def __init__(
        self,
        storage: IStorage,
        signer: Signer,
        identity: Identity,
        handler: RequestHandler | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        name: str = "request_worker",
    ):
        super().__init__(name, storage, signer, identity, batch_size=batch_size)
        self._handler = handler

    async def process(self, item: Span, ctx: ExecutionContext) -> Any:
        if self._handler is not None:
            return await self._handler(item, ctx)
        return {
            "request_id": item.id,
            "processed_at": format_timestamp(ctx.now()),
        }
