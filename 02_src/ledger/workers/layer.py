"""WorkerLayer implementation."""

import asyncio
from typing import Protocol

from ..logging_config import get_logger
from ..models import BatchReport
from .base import IWorker

logger = get_logger(__name__)


class IWorkerLayer(Protocol):
    """Managing worker lifecycle."""

    async def start(self, interval: float) -> None:
        """Start a polling loop per registered worker."""
        ...

    async def stop(self) -> None:
        """Stop all loops."""
        ...

    def register_worker(self, worker: IWorker) -> None:
        """Register a worker."""
        ...

    async def run_once(self) -> dict[str, BatchReport]:
        """One pass over every worker."""
        ...


class WorkerLayer:
    """Runs registered workers once or on a polling interval."""

    def __init__(self):
        self._workers: dict[str, IWorker] = {}
        self._tasks: dict[str, asyncio.Task] = {}
        self._running = False

    @property
    def workers(self) -> dict[str, IWorker]:
        return dict(self._workers)

    def register_worker(self, worker: IWorker) -> None:
        """Register a worker."""
        self._workers[worker.name] = worker

    async def run_once(self) -> dict[str, BatchReport]:
        """One pass over every worker, in registration order."""
        return {name: await worker.run_once() for name, worker in self._workers.items()}

    async def start(self, interval: float) -> None:
        """Start a polling loop per registered worker."""
        if self._running:
            return
        self._running = True
        for name, worker in self._workers.items():
            self._tasks[name] = asyncio.create_task(self._poll(worker, interval))
        logger.info("WorkerLayer started with %s workers", len(self._tasks))

    async def stop(self) -> None:
        """Stop all loops."""
        self._running = False
        for task in self._tasks.values():
            task.cancel()
        await asyncio.gather(*self._tasks.values(), return_exceptions=True)
        self._tasks.clear()

    async def _poll(self, worker: IWorker, interval: float) -> None:
        """Background loop for one worker."""
        while self._running:
            try:
                await worker.run_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Worker {worker.name} pass failed: {e}", exc_info=True)

            try:
                await asyncio.sleep(interval)
            except asyncio.CancelledError:
                break
