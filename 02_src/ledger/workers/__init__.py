"""Workers module."""

from .base import DEFAULT_BATCH_SIZE, IWorker, PollingWorker
from .layer import IWorkerLayer, WorkerLayer
from .request_worker import RequestHandler, RequestWorker

__all__ = [
    "IWorker",
    "PollingWorker",
    "DEFAULT_BATCH_SIZE",
    "IWorkerLayer",
    "WorkerLayer",
    "RequestHandler",
    "RequestWorker",
]
