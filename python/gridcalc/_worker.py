"""Background recalculation: copied cell maps in, updated cell maps out.

Nothing mutable is shared with the worker. A request carries its own copy of
the cells and the response carries a fresh map, which the caller swaps in for
its store.
"""

from __future__ import annotations

import concurrent.futures
import logging
import threading
from typing import Literal, Optional

from pydantic import BaseModel, Field

from gridcalc._cell import Cell
from gridcalc.calc._engine import recalculate_all, recalculate_subset
from gridcalc.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class RecalcRequest(BaseModel):
    """Request to recalculate a cell map."""

    type: Literal["batch", "all"]
    cells: dict[str, Cell]
    cells_to_evaluate: list[str] = Field(default_factory=list)  # only used by "batch"


class RecalcResponse(BaseModel):
    """Worker reply: the updated cells, or an error message."""

    type: Literal["result", "error"]
    cells: dict[str, Cell] = Field(default_factory=dict)
    message: Optional[str] = None


class RecalcWorkerError(RuntimeError):
    """Raised by :meth:`RecalcWorker.result` for an ``error`` response."""


def handle_request(request: RecalcRequest) -> RecalcResponse:
    """Run one request to completion. Never raises."""
    try:
        if request.type == "all":
            cells = recalculate_all(request.cells)
        else:
            cells = recalculate_subset(request.cells_to_evaluate, request.cells)
    except Exception as exc:
        logger.warning("Recalculation failed: %s", exc)
        return RecalcResponse(type="error", message=str(exc))
    return RecalcResponse(type="result", cells=cells)


class RecalcWorker:
    """Runs recalculation requests on a ``concurrent.futures`` executor.

    Each submission supersedes the ones before it: older requests that have
    not started yet are cancelled. A request already running completes, but
    its response is meant to be discarded in favour of the newest one.

    Usage::

        with RecalcWorker() as worker:
            future = worker.submit(RecalcRequest(type="all", cells=cells))
            cells = worker.result(future)
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings if settings is not None else default_settings
        if self._settings.worker_executor == "process":
            self._executor: concurrent.futures.Executor = concurrent.futures.ProcessPoolExecutor(
                max_workers=self._settings.worker_max_workers,
            )
        elif self._settings.worker_executor == "thread":
            self._executor = concurrent.futures.ThreadPoolExecutor(
                max_workers=self._settings.worker_max_workers,
                thread_name_prefix="gridcalc-recalc",
            )
        else:
            raise ValueError(f"Unknown worker executor: {self._settings.worker_executor!r}")
        self._lock = threading.Lock()
        self._pending: list[concurrent.futures.Future] = []

    def submit(self, request: RecalcRequest) -> concurrent.futures.Future:
        """Queue *request*, cancelling any older request that has not started."""
        with self._lock:
            for future in self._pending:
                if future.cancel():
                    logger.debug("Superseded pending recalculation")
            future = self._executor.submit(handle_request, request)
            self._pending = [f for f in self._pending if not f.done()] + [future]
        return future

    def result(self, future: concurrent.futures.Future, timeout: float | None = None) -> dict[str, Cell]:
        """Wait for *future* and return its cells; error responses raise."""
        response: RecalcResponse = future.result(timeout=timeout)
        if response.type == "error":
            raise RecalcWorkerError(response.message or "Recalculation failed")
        return response.cells

    def recalculate_all(self, cells: dict[str, Cell]) -> dict[str, Cell]:
        """Submit a full recalculation and wait for it."""
        return self.result(self.submit(RecalcRequest(type="all", cells=cells)))

    def recalculate_subset(self, cell_ids: list[str], cells: dict[str, Cell]) -> dict[str, Cell]:
        """Submit a batch recalculation and wait for it."""
        return self.result(self.submit(
            RecalcRequest(type="batch", cells=cells, cells_to_evaluate=list(cell_ids)),
        ))

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait, cancel_futures=True)

    def __enter__(self) -> RecalcWorker:
        return self

    def __exit__(self, *exc: object) -> None:
        self.shutdown()
