"""Tests for the background recalculation worker."""

from __future__ import annotations

import threading

import pytest

from gridcalc import (
    Cell,
    RecalcRequest,
    RecalcResponse,
    RecalcWorker,
    RecalcWorkerError,
    Settings,
    handle_request,
)
from gridcalc import _worker


def _cells() -> dict[str, Cell]:
    return {"A1": Cell("10"), "B1": Cell("=A1*2"), "C1": Cell("=B1+A1")}


class TestModels:
    def test_request_defaults(self) -> None:
        request = RecalcRequest(type="all", cells=_cells())
        assert request.cells_to_evaluate == []

    def test_request_from_plain_dicts(self) -> None:
        request = RecalcRequest(type="batch", cells={"A1": {"raw_value": "=1+1"}}, cells_to_evaluate=["A1"])
        assert isinstance(request.cells["A1"], Cell)
        assert request.cells["A1"].is_formula

    def test_unknown_request_type_rejected(self) -> None:
        with pytest.raises(ValueError):
            RecalcRequest(type="partial", cells={})


class TestHandleRequest:
    def test_all(self) -> None:
        response = handle_request(RecalcRequest(type="all", cells=_cells()))
        assert response.type == "result"
        assert response.cells["C1"].calculated_value == 30
        assert response.message is None

    def test_batch(self) -> None:
        request = RecalcRequest(type="batch", cells=_cells(), cells_to_evaluate=["B1"])
        response = handle_request(request)
        assert response.cells["B1"].calculated_value == 20
        assert response.cells["C1"].calculated_value is None

    def test_request_cells_untouched(self) -> None:
        request = RecalcRequest(type="all", cells=_cells())
        handle_request(request)
        assert request.cells["B1"].calculated_value is None

    def test_failure_becomes_error_response(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def boom(cells: dict[str, Cell]) -> dict[str, Cell]:
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(_worker, "recalculate_all", boom)
        response = handle_request(RecalcRequest(type="all", cells=_cells()))
        assert response == RecalcResponse(type="error", message="disk on fire")


class TestRecalcWorker:
    def test_recalculate_all(self) -> None:
        with RecalcWorker() as worker:
            result = worker.recalculate_all(_cells())
        assert result["C1"].calculated_value == 30

    def test_recalculate_subset(self) -> None:
        with RecalcWorker() as worker:
            result = worker.recalculate_subset(["C1"], _cells())
        assert result["C1"].calculated_value == 30

    def test_error_response_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def boom(cells: dict[str, Cell]) -> dict[str, Cell]:
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(_worker, "recalculate_all", boom)
        with RecalcWorker() as worker:
            with pytest.raises(RecalcWorkerError, match="disk on fire"):
                worker.recalculate_all(_cells())

    def test_newer_request_supersedes_pending(self, monkeypatch: pytest.MonkeyPatch) -> None:
        started = threading.Event()
        release = threading.Event()
        real = _worker.recalculate_all

        def slow(cells: dict[str, Cell]) -> dict[str, Cell]:
            started.set()
            release.wait(timeout=5)
            return real(cells)

        monkeypatch.setattr(_worker, "recalculate_all", slow)
        with RecalcWorker(Settings(worker_executor="thread", worker_max_workers=1)) as worker:
            running = worker.submit(RecalcRequest(type="all", cells=_cells()))
            assert started.wait(timeout=5)
            stale = worker.submit(RecalcRequest(type="all", cells=_cells()))
            latest = worker.submit(RecalcRequest(type="all", cells=_cells()))
            release.set()
            assert stale.cancelled()
            assert worker.result(running, timeout=5)["B1"].calculated_value == 20
            assert worker.result(latest, timeout=5)["C1"].calculated_value == 30

    def test_unknown_executor(self) -> None:
        with pytest.raises(ValueError, match="Unknown worker executor"):
            RecalcWorker(Settings(worker_executor="fiber"))
