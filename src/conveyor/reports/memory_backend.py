"""Dict-backed report store for local runs and unit tests."""

from __future__ import annotations

import threading

from conveyor.models.results import RunResult


class MemoryReportStore:
    """IReportStore keeping results in process memory."""

    def __init__(self) -> None:
        self._results: dict[str, str] = {}
        self._lock = threading.Lock()

    def save(self, result: RunResult) -> None:
        with self._lock:
            self._results[result.run_id] = result.model_dump_json()

    def get(self, run_id: str) -> RunResult | None:
        with self._lock:
            raw = self._results.get(run_id)
        return RunResult.model_validate_json(raw) if raw is not None else None

    def run_ids(self) -> list[str]:
        with self._lock:
            return list(self._results)
