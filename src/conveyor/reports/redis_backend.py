"""Redis report store implementing IReportStore."""

from __future__ import annotations

import redis

from conveyor.core.exceptions import ReportStoreError
from conveyor.models.results import RunResult


class RedisReportStore:
    """Production IReportStore: one JSON document per run, expiring after ``ttl``."""

    KEY_PREFIX = "conveyor:run:"

    def __init__(self, host: str = "localhost", port: int = 6379, db: int = 0,
                 ttl: int = 7 * 24 * 3600) -> None:
        self._host = host
        self._port = port
        self._db = db
        self._ttl = ttl
        self._client = redis.Redis(
            host=host, port=port, db=db, decode_responses=True,
        )

    def _key(self, run_id: str) -> str:
        return f"{self.KEY_PREFIX}{run_id}"

    def save(self, result: RunResult) -> None:
        try:
            self._client.setex(self._key(result.run_id), self._ttl, result.model_dump_json())
        except Exception as exc:
            raise ReportStoreError(f"Redis SETEX failed for run={result.run_id!r}: {exc}") from exc

    def get(self, run_id: str) -> RunResult | None:
        try:
            raw = self._client.get(self._key(run_id))
        except Exception as exc:
            raise ReportStoreError(f"Redis GET failed for run={run_id!r}: {exc}") from exc
        return RunResult.model_validate_json(raw) if raw is not None else None
