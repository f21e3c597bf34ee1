"""Unit tests for report stores: memory and Redis (via fakeredis)."""

from __future__ import annotations

from unittest.mock import patch

import fakeredis
import pytest

from conveyor.core.config import AppSettings, ReportConfig
from conveyor.core.exceptions import ReportStoreError
from conveyor.models.results import FailureKind, RunResult, RunStatus
from conveyor.reports import MemoryReportStore, RedisReportStore, create_report_store


def _result(run_id: str = "run-1") -> RunResult:
    return RunResult(
        run_id=run_id, pipeline="sample-app", status=RunStatus.FAILED,
        failed_stage_index=1, failed_stage_name="build", failure_kind=FailureKind.STEP_FAILURE,
        reason="exit 1",
    )


@pytest.fixture
def fake_server():
    return fakeredis.FakeServer()


@pytest.fixture
def redis_store(fake_server):
    with patch("redis.Redis", return_value=fakeredis.FakeRedis(server=fake_server, decode_responses=True)):
        return RedisReportStore(host="localhost", port=6379, db=0, ttl=60)


class TestRedisReportStore:
    def test_returns_none_on_miss(self, redis_store):
        assert redis_store.get("nonexistent") is None

    def test_save_then_get(self, redis_store):
        redis_store.save(_result())
        loaded = redis_store.get("run-1")
        assert loaded == _result()
        assert loaded.failure_kind is FailureKind.STEP_FAILURE

    def test_sets_ttl(self, redis_store, fake_server):
        redis_store.save(_result())
        client = fakeredis.FakeRedis(server=fake_server)
        assert 0 < client.ttl("conveyor:run:run-1") <= 60

    def test_overwrites_existing_report(self, redis_store):
        redis_store.save(_result())
        redis_store.save(_result().model_copy(update={"reason": "exit 2"}))
        assert redis_store.get("run-1").reason == "exit 2"

    def test_get_wraps_redis_error(self):
        s = RedisReportStore.__new__(RedisReportStore)
        s._client = None  # will cause AttributeError -> ReportStoreError
        with pytest.raises(ReportStoreError):
            s.get("k")


class TestMemoryReportStore:
    def test_save_then_get(self):
        store = MemoryReportStore()
        store.save(_result("a"))
        assert store.get("a").failed_stage_name == "build"
        assert store.get("b") is None
        assert store.run_ids() == ["a"]


def test_factory_selects_backend():
    assert isinstance(create_report_store(AppSettings()), MemoryReportStore)
    with patch("redis.Redis", return_value=fakeredis.FakeRedis()):
        store = create_report_store(AppSettings(reports=ReportConfig(backend="redis")))
    assert isinstance(store, RedisReportStore)
