"""Pluggable run report stores behind the IReportStore protocol."""

from __future__ import annotations

from conveyor.core.config import AppSettings
from conveyor.core.protocols import IReportStore
from conveyor.reports.memory_backend import MemoryReportStore
from conveyor.reports.redis_backend import RedisReportStore


def create_report_store(settings: AppSettings | None = None) -> IReportStore:
    """Create the report store selected by ``settings.reports.backend``."""
    if settings is None:
        settings = AppSettings()
    cfg = settings.reports

    if cfg.backend == "redis":
        return RedisReportStore(host=cfg.host, port=cfg.port, db=cfg.db, ttl=cfg.ttl_sec)
    return MemoryReportStore()


__all__ = ["MemoryReportStore", "RedisReportStore", "create_report_store"]
