"""Shared test doubles — memory backends and a scripted runner."""

from __future__ import annotations

from conveyor.reports.memory_backend import MemoryReportStore
from conveyor.vault.memory_backend import MemoryVault
from tests.fakes.runners import ScriptedStepRunner

__all__ = ["MemoryReportStore", "MemoryVault", "ScriptedStepRunner"]
