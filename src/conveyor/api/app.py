"""FastAPI application exposing stored run reports."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from conveyor.api.routes import health, runs
from conveyor.core.config import AppSettings
from conveyor.core.protocols import IReportStore
from conveyor.reports import create_report_store


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Initialize and tear down application resources."""
    if not hasattr(app.state, "settings"):
        app.state.settings = AppSettings()
    if not hasattr(app.state, "reports"):
        app.state.reports = create_report_store(app.state.settings)
    yield


def create_app(reports: IReportStore | None = None, settings: AppSettings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Conveyor Pipeline Runs",
        version="0.1.0",
        lifespan=lifespan,
    )
    if settings is not None:
        app.state.settings = settings
    if reports is not None:
        app.state.reports = reports
    app.include_router(health.router)
    app.include_router(runs.router, prefix="/runs")
    return app
