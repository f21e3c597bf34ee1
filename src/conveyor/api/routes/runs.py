"""Run report endpoints."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request

from conveyor.core.exceptions import ReportStoreError
from conveyor.core.types import JsonDict

router = APIRouter(tags=["runs"])


@router.get("/{run_id}")
async def get_run(run_id: str, request: Request) -> JsonDict:
    """Return the redacted report for one run."""
    try:
        result = request.app.state.reports.get(run_id)
    except ReportStoreError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    if result is None:
        raise HTTPException(status_code=404, detail=f"run {run_id!r} not found")
    return result.model_dump(mode="json")
