"""Step, stage, and run outcome models."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, Field


class RunStatus(StrEnum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


class StageStatus(StrEnum):
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


class FailureKind(StrEnum):
    VAULT_ERROR = "vault_error"
    EXECUTION_ERROR = "execution_error"
    STEP_FAILURE = "step_failure"
    CANCELLED = "cancelled"


class StepResult(BaseModel):
    """Outcome of one external action. Output is already redacted."""

    step_name: str
    exit_status: int
    stdout: str = ""
    stderr: str = ""
    outputs: dict[str, str] = Field(default_factory=dict)
    timed_out: bool = False
    duration_ms: int = 0

    @property
    def succeeded(self) -> bool:
        return self.exit_status == 0

    @property
    def captured_output(self) -> str:
        if self.stdout and self.stderr:
            return f"{self.stdout}\n{self.stderr}"
        return self.stdout or self.stderr


class StageResult(BaseModel):
    """Outcome of one stage, reported as a single unit."""

    index: int
    name: str
    status: StageStatus
    steps: list[StepResult] = Field(default_factory=list)
    error: str = ""

    @property
    def captured_output(self) -> str:
        parts = [s.captured_output for s in self.steps if s.captured_output]
        if self.error:
            parts.append(self.error)
        return "\n".join(parts)


class FailureReport(BaseModel):
    """Payload handed to the on-failure hook."""

    run_id: str
    pipeline: str
    stage_index: int
    stage_name: str
    kind: FailureKind
    message: str
    captured_output: str = ""


class RunResult(BaseModel):
    """Terminal outcome of a pipeline run."""

    run_id: str
    pipeline: str
    status: RunStatus = RunStatus.PENDING
    failed_stage_index: Optional[int] = None
    failed_stage_name: Optional[str] = None
    failure_kind: Optional[FailureKind] = None
    reason: str = ""
    stages: list[StageResult] = Field(default_factory=list)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    hook_error: str = ""
    report_error: str = ""

    @property
    def succeeded(self) -> bool:
        return self.status == RunStatus.SUCCEEDED

    @property
    def cancelled(self) -> bool:
        return self.failure_kind == FailureKind.CANCELLED

    def failure_report(self) -> FailureReport:
        stage_output = ""
        for stage in self.stages:
            if stage.index == self.failed_stage_index:
                stage_output = stage.captured_output
        return FailureReport(
            run_id=self.run_id,
            pipeline=self.pipeline,
            stage_index=self.failed_stage_index if self.failed_stage_index is not None else -1,
            stage_name=self.failed_stage_name or "",
            kind=self.failure_kind or FailureKind.EXECUTION_ERROR,
            message=self.reason,
            captured_output=stage_output,
        )

    def summary(self) -> str:
        """Human-readable one-screen summary."""
        lines = [f"Pipeline {self.pipeline!r} run {self.run_id}: {self.status.value}"]
        for stage in self.stages:
            lines.append(f"  [{stage.index}] {stage.name}: {stage.status.value}")
        if self.status == RunStatus.FAILED:
            where = f"stage {self.failed_stage_index} ({self.failed_stage_name})"
            lines.append(f"Failed at {where}: {self.failure_kind.value if self.failure_kind else '?'}: {self.reason}")
        if self.hook_error:
            lines.append(f"Hook error: {self.hook_error}")
        if self.report_error:
            lines.append(f"Report not saved: {self.report_error}")
        return "\n".join(lines)
