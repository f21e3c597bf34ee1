"""PipelineExecutor: runs stages in order, fail-fast, one terminal hook per run."""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime, timezone

from conveyor.core.exceptions import (
    Cancelled,
    ExecutionError,
    ReportStoreError,
    ScopeError,
    StepFailure,
    VaultError,
)
from conveyor.core.protocols import IReportStore, ISecretVault, IStepRunner
from conveyor.core.types import RunId
from conveyor.execution.actions import render_inputs
from conveyor.execution.scope import Redactor, open_scope
from conveyor.models.credentials import CredentialKind
from conveyor.models.pipeline import Pipeline, Stage, StepSpec
from conveyor.models.results import (
    FailureKind,
    RunResult,
    RunStatus,
    StageResult,
    StageStatus,
    StepResult,
)
from conveyor.validation import validate_pipeline

logger = logging.getLogger(__name__)


class CancellationToken:
    """Thread-safe cancellation flag, checked by the executor between stages."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class PipelineExecutor:
    """Drives one pipeline run through Pending -> Running(i) -> Succeeded | Failed(i).

    The executor holds no per-run state, so one instance may serve several
    concurrent runs as long as the vault and runner are thread-safe.
    """

    def __init__(
        self,
        *,
        vault: ISecretVault,
        runner: IStepRunner,
        report_store: IReportStore | None = None,
    ) -> None:
        self._vault = vault
        self._runner = runner
        self._reports = report_store

    def run(
        self,
        pipeline: Pipeline,
        *,
        run_id: RunId | None = None,
        cancel: CancellationToken | None = None,
    ) -> RunResult:
        """Execute ``pipeline`` and return its terminal result.

        Raises:
            DefinitionError: The definition is invalid; no stage ran and no
                hook fired.
        """
        validate_pipeline(pipeline)

        result = RunResult(
            run_id=run_id or uuid.uuid4().hex,
            pipeline=pipeline.name,
            status=RunStatus.RUNNING,
            started_at=datetime.now(timezone.utc),
        )
        kinds = {decl.id: decl.kind for decl in pipeline.credentials}
        context = dict(pipeline.environment)
        logger.info("Run %s of pipeline %r started (%d stages)", result.run_id, pipeline.name, len(pipeline.stages))

        for index, stage in enumerate(pipeline.stages):
            if cancel is not None and cancel.cancelled:
                reason = str(Cancelled(index))
                self._mark_failed(result, index, stage.name, FailureKind.CANCELLED, reason)
                logger.warning("Run %s cancelled before stage %d (%r)", result.run_id, index, stage.name)
                break

            logger.info("Stage %d (%r) started", index, stage.name)
            stage_result, kind = self._run_stage(index, stage, kinds, context)
            result.stages.append(stage_result)

            if stage_result.status == StageStatus.FAILED:
                self._mark_failed(result, index, stage.name, kind, stage_result.error)
                logger.error("Stage %d (%r) failed: %s", index, stage.name, stage_result.error)
                break
            logger.info("Stage %d (%r) succeeded", index, stage.name)
        else:
            result.status = RunStatus.SUCCEEDED

        result.finished_at = datetime.now(timezone.utc)
        logger.info("Run %s finished: %s", result.run_id, result.status.value)

        self._fire_hook(pipeline, result)
        self._save_report(result)
        return result

    def _run_stage(
        self,
        index: int,
        stage: Stage,
        kinds: dict[str, CredentialKind],
        context: dict[str, str],
    ) -> tuple[StageResult, FailureKind | None]:
        steps: list[StepResult] = []
        redact = Redactor()
        try:
            with open_scope(self._vault, stage.name, stage.bindings, kinds) as scope:
                redact = scope.redactor()
                for spec in stage.steps:
                    step = _render(spec, context)
                    step_result = _redacted(self._runner.run(step, scope), redact)
                    steps.append(step_result)
                    logger.info("Step %r exited with status %d", step.name, step_result.exit_status)
                    if step_result.captured_output:
                        logger.debug("Step %r output:\n%s", step.name, step_result.captured_output)
                    if not step_result.succeeded:
                        raise StepFailure(stage.name, step.name, step_result.exit_status, step_result.captured_output)
                    for key in step.outputs:
                        if key in step_result.outputs:
                            context[f"{step.name}.{key}"] = step_result.outputs[key]
        except VaultError as exc:
            return self._failed(index, stage, steps, redact(str(exc))), FailureKind.VAULT_ERROR
        except (ExecutionError, ScopeError) as exc:
            return self._failed(index, stage, steps, redact(str(exc))), FailureKind.EXECUTION_ERROR
        except StepFailure as exc:
            return self._failed(index, stage, steps, redact(str(exc))), FailureKind.STEP_FAILURE

        return StageResult(index=index, name=stage.name, status=StageStatus.SUCCEEDED, steps=steps), None

    @staticmethod
    def _failed(index: int, stage: Stage, steps: list[StepResult], error: str) -> StageResult:
        return StageResult(index=index, name=stage.name, status=StageStatus.FAILED, steps=steps, error=error)

    @staticmethod
    def _mark_failed(
        result: RunResult, index: int, stage_name: str, kind: FailureKind | None, reason: str,
    ) -> None:
        result.status = RunStatus.FAILED
        result.failed_stage_index = index
        result.failed_stage_name = stage_name
        result.failure_kind = kind
        result.reason = reason

    @staticmethod
    def _fire_hook(pipeline: Pipeline, result: RunResult) -> None:
        """Invoke exactly one terminal hook; record (never re-run) a hook failure."""
        if result.succeeded:
            hook, payload = pipeline.on_success, result
        else:
            hook, payload = pipeline.on_failure, result.failure_report()
        if hook is None:
            return
        try:
            hook(payload)
        except Exception as exc:
            logger.exception("Terminal hook for run %s raised", result.run_id)
            result.hook_error = f"{type(exc).__name__}: {exc}"

    def _save_report(self, result: RunResult) -> None:
        """Persist the terminal result; a store outage never changes the run outcome."""
        if self._reports is None:
            return
        try:
            self._reports.save(result)
        except ReportStoreError as exc:
            logger.error("Report for run %s not saved: %s", result.run_id, exc)
            result.report_error = str(exc)


def _render(spec: StepSpec, context: dict[str, str]) -> StepSpec:
    try:
        return render_inputs(spec, context)
    except KeyError as exc:
        raise ExecutionError(spec.name, f"input references unavailable value {exc.args[0]!r}") from exc
    except ValueError as exc:
        raise ExecutionError(spec.name, f"malformed input placeholder: {exc}") from exc


def _redacted(step_result: StepResult, redact: Redactor) -> StepResult:
    return step_result.model_copy(
        update={
            "stdout": redact(step_result.stdout),
            "stderr": redact(step_result.stderr),
            "outputs": {key: redact(value) for key, value in step_result.outputs.items()},
        },
    )
