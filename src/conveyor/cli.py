"""Command-line driver: ``conveyor validate`` and ``conveyor run``.

Exit codes: 0 succeeded, 1 failed, 2 invalid definition, 130 cancelled.
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from typing import Sequence

from conveyor.core.config import AppSettings
from conveyor.core.exceptions import ConveyorError, DefinitionError
from conveyor.core.logging import configure_logging
from conveyor.execution.executor import CancellationToken, PipelineExecutor
from conveyor.execution.runner import SubprocessStepRunner
from conveyor.models.pipeline import load_pipeline
from conveyor.models.results import FailureReport, RunResult
from conveyor.reports import create_report_store
from conveyor.validation import validate_pipeline
from conveyor.vault import create_vault

EXIT_SUCCEEDED = 0
EXIT_FAILED = 1
EXIT_INVALID = 2
EXIT_CANCELLED = 130

logger = logging.getLogger("conveyor.cli")


def _notify_success(result: RunResult) -> None:
    logger.info("Pipeline %r succeeded (run %s)", result.pipeline, result.run_id)


def _notify_failure(report: FailureReport) -> None:
    logger.error(
        "Pipeline %r failed at stage %d (%s): %s: %s",
        report.pipeline, report.stage_index, report.stage_name, report.kind.value, report.message,
    )


def cmd_validate(args: argparse.Namespace, settings: AppSettings) -> int:
    try:
        validate_pipeline(load_pipeline(args.pipeline))
    except DefinitionError as exc:
        for problem in exc.problems:
            print(f"error: {problem}", file=sys.stderr)
        return EXIT_INVALID
    print(f"{args.pipeline}: OK")
    return EXIT_SUCCEEDED


def cmd_run(args: argparse.Namespace, settings: AppSettings) -> int:
    try:
        pipeline = load_pipeline(args.pipeline)
        validate_pipeline(pipeline)
    except DefinitionError as exc:
        for problem in exc.problems:
            print(f"error: {problem}", file=sys.stderr)
        return EXIT_INVALID

    executor = PipelineExecutor(
        vault=create_vault(settings),
        runner=SubprocessStepRunner(settings.runner),
        report_store=create_report_store(settings),
    )
    cancel = CancellationToken()
    previous = signal.signal(signal.SIGINT, lambda signum, frame: cancel.cancel())
    try:
        result = executor.run(
            pipeline.with_hooks(on_success=_notify_success, on_failure=_notify_failure),
            run_id=args.run_id,
            cancel=cancel,
        )
    except ConveyorError as exc:
        logger.error("Run aborted: %s", exc)
        return EXIT_FAILED
    finally:
        signal.signal(signal.SIGINT, previous)

    print(result.summary())
    if result.succeeded:
        return EXIT_SUCCEEDED
    if result.cancelled:
        return EXIT_CANCELLED
    return EXIT_FAILED


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="conveyor", description="Run credential-scoped CI pipelines")
    parser.add_argument("--log-level", default=None, help="Override CONVEYOR_LOG_LEVEL")
    sub = parser.add_subparsers(dest="command", required=True)

    p_validate = sub.add_parser("validate", help="Check a pipeline definition without running it")
    p_validate.add_argument("pipeline", help="Path to the pipeline JSON file")
    p_validate.set_defaults(func=cmd_validate)

    p_run = sub.add_parser("run", help="Run a pipeline")
    p_run.add_argument("pipeline", help="Path to the pipeline JSON file")
    p_run.add_argument("--run-id", default=None, help="Run identifier (default: random)")
    p_run.set_defaults(func=cmd_run)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = AppSettings()
    configure_logging(args.log_level or settings.log_level)
    return args.func(args, settings)


if __name__ == "__main__":
    sys.exit(main())
