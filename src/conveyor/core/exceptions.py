"""Conveyor exception hierarchy."""

from __future__ import annotations


class ConveyorError(Exception):
    """Base exception for all Conveyor errors."""


class DefinitionError(ConveyorError):
    """Pipeline definition is malformed or internally inconsistent."""

    def __init__(self, problems: list[str]) -> None:
        self.problems = sorted(problems)
        super().__init__("Invalid pipeline definition: " + "; ".join(self.problems))


class VaultError(ConveyorError):
    """Credential could not be resolved from the vault."""

    def __init__(self, identifier: str, message: str) -> None:
        self.identifier = identifier
        super().__init__(f"Credential {identifier!r}: {message}")


class CredentialNotFound(VaultError):
    """Credential identifier is unknown to the vault."""

    def __init__(self, identifier: str) -> None:
        super().__init__(identifier, "not found")


class ScopeError(ConveyorError):
    """Credential scope misuse (nested open, use after close)."""


class ExecutionError(ConveyorError):
    """External action could not be invoked at all."""

    def __init__(self, step_name: str, message: str) -> None:
        self.step_name = step_name
        super().__init__(f"Step {step_name!r} could not run: {message}")


class StepFailure(ConveyorError):
    """External action ran and returned a non-zero status."""

    def __init__(self, stage_name: str, step_name: str, exit_status: int, output: str = "") -> None:
        self.stage_name = stage_name
        self.step_name = step_name
        self.exit_status = exit_status
        self.output = output
        super().__init__(f"Step {step_name!r} in stage {stage_name!r} exited with status {exit_status}")


class Cancelled(ConveyorError):
    """Cancellation was requested before a stage started."""

    def __init__(self, stage_index: int) -> None:
        self.stage_index = stage_index
        super().__init__(f"Run cancelled before stage {stage_index}")


class ReportStoreError(ConveyorError):
    """Run report persistence failed."""
