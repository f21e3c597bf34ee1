"""Protocol interfaces for the executor's collaborators.

Structural typing: backends need no common base class and test doubles
satisfy the same isinstance() checks as production implementations.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from conveyor.execution.scope import CredentialScope
    from conveyor.models.credentials import Credential, CredentialKind
    from conveyor.models.pipeline import StepSpec
    from conveyor.models.results import RunResult, StepResult


# ---------------------------------------------------------------------------
# Secret Vault
# ---------------------------------------------------------------------------

@runtime_checkable
class ISecretVault(Protocol):
    """Resolves a credential identifier to fresh, uncached material.

    Must be safe for concurrent calls from independent runs.
    """

    def resolve(self, identifier: str, kind: CredentialKind) -> Credential: ...


# ---------------------------------------------------------------------------
# External Step Runner
# ---------------------------------------------------------------------------

@runtime_checkable
class IStepRunner(Protocol):
    """Runs one external action inside an open credential scope.

    A non-zero exit status is returned, not raised; ``ExecutionError`` means
    the action could not be invoked at all.
    """

    def run(self, step: StepSpec, scope: CredentialScope) -> StepResult: ...


# ---------------------------------------------------------------------------
# Run Reports
# ---------------------------------------------------------------------------

@runtime_checkable
class IReportStore(Protocol):
    """Persists redacted run results for display or forwarding."""

    def save(self, result: RunResult) -> None: ...

    def get(self, run_id: str) -> RunResult | None: ...
