"""Pipeline, stage, and step definition models."""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from conveyor.core.exceptions import DefinitionError
from conveyor.models.credentials import CredentialBinding, CredentialDeclaration


class ActionKind(StrEnum):
    FETCH_SOURCE = "fetch-source"
    BUILD_IMAGE = "build-image"
    PUSH_IMAGE = "push-image"
    APPLY_MANIFEST = "apply-manifest"
    COMMAND = "command"


class StepSpec(BaseModel):
    """One external action invocation inside a stage."""

    model_config = ConfigDict(frozen=True)

    name: str
    action: ActionKind
    inputs: dict[str, str] = Field(default_factory=dict)
    credentials: list[str] = Field(default_factory=list)
    outputs: list[str] = Field(default_factory=list)
    timeout_sec: Optional[float] = None


class Stage(BaseModel):
    """A named, ordered group of steps sharing one credential scope."""

    model_config = ConfigDict(frozen=True)

    name: str
    steps: list[StepSpec] = Field(default_factory=list)
    bindings: list[CredentialBinding] = Field(default_factory=list)


class Pipeline(BaseModel):
    """Ordered stages plus the success and failure hooks.

    ``environment`` holds pipeline-level variables that step inputs may
    reference as ``${NAME}``; it is passed explicitly to every run instead of
    living in the process environment.
    """

    model_config = ConfigDict(frozen=True)

    name: str = "pipeline"
    environment: dict[str, str] = Field(default_factory=dict)
    credentials: list[CredentialDeclaration] = Field(default_factory=list)
    stages: list[Stage] = Field(default_factory=list)
    on_success: Optional[Callable[..., Any]] = Field(default=None, exclude=True)
    on_failure: Optional[Callable[..., Any]] = Field(default=None, exclude=True)

    def with_hooks(
        self,
        on_success: Optional[Callable[..., Any]] = None,
        on_failure: Optional[Callable[..., Any]] = None,
    ) -> Pipeline:
        return self.model_copy(update={"on_success": on_success, "on_failure": on_failure})

    def declaration(self, credential_id: str) -> CredentialDeclaration | None:
        for decl in self.credentials:
            if decl.id == credential_id:
                return decl
        return None


def load_pipeline(path: str | Path) -> Pipeline:
    """Load a pipeline definition from a JSON file.

    Raises:
        DefinitionError: The file is unreadable or does not match the schema.
    """
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise DefinitionError([f"cannot read {path}: {exc.strerror}"]) from exc
    try:
        return Pipeline.model_validate_json(raw)
    except ValidationError as exc:
        problems = [
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
            for err in exc.errors()
        ]
        raise DefinitionError(problems) from exc
