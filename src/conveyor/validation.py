"""Pipeline definition validation, run before any stage starts."""

from __future__ import annotations

from conveyor.core.exceptions import DefinitionError
from conveyor.execution.actions import OUTPUT_KEYS, missing_inputs, placeholders
from conveyor.models.credentials import CredentialKind
from conveyor.models.pipeline import Pipeline


def collect_problems(pipeline: Pipeline) -> list[str]:
    """Return every consistency problem in ``pipeline``, sorted.

    Pure function of the definition: calling it twice yields the same list.
    """
    problems: list[str] = []

    if not pipeline.stages:
        problems.append("pipeline has no stages")

    kinds: dict[str, CredentialKind] = {}
    for decl in pipeline.credentials:
        if decl.id in kinds:
            problems.append(f"credential {decl.id!r} declared more than once")
        kinds[decl.id] = decl.kind

    stage_names: set[str] = set()
    step_names: set[str] = set()
    available: set[str] = set(pipeline.environment)

    for stage in pipeline.stages:
        where = f"stage {stage.name!r}"
        if not stage.name.strip():
            problems.append("stage with empty name")
        if stage.name in stage_names:
            problems.append(f"duplicate stage name {stage.name!r}")
        stage_names.add(stage.name)
        if not stage.steps:
            problems.append(f"{where} has no steps")

        bound: set[str] = set()
        variables: set[str] = set()
        for binding in stage.bindings:
            cid = binding.credential_id
            if cid in bound:
                problems.append(f"{where} binds credential {cid!r} more than once")
            bound.add(cid)
            kind = kinds.get(cid)
            if kind is None:
                problems.append(f"{where} binds undeclared credential {cid!r}")
                continue
            if kind is not CredentialKind.USERNAME_PASSWORD and (
                binding.username_variable or binding.password_variable
            ):
                problems.append(f"{where} sets username/password variables on {kind.value} credential {cid!r}")
            for var in binding.variables_for(kind):
                if var in variables:
                    problems.append(f"{where} binds variable {var!r} more than once")
                variables.add(var)

        for step in stage.steps:
            label = f"step {step.name!r} in {where}"
            if step.name in step_names:
                problems.append(f"duplicate step name {step.name!r}")
            step_names.add(step.name)
            if "." in step.name:
                problems.append(f"{label}: step names cannot contain '.'")
            for cid in step.credentials:
                if cid not in bound:
                    problems.append(f"{label} requires credential {cid!r} not bound by its stage")
            for name in missing_inputs(step):
                problems.append(f"{label} is missing required input {name!r}")
            produced = OUTPUT_KEYS[step.action]
            for out in step.outputs:
                if out not in produced:
                    problems.append(f"{label} declares output {out!r} that {step.action.value} does not produce")
            for key, value in step.inputs.items():
                try:
                    refs = placeholders(value)
                except ValueError:
                    problems.append(f"{label} input {key!r} has a malformed placeholder")
                    continue
                for ref in refs:
                    if ref not in available:
                        problems.append(f"{label} input {key!r} references unknown value {ref!r}")
            if step.timeout_sec is not None and step.timeout_sec <= 0:
                problems.append(f"{label} has a non-positive timeout")
            available.update(f"{step.name}.{out}" for out in step.outputs if out in produced)

    return sorted(set(problems))


def validate_pipeline(pipeline: Pipeline) -> None:
    """Raise ``DefinitionError`` if the definition is inconsistent."""
    problems = collect_problems(pipeline)
    if problems:
        raise DefinitionError(problems)
