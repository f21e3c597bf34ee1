"""Per-action input requirements, output keys, and input templating."""

from __future__ import annotations

from string import Template
from typing import Mapping

from conveyor.models.pipeline import ActionKind, StepSpec

# Any one of the names in a tuple satisfies the requirement.
REQUIRED_INPUTS: dict[ActionKind, list[tuple[str, ...]]] = {
    ActionKind.FETCH_SOURCE: [("url",)],
    ActionKind.BUILD_IMAGE: [("image",)],
    ActionKind.PUSH_IMAGE: [("image",)],
    ActionKind.APPLY_MANIFEST: [("manifest", "manifest_text")],
    ActionKind.COMMAND: [("command",)],
}

OUTPUT_KEYS: dict[ActionKind, frozenset[str]] = {
    ActionKind.FETCH_SOURCE: frozenset({"source"}),
    ActionKind.BUILD_IMAGE: frozenset({"image"}),
    ActionKind.PUSH_IMAGE: frozenset({"pushed_image"}),
    ActionKind.APPLY_MANIFEST: frozenset(),
    ActionKind.COMMAND: frozenset(),
}


class InputTemplate(Template):
    """``$name``, ``${name}``, or ``${step.output}`` placeholders."""

    braceidpattern = r"(?a:[_a-zA-Z][_a-zA-Z0-9]*(?:\.[_a-zA-Z][_a-zA-Z0-9]*)?)"


def placeholders(value: str) -> list[str]:
    """Return the placeholder names referenced by an input value."""
    names: list[str] = []
    for match in InputTemplate.pattern.finditer(value):
        if match.group("invalid") is not None:
            raise ValueError(f"malformed placeholder at position {match.start('invalid')}")
        name = match.group("named") or match.group("braced")
        if name:
            names.append(name)
    return names


def render_inputs(step: StepSpec, context: Mapping[str, str]) -> StepSpec:
    """Return a copy of ``step`` with every input placeholder substituted."""
    rendered = {key: InputTemplate(value).substitute(context) for key, value in step.inputs.items()}
    return step.model_copy(update={"inputs": rendered})


def missing_inputs(step: StepSpec) -> list[str]:
    missing = []
    for alternatives in REQUIRED_INPUTS[step.action]:
        if not any(step.inputs.get(name) for name in alternatives):
            missing.append(" or ".join(alternatives))
    return missing
