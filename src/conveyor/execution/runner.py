"""External step runner: invokes git, docker, and kubectl as subprocesses."""

from __future__ import annotations

import base64
import json
import logging
import os
import shlex
import shutil
import subprocess
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path

from conveyor.core.config import RunnerConfig
from conveyor.core.exceptions import ExecutionError
from conveyor.execution.scope import CredentialScope, Redactor
from conveyor.models.credentials import CredentialKind
from conveyor.models.pipeline import ActionKind, StepSpec
from conveyor.models.results import StepResult

logger = logging.getLogger(__name__)

TIMEOUT_EXIT_STATUS = 124

# Reads the bound variables at run time so secrets never appear on argv.
_GIT_HELPER = '!f() { test "$1" = get || exit 0; echo "username=%s"; echo "password=${%s}"; }; f'
# Any non-empty username is accepted alongside a token by the common forges.
_GIT_TOKEN_USER = "x-access-token"
# Key docker uses for Docker Hub credentials in config.json.
_DOCKER_HUB_AUTH_KEY = "https://index.docker.io/v1/"


@dataclass
class _Invocation:
    argv: list[str]
    stdin: bytes | None = None


class SubprocessStepRunner:
    """IStepRunner that shells out to the configured binaries.

    Captured stdout/stderr is redacted against the scope's secret values
    before it is stored on the ``StepResult``.
    """

    def __init__(self, config: RunnerConfig | None = None) -> None:
        self._config = config or RunnerConfig()

    def run(self, step: StepSpec, scope: CredentialScope) -> StepResult:
        redact = scope.redactor()
        cwd = Path(self._config.workspace)
        if not cwd.is_dir():
            raise ExecutionError(step.name, f"workspace {str(cwd)!r} is not a directory")
        env = dict(os.environ) if self._config.inherit_environment else {}
        env.update(scope.env_for(step.credentials))
        timeout = step.timeout_sec if step.timeout_sec is not None else self._config.step_timeout_sec

        started = time.monotonic()
        if step.action is ActionKind.PUSH_IMAGE:
            result = self._push_image(step, scope, env, cwd, timeout, redact)
        else:
            result = self._run_single(step, self._build(step, scope, cwd), env, cwd, timeout, redact)
        result.duration_ms = int((time.monotonic() - started) * 1000)
        return result

    # ---- invocation builders ----

    def _build(self, step: StepSpec, scope: CredentialScope, cwd: Path) -> _Invocation:
        inputs = step.inputs
        cfg = self._config

        if step.action is ActionKind.FETCH_SOURCE:
            argv = [cfg.git_binary]
            if step.credentials:
                names = self._git_variables(step, scope)
                argv += ["-c", "credential.helper=", "-c", "credential.helper=" + _GIT_HELPER % names]
            argv += ["clone", "--depth", inputs.get("depth", "1")]
            if inputs.get("ref"):
                argv += ["--branch", inputs["ref"]]
            argv += [inputs["url"], inputs.get("dest", "source")]
            return _Invocation(argv)

        if step.action is ActionKind.BUILD_IMAGE:
            argv = [cfg.docker_binary, "build", "-t", inputs["image"]]
            if inputs.get("dockerfile"):
                argv += ["-f", inputs["dockerfile"]]
            argv.append(inputs.get("context", "."))
            return _Invocation(argv)

        if step.action is ActionKind.APPLY_MANIFEST:
            argv = [cfg.kubectl_binary, "apply", "-f", "-"]
            if inputs.get("namespace"):
                argv += ["--namespace", inputs["namespace"]]
            return _Invocation(argv, stdin=self._manifest_bytes(step, cwd))

        if step.action is ActionKind.COMMAND:
            try:
                argv = shlex.split(inputs["command"])
            except ValueError as exc:
                raise ExecutionError(step.name, f"malformed command: {exc}") from exc
            if not argv:
                raise ExecutionError(step.name, "empty command")
            return _Invocation(argv)

        raise ExecutionError(step.name, f"unsupported action {step.action.value}")

    def _git_variables(self, step: StepSpec, scope: CredentialScope) -> tuple[str, str]:
        credential = scope.credential(step.credentials[0])
        names = scope.variables_for(credential.identifier)
        if credential.kind is CredentialKind.USERNAME_PASSWORD:
            return "${%s}" % names[0], names[1]
        if credential.kind is CredentialKind.TOKEN:
            return _GIT_TOKEN_USER, names[0]
        raise ExecutionError(step.name, f"{credential.kind.value} credential cannot authenticate git")

    def _manifest_bytes(self, step: StepSpec, cwd: Path) -> bytes:
        if step.inputs.get("manifest_text"):
            return step.inputs["manifest_text"].encode("utf-8")
        path = cwd / step.inputs["manifest"]
        try:
            return path.read_bytes()
        except OSError as exc:
            raise ExecutionError(step.name, f"cannot read manifest {str(path)!r}: {exc.strerror}") from exc

    # ---- execution ----

    def _push_image(
        self,
        step: StepSpec,
        scope: CredentialScope,
        env: dict[str, str],
        cwd: Path,
        timeout: float | None,
        redact: Redactor,
    ) -> StepResult:
        docker = self._config.docker_binary
        image = step.inputs["image"]
        config_dir = tempfile.mkdtemp(prefix="conveyor-docker-")
        try:
            if step.credentials:
                credential = scope.credential(step.credentials[0])
                if credential.kind is not CredentialKind.USERNAME_PASSWORD:
                    raise ExecutionError(step.name, "push-image needs a username-password credential")
                username, password = credential.username_password()
                registry = step.inputs.get("registry") or _registry_of(image)
                _write_docker_auth(Path(config_dir), registry, username, password)
            push = self._run_single(
                step, _Invocation([docker, "--config", config_dir, "push", image]), env, cwd, timeout, redact,
            )
            if push.succeeded:
                push.outputs["pushed_image"] = image
            return push
        finally:
            shutil.rmtree(config_dir, ignore_errors=True)

    def _run_single(
        self,
        step: StepSpec,
        invocation: _Invocation,
        env: dict[str, str],
        cwd: Path,
        timeout: float | None,
        redact: Redactor,
    ) -> StepResult:
        logger.debug("Step %r invoking %s", step.name, redact(invocation.argv[0]))
        if invocation.stdin is not None:
            stdin_kwargs: dict = {"input": invocation.stdin}
        else:
            stdin_kwargs = {"stdin": subprocess.DEVNULL}
        try:
            proc = subprocess.run(
                invocation.argv,
                capture_output=True,
                cwd=cwd,
                env=env,
                timeout=timeout,
                check=False,
                **stdin_kwargs,
            )
        except subprocess.TimeoutExpired as exc:
            logger.warning("Step %r timed out after %ss", step.name, timeout)
            return StepResult(
                step_name=step.name,
                exit_status=TIMEOUT_EXIT_STATUS,
                stdout=redact(_decode(exc.stdout)),
                stderr=redact(_decode(exc.stderr)),
                timed_out=True,
            )
        except FileNotFoundError as exc:
            raise ExecutionError(step.name, f"executable not found: {invocation.argv[0]}") from exc
        except PermissionError as exc:
            raise ExecutionError(step.name, f"executable not runnable: {invocation.argv[0]}") from exc
        except OSError as exc:
            raise ExecutionError(step.name, f"cannot invoke {invocation.argv[0]}: {exc.strerror or exc}") from exc
        except ValueError as exc:
            raise ExecutionError(step.name, f"invalid invocation: {exc}") from exc

        result = StepResult(
            step_name=step.name,
            exit_status=proc.returncode,
            stdout=redact(_decode(proc.stdout)),
            stderr=redact(_decode(proc.stderr)),
        )
        if result.succeeded:
            result.outputs.update(_outputs(step))
        return result


def _outputs(step: StepSpec) -> dict[str, str]:
    if step.action is ActionKind.FETCH_SOURCE:
        return {"source": step.inputs.get("dest", "source")}
    if step.action is ActionKind.BUILD_IMAGE:
        return {"image": step.inputs["image"]}
    return {}


def _registry_of(image: str) -> str:
    """Registry host of an image reference; empty for Docker Hub."""
    first, sep, _ = image.partition("/")
    if sep and ("." in first or ":" in first or first == "localhost"):
        return first
    return ""


def _decode(data: bytes | str | None) -> str:
    if data is None:
        return ""
    if isinstance(data, str):
        return data
    return data.decode("utf-8", errors="replace")


def _write_docker_auth(config_dir: Path, registry: str, username: str, password: str) -> None:
    """Store registry auth in a private docker config so nothing reaches argv."""
    auth = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
    fd = os.open(config_dir / "config.json", os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    with os.fdopen(fd, "w") as fh:
        json.dump({"auths": {registry or _DOCKER_HUB_AUTH_KEY: {"auth": auth}}}, fh)
