"""Scoped credential context: one scope per stage, closed on every exit path."""

from __future__ import annotations

import contextvars
import logging
import os
import shutil
import tempfile
from contextlib import contextmanager
from typing import Iterator, Sequence

from conveyor.core.exceptions import ScopeError, VaultError
from conveyor.core.protocols import ISecretVault
from conveyor.core.types import CredentialId, EnvMap
from conveyor.models.credentials import Credential, CredentialBinding, CredentialKind

logger = logging.getLogger(__name__)

REDACTED = "****"

_active_scope: contextvars.ContextVar[CredentialScope | None] = contextvars.ContextVar(
    "conveyor_active_scope", default=None,
)


class Redactor:
    """Masks known secret values in text, longest value first."""

    def __init__(self, secrets: Sequence[str] = ()) -> None:
        self._secrets = sorted({s for s in secrets if s}, key=len, reverse=True)

    def __call__(self, text: str) -> str:
        for secret in self._secrets:
            if secret in text:
                text = text.replace(secret, REDACTED)
        return text


class CredentialScope:
    """Credential bindings visible to the steps of exactly one stage."""

    def __init__(self, stage_name: str) -> None:
        self.stage_name = stage_name
        self._credentials: dict[str, Credential] = {}
        self._env: dict[CredentialId, EnvMap] = {}
        self._secrets: list[str] = []
        self._tmpdir: str | None = None
        self.closed = False

    @property
    def credential_ids(self) -> list[str]:
        return list(self._credentials)

    @property
    def tmpdir(self) -> str | None:
        return self._tmpdir

    def _private_dir(self) -> str:
        if self._tmpdir is None:
            self._tmpdir = tempfile.mkdtemp(prefix="conveyor-scope-")
            os.chmod(self._tmpdir, 0o700)
        return self._tmpdir

    def bind(self, binding: CredentialBinding, credential: Credential) -> None:
        """Expose ``credential`` through the variables named by ``binding``."""
        self._check_open()
        self._credentials[credential.identifier] = credential
        self._secrets.extend(credential.secret_values())
        names = binding.variables_for(credential.kind)

        if credential.kind is CredentialKind.USERNAME_PASSWORD:
            username, password = credential.username_password()
            self._env[credential.identifier] = {names[0]: username, names[1]: password}
        elif credential.kind is CredentialKind.KUBECONFIG:
            fd, path = tempfile.mkstemp(prefix="kubeconfig-", dir=self._private_dir())
            with os.fdopen(fd, "wb") as fh:
                fh.write(credential.material)
            os.chmod(path, 0o600)
            self._env[credential.identifier] = {names[0]: path}
        else:
            self._env[credential.identifier] = {names[0]: credential.text()}

    def credential(self, identifier: str) -> Credential:
        self._check_open()
        try:
            return self._credentials[identifier]
        except KeyError:
            raise ScopeError(f"credential {identifier!r} is not bound in stage {self.stage_name!r}") from None

    def env_for(self, identifiers: Sequence[CredentialId]) -> EnvMap:
        """Environment variables for the given credentials only."""
        self._check_open()
        env: EnvMap = {}
        for identifier in identifiers:
            if identifier not in self._env:
                raise ScopeError(f"credential {identifier!r} is not bound in stage {self.stage_name!r}")
            env.update(self._env[identifier])
        return env

    def variables_for(self, identifier: str) -> list[str]:
        self._check_open()
        return list(self._env.get(identifier, {}))

    def redactor(self) -> Redactor:
        return Redactor(self._secrets)

    def redact(self, text: str) -> str:
        return self.redactor()(text)

    def close(self) -> None:
        """Discard all material and scope-private files. Idempotent."""
        if self.closed:
            return
        for credential in self._credentials.values():
            credential.discard()
        self._credentials.clear()
        self._env.clear()
        self._secrets.clear()
        if self._tmpdir is not None:
            shutil.rmtree(self._tmpdir, ignore_errors=True)
            self._tmpdir = None
        self.closed = True
        logger.debug("Closed credential scope for stage %r", self.stage_name)

    def _check_open(self) -> None:
        if self.closed:
            raise ScopeError(f"credential scope for stage {self.stage_name!r} is closed")


@contextmanager
def open_scope(
    vault: ISecretVault,
    stage_name: str,
    bindings: Sequence[CredentialBinding],
    kinds: dict[str, CredentialKind],
) -> Iterator[CredentialScope]:
    """Resolve and bind every credential for one stage; always close afterwards.

    Raises:
        ScopeError: A scope is already open in the current context.
        VaultError: A credential could not be resolved. Anything already
            resolved is discarded before the error propagates.
    """
    if _active_scope.get() is not None:
        raise ScopeError(f"cannot open a scope for stage {stage_name!r} inside another scope")

    scope = CredentialScope(stage_name)
    token = _active_scope.set(scope)
    try:
        for binding in bindings:
            kind = kinds.get(binding.credential_id)
            if kind is None:
                raise VaultError(binding.credential_id, "no declaration for this credential")
            scope.bind(binding, vault.resolve(binding.credential_id, kind))
        logger.debug("Opened credential scope for stage %r with %d credential(s)", stage_name, len(bindings))
        yield scope
    finally:
        scope.close()
        _active_scope.reset(token)
