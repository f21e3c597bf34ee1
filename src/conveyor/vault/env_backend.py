"""Vault backed by process environment variables (local development)."""

from __future__ import annotations

import os
from typing import Mapping

from conveyor.core.exceptions import CredentialNotFound
from conveyor.models.credentials import Credential, CredentialKind, env_name


class EnvVault:
    """ISecretVault reading ``<prefix><IDENTIFIER>`` from the environment.

    ``dockerhub-credentials`` is looked up as ``CONVEYOR_SECRET_DOCKERHUB_CREDENTIALS``.
    """

    def __init__(self, prefix: str = "CONVEYOR_SECRET_", environ: Mapping[str, str] | None = None) -> None:
        self._prefix = prefix
        self._environ = environ if environ is not None else os.environ

    def variable_for(self, identifier: str) -> str:
        return f"{self._prefix}{env_name(identifier)}"

    def resolve(self, identifier: str, kind: CredentialKind) -> Credential:
        value = self._environ.get(self.variable_for(identifier))
        if value is None:
            raise CredentialNotFound(identifier)
        return Credential(identifier=identifier, kind=kind, material=bytearray(value.encode("utf-8")))
