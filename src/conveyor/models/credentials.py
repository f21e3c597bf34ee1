"""Credential declarations, stage bindings, and resolved credential material."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from enum import StrEnum

from pydantic import BaseModel, ConfigDict

from conveyor.core.exceptions import VaultError


class CredentialKind(StrEnum):
    USERNAME_PASSWORD = "username-password"
    TOKEN = "token"
    KUBECONFIG = "kubeconfig"


def env_name(identifier: str) -> str:
    """Derive an environment variable name from a credential identifier.

    ``dockerhub-credentials`` becomes ``DOCKERHUB_CREDENTIALS``.
    """
    name = re.sub(r"[^0-9A-Za-z]+", "_", identifier).strip("_").upper()
    if not name or name[0].isdigit():
        name = f"CRED_{name}"
    return name


class CredentialDeclaration(BaseModel):
    """Pipeline-level declaration: identifier -> kind. Never carries material."""

    model_config = ConfigDict(frozen=True)

    id: str
    kind: CredentialKind


class CredentialBinding(BaseModel):
    """How a stage exposes one declared credential to its steps."""

    model_config = ConfigDict(frozen=True)

    credential_id: str
    variable: str | None = None  # token / kubeconfig
    username_variable: str | None = None
    password_variable: str | None = None

    def variables_for(self, kind: CredentialKind) -> tuple[str, ...]:
        """Return the environment variable names this binding populates."""
        base = env_name(self.credential_id)
        if kind is CredentialKind.USERNAME_PASSWORD:
            return (
                self.username_variable or f"{base}_USR",
                self.password_variable or f"{base}_PSW",
            )
        if kind is CredentialKind.KUBECONFIG:
            return (self.variable or "KUBECONFIG",)
        return (self.variable or base,)


@dataclass(eq=False)
class Credential:
    """Resolved secret material, alive only for the scope that requested it."""

    identifier: str
    kind: CredentialKind
    material: bytearray = field(repr=False)
    discarded: bool = False

    def text(self) -> str:
        if self.discarded:
            raise VaultError(self.identifier, "material already discarded")
        try:
            return self.material.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise VaultError(self.identifier, "material is not valid UTF-8") from exc

    def username_password(self) -> tuple[str, str]:
        """Split username-password material into its two parts."""
        try:
            data = json.loads(self.text())
            return str(data["username"]), str(data["password"])
        except (ValueError, KeyError, TypeError) as exc:
            raise VaultError(
                self.identifier, "username-password material must be a JSON object with username and password"
            ) from exc

    def secret_values(self) -> list[str]:
        """All strings that must never appear in captured output."""
        if self.discarded:
            return []
        # Decoded the same lenient way as captured output so binary material still matches.
        values = [self.material.decode("utf-8", errors="replace")]
        if self.kind is CredentialKind.USERNAME_PASSWORD:
            values.extend(self.username_password())
        return [v for v in values if v]

    def discard(self) -> None:
        """Zero the material in place."""
        for i in range(len(self.material)):
            self.material[i] = 0
        self.material.clear()
        self.discarded = True
