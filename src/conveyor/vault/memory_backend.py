"""Dict-backed vault for local runs and unit tests."""

from __future__ import annotations

import json
import threading

from conveyor.core.exceptions import CredentialNotFound, VaultError
from conveyor.models.credentials import Credential, CredentialKind


class MemoryVault:
    """ISecretVault holding material in process memory.

    ``resolve`` hands out a fresh copy each time so discarding a scope's
    credential never affects the stored entry or another run.
    """

    def __init__(self) -> None:
        self._entries: dict[str, tuple[CredentialKind, bytes]] = {}
        self._lock = threading.Lock()
        self.resolve_count = 0

    def put(self, identifier: str, kind: CredentialKind, material: str | bytes) -> None:
        if isinstance(material, str):
            material = material.encode("utf-8")
        with self._lock:
            self._entries[identifier] = (kind, bytes(material))

    def put_token(self, identifier: str, token: str) -> None:
        self.put(identifier, CredentialKind.TOKEN, token)

    def put_username_password(self, identifier: str, username: str, password: str) -> None:
        self.put(
            identifier,
            CredentialKind.USERNAME_PASSWORD,
            json.dumps({"username": username, "password": password}),
        )

    def put_kubeconfig(self, identifier: str, kubeconfig: str) -> None:
        self.put(identifier, CredentialKind.KUBECONFIG, kubeconfig)

    def remove(self, identifier: str) -> None:
        with self._lock:
            self._entries.pop(identifier, None)

    def resolve(self, identifier: str, kind: CredentialKind) -> Credential:
        with self._lock:
            self.resolve_count += 1
            entry = self._entries.get(identifier)
        if entry is None:
            raise CredentialNotFound(identifier)
        stored_kind, material = entry
        if stored_kind is not kind:
            raise VaultError(identifier, f"stored as {stored_kind.value}, declared as {kind.value}")
        return Credential(identifier=identifier, kind=kind, material=bytearray(material))
