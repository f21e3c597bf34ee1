"""Unit tests for the memory and environment vaults and the vault factory."""

from __future__ import annotations

import pytest

from conveyor.core.config import AppSettings, VaultConfig
from conveyor.core.exceptions import CredentialNotFound, VaultError
from conveyor.core.protocols import ISecretVault
from conveyor.models.credentials import CredentialKind
from conveyor.vault import EnvVault, MemoryVault, SecretsManagerVault, create_vault


class TestMemoryVault:
    def test_resolve_returns_independent_copies(self):
        v = MemoryVault()
        v.put_token("tok", "abc")
        first = v.resolve("tok", CredentialKind.TOKEN)
        first.discard()
        assert v.resolve("tok", CredentialKind.TOKEN).text() == "abc"

    def test_missing(self):
        with pytest.raises(CredentialNotFound):
            MemoryVault().resolve("tok", CredentialKind.TOKEN)

    def test_kind_mismatch(self):
        v = MemoryVault()
        v.put_token("tok", "abc")
        with pytest.raises(VaultError):
            v.resolve("tok", CredentialKind.KUBECONFIG)

    def test_satisfies_protocol(self):
        assert isinstance(MemoryVault(), ISecretVault)


class TestEnvVault:
    def test_reads_prefixed_variable(self):
        v = EnvVault(environ={"CONVEYOR_SECRET_DOCKERHUB_CREDENTIALS": '{"username": "u", "password": "p"}'})
        cred = v.resolve("dockerhub-credentials", CredentialKind.USERNAME_PASSWORD)
        assert cred.username_password() == ("u", "p")

    def test_missing_variable(self):
        with pytest.raises(CredentialNotFound):
            EnvVault(environ={}).resolve("github", CredentialKind.TOKEN)


class TestCreateVault:
    def test_default_is_env(self):
        assert isinstance(create_vault(AppSettings()), EnvVault)

    def test_memory(self):
        settings = AppSettings(vault=VaultConfig(backend="memory"))
        assert isinstance(create_vault(settings), MemoryVault)

    def test_secretsmanager(self):
        settings = AppSettings(vault=VaultConfig(backend="secretsmanager", region="eu-west-1"))
        assert isinstance(create_vault(settings), SecretsManagerVault)
