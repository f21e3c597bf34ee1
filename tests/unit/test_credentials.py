"""Tests for credential models and binding variable derivation."""

from __future__ import annotations

import pytest

from conveyor.core.exceptions import VaultError
from conveyor.models.credentials import Credential, CredentialBinding, CredentialKind, env_name


class TestEnvName:
    def test_upper_snake_case(self):
        assert env_name("dockerhub-credentials") == "DOCKERHUB_CREDENTIALS"

    def test_collapses_separators(self):
        assert env_name("ci/git..token") == "CI_GIT_TOKEN"

    def test_leading_digit_gets_prefix(self):
        assert env_name("1password") == "CRED_1PASSWORD"


class TestBindingVariables:
    def test_username_password_defaults(self):
        binding = CredentialBinding(credential_id="dockerhub-credentials")
        assert binding.variables_for(CredentialKind.USERNAME_PASSWORD) == (
            "DOCKERHUB_CREDENTIALS_USR",
            "DOCKERHUB_CREDENTIALS_PSW",
        )

    def test_username_password_overrides(self):
        binding = CredentialBinding(
            credential_id="dockerhub-credentials", username_variable="DOCKER_USER", password_variable="DOCKER_PASS",
        )
        assert binding.variables_for(CredentialKind.USERNAME_PASSWORD) == ("DOCKER_USER", "DOCKER_PASS")

    def test_kubeconfig_default(self):
        binding = CredentialBinding(credential_id="prod-cluster")
        assert binding.variables_for(CredentialKind.KUBECONFIG) == ("KUBECONFIG",)

    def test_token_explicit_variable(self):
        binding = CredentialBinding(credential_id="github", variable="GH_TOKEN")
        assert binding.variables_for(CredentialKind.TOKEN) == ("GH_TOKEN",)


class TestCredential:
    def test_repr_hides_material(self):
        cred = Credential("api", CredentialKind.TOKEN, bytearray(b"top-secret"))
        assert "top-secret" not in repr(cred)

    def test_discard_zeroes_and_blocks_access(self):
        material = bytearray(b"top-secret")
        cred = Credential("api", CredentialKind.TOKEN, material)
        cred.discard()
        assert cred.discarded
        assert b"top-secret" not in material
        assert cred.secret_values() == []
        with pytest.raises(VaultError):
            cred.text()

    def test_username_password_parts_are_secret_values(self):
        cred = Credential(
            "hub", CredentialKind.USERNAME_PASSWORD, bytearray(b'{"username": "bot", "password": "pw"}'),
        )
        assert cred.username_password() == ("bot", "pw")
        assert {"bot", "pw"} <= set(cred.secret_values())

    def test_malformed_username_password_raises_vault_error(self):
        cred = Credential("hub", CredentialKind.USERNAME_PASSWORD, bytearray(b"bot:pw"))
        with pytest.raises(VaultError) as info:
            cred.username_password()
        assert info.value.identifier == "hub"

    def test_non_utf8_material_still_yields_secret_values(self):
        cred = Credential("bin", CredentialKind.TOKEN, bytearray(b"\xff\xfe\x00secret"))
        [value] = cred.secret_values()
        assert value.endswith("\x00secret")

    def test_non_utf8_text_raises_vault_error(self):
        cred = Credential("bin", CredentialKind.TOKEN, bytearray(b"\xff\xfe\x00secret"))
        with pytest.raises(VaultError) as info:
            cred.text()
        assert info.value.identifier == "bin"
        assert "not valid UTF-8" in str(info.value)

    def test_non_utf8_username_password_raises_vault_error(self):
        cred = Credential("bin", CredentialKind.USERNAME_PASSWORD, bytearray(b"\xff{}"))
        with pytest.raises(VaultError, match="not valid UTF-8"):
            cred.username_password()
