"""Unit tests for SecretsManagerVault using moto."""

from __future__ import annotations

import json

import boto3
import pytest
from moto import mock_aws

from conveyor.core.exceptions import CredentialNotFound, VaultError
from conveyor.execution.executor import PipelineExecutor
from conveyor.execution.scope import open_scope
from conveyor.models.credentials import CredentialBinding, CredentialDeclaration, CredentialKind
from conveyor.models.pipeline import ActionKind, Pipeline, Stage, StepSpec
from conveyor.models.results import FailureKind, RunStatus
from conveyor.vault.secretsmanager_backend import SecretsManagerVault
from tests.fakes import ScriptedStepRunner

REGION = "us-east-1"
NON_UTF8 = b"\xff\xfe\x00secret"


@pytest.fixture
def sm():
    with mock_aws():
        client = boto3.client("secretsmanager", region_name=REGION)
        client.create_secret(Name="ci/github-credentials", SecretString="ghp_token")
        client.create_secret(
            Name="ci/dockerhub-credentials",
            SecretString=json.dumps({"username": "bot", "password": "pw"}),
        )
        client.create_secret(Name="ci/kubeconfig", SecretBinary=b"apiVersion: v1\n")
        client.create_secret(Name="ci/binary-token", SecretBinary=NON_UTF8)
        yield client


@pytest.fixture
def vault(sm):
    return SecretsManagerVault(region=REGION, secret_prefix="ci/")


class TestResolve:
    def test_token_from_secret_string(self, vault):
        cred = vault.resolve("github-credentials", CredentialKind.TOKEN)
        assert cred.text() == "ghp_token"
        assert cred.kind is CredentialKind.TOKEN

    def test_username_password(self, vault):
        cred = vault.resolve("dockerhub-credentials", CredentialKind.USERNAME_PASSWORD)
        assert cred.username_password() == ("bot", "pw")

    def test_binary_secret(self, vault):
        cred = vault.resolve("kubeconfig", CredentialKind.KUBECONFIG)
        assert bytes(cred.material) == b"apiVersion: v1\n"

    def test_non_utf8_binary_secret_is_passed_through(self, vault):
        cred = vault.resolve("binary-token", CredentialKind.TOKEN)
        assert bytes(cred.material) == NON_UTF8
        assert cred.secret_values()

    def test_missing_secret_raises_not_found(self, vault):
        with pytest.raises(CredentialNotFound) as info:
            vault.resolve("nope", CredentialKind.TOKEN)
        assert info.value.identifier == "nope"

    def test_each_resolve_is_fresh(self, vault, sm):
        first = vault.resolve("github-credentials", CredentialKind.TOKEN)
        first.discard()
        sm.put_secret_value(SecretId="ci/github-credentials", SecretString="rotated")
        assert vault.resolve("github-credentials", CredentialKind.TOKEN).text() == "rotated"


class TestBinaryMaterialInRuns:
    def test_scope_rejects_non_utf8_token(self, vault):
        binding = CredentialBinding(credential_id="binary-token")
        with pytest.raises(VaultError, match="not valid UTF-8"):
            with open_scope(vault, "fetch", [binding], {"binary-token": CredentialKind.TOKEN}):
                pytest.fail("body must not run")

    def test_run_fails_with_vault_error_and_one_hook(self, vault):
        failures, successes = [], []
        pipeline = Pipeline(
            name="binary",
            credentials=[CredentialDeclaration(id="binary-token", kind=CredentialKind.TOKEN)],
            stages=[Stage(
                name="fetch",
                bindings=[CredentialBinding(credential_id="binary-token")],
                steps=[StepSpec(name="use", action=ActionKind.COMMAND, inputs={"command": "true"},
                                credentials=["binary-token"])],
            )],
        ).with_hooks(on_success=successes.append, on_failure=failures.append)
        runner = ScriptedStepRunner()

        result = PipelineExecutor(vault=vault, runner=runner).run(pipeline)

        assert result.status == RunStatus.FAILED
        assert result.failure_kind == FailureKind.VAULT_ERROR
        assert result.failed_stage_index == 0
        assert runner.calls == []
        assert successes == []
        assert len(failures) == 1
        assert "secret" not in result.reason


class TestErrorWrapping:
    def test_client_error_becomes_vault_error(self):
        from botocore.exceptions import ClientError

        class Boom:
            def get_secret_value(self, **kwargs):
                raise ClientError({"Error": {"Code": "AccessDeniedException", "Message": "no"}}, "GetSecretValue")

        v = SecretsManagerVault.__new__(SecretsManagerVault)
        v._prefix = ""
        v._client = Boom()
        with pytest.raises(VaultError) as info:
            v.resolve("github-credentials", CredentialKind.TOKEN)
        assert not isinstance(info.value, CredentialNotFound)
        assert "AccessDeniedException" in str(info.value)
