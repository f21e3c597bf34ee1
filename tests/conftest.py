"""Shared fixtures: fake AWS credentials, a seeded vault, and a deploy pipeline."""

from __future__ import annotations

import pytest

from conveyor.models.pipeline import Pipeline
from tests.fakes import MemoryVault
from tests.fakes.pipelines import DOCKER_PASSWORD, DOCKER_USER, GIT_TOKEN, KUBECONFIG, make_deploy_pipeline


@pytest.fixture(autouse=True)
def aws_credentials(monkeypatch):
    """Keep boto3 away from real credentials."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")


@pytest.fixture
def vault() -> MemoryVault:
    v = MemoryVault()
    v.put_token("github-credentials", GIT_TOKEN)
    v.put_username_password("dockerhub-credentials", DOCKER_USER, DOCKER_PASSWORD)
    v.put_kubeconfig("kubeconfig", KUBECONFIG)
    return v


@pytest.fixture
def deploy_pipeline() -> Pipeline:
    return make_deploy_pipeline()
