"""Application configuration using pydantic-settings with grouped env prefixes."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class VaultConfig(BaseSettings):
    """Secret vault backend configuration."""

    model_config = {"env_prefix": "CONVEYOR_VAULT_"}

    backend: Literal["memory", "env", "secretsmanager"] = "env"
    region: str = "us-east-1"
    endpoint_url: str | None = None  # LocalStack override
    secret_prefix: str = ""  # e.g. "ci/" -> secret id "ci/dockerhub-credentials"
    env_prefix: str = "CONVEYOR_SECRET_"


class RunnerConfig(BaseSettings):
    """External step runner configuration."""

    model_config = {"env_prefix": "CONVEYOR_RUNNER_"}

    step_timeout_sec: Optional[float] = None
    workspace: str = "."
    git_binary: str = "git"
    docker_binary: str = "docker"
    kubectl_binary: str = "kubectl"
    inherit_environment: bool = True


class ReportConfig(BaseSettings):
    """Run report store configuration."""

    model_config = {"env_prefix": "CONVEYOR_REPORTS_"}

    backend: Literal["memory", "redis"] = "memory"
    host: str = "localhost"
    port: int = 6379
    db: int = 0
    ttl_sec: int = 7 * 24 * 3600


class AppSettings(BaseSettings):
    """Root application settings aggregating all sub-configs."""

    model_config = {"env_prefix": "CONVEYOR_"}

    environment: Literal["dev", "ci", "prod"] = "dev"
    log_level: str = "INFO"

    vault: VaultConfig = Field(default_factory=VaultConfig)
    runner: RunnerConfig = Field(default_factory=RunnerConfig)
    reports: ReportConfig = Field(default_factory=ReportConfig)
