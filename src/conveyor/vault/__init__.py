"""Pluggable secret vault backends behind the ISecretVault protocol."""

from __future__ import annotations

from conveyor.core.config import AppSettings
from conveyor.core.protocols import ISecretVault
from conveyor.vault.env_backend import EnvVault
from conveyor.vault.memory_backend import MemoryVault
from conveyor.vault.secretsmanager_backend import SecretsManagerVault


def create_vault(settings: AppSettings | None = None) -> ISecretVault:
    """Create the vault selected by ``settings.vault.backend``."""
    if settings is None:
        settings = AppSettings()
    cfg = settings.vault

    if cfg.backend == "secretsmanager":
        return SecretsManagerVault(
            region=cfg.region,
            endpoint_url=cfg.endpoint_url,
            secret_prefix=cfg.secret_prefix,
        )
    if cfg.backend == "memory":
        return MemoryVault()
    return EnvVault(prefix=cfg.env_prefix)


__all__ = ["EnvVault", "MemoryVault", "SecretsManagerVault", "create_vault"]
